#!/usr/bin/env python3
"""
Yearly ledger audit: page through a tenant's whole year and export monthly
totals per account, department and company.
"""

import sys
import asyncio
import argparse
import logging
from pathlib import Path
from datetime import datetime
from typing import Optional

import pandas as pd

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from config.settings import Settings
from analysis.ledger_aggregator import LedgerAggregator, BulkAggregation
from data.workbook_store import WorkbookDataStore
from utils.logging_config import setup_logging
from utils.periods import MONTHS


async def audit_year(settings: Settings, input_file: str, tenant_id: str, year: int,
                     page_size: Optional[int] = None, max_rows: Optional[int] = None) -> BulkAggregation:
    store = WorkbookDataStore(input_file, tenant_id)
    aggregator = LedgerAggregator(settings, store)
    return await aggregator.aggregate_bulk(tenant_id, year, page_size, max_rows)


def write_audit(result: BulkAggregation, tenant_id: str, year: int, output_file: str) -> None:
    """Write monthly totals plus a run sheet with the paging outcome."""
    totals = result.totals.copy()
    totals['month'] = pd.Categorical(totals['month'], categories=list(MONTHS), ordered=True)
    totals = totals.sort_values(['month', 'account_name', 'department', 'company_reference'])

    run = pd.DataFrame([{
        'Tenant': tenant_id,
        'Year': year,
        'Rows Scanned': result.rows_scanned,
        'Row Limit Reached': result.limit_reached,
        'Error': result.error or '',
        'Generated': datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
    }])

    Path(output_file).parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(output_file, engine='xlsxwriter') as writer:
        run.to_excel(writer, sheet_name='Run', index=False)
        totals.to_excel(writer, sheet_name='Monthly Totals', index=False)


def main():
    """Main function for the ledger audit script."""
    parser = argparse.ArgumentParser(
        description="Yearly ledger audit with bounded paging",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Audit 2024 for one organization
  python ledger_audit.py -i export.xlsx -t org-1 -y 2024

  # Smaller pages and a lower safety bound
  python ledger_audit.py -i export.xlsx -t org-1 -y 2024 --page-size 1000 --max-rows 20000
        """
    )

    parser.add_argument("-i", "--input", required=True, help="Input workbook path")
    parser.add_argument("-t", "--tenant", required=True, help="Organization id")
    parser.add_argument("-y", "--year", required=True, type=int, help="Four digit year")
    parser.add_argument("-o", "--output", help="Audit workbook path")
    parser.add_argument("--page-size", type=int, help="Rows per page (default from config)")
    parser.add_argument("--max-rows", type=int, help="Hard bound on scanned rows (default from config)")
    parser.add_argument(
        "--log-level",
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help="Logging level (default: INFO)"
    )
    parser.add_argument("--log-file", help="Log file path (default: logs to console only)")

    args = parser.parse_args()

    setup_logging(args.log_level, args.log_file)
    logger = logging.getLogger(__name__)

    try:
        settings = Settings()
        result = asyncio.run(audit_year(
            settings, args.input, args.tenant, args.year, args.page_size, args.max_rows
        ))

        output_file = args.output or str(
            settings.output_dir / f"ledger_audit_{args.tenant}_{args.year}.xlsx"
        )
        write_audit(result, args.tenant, args.year, output_file)
        logger.info(f"Audit written to {output_file} ({result.rows_scanned} rows scanned)")

        if result.limit_reached:
            logger.warning("Row limit reached; totals cover only the scanned rows")
        if result.error:
            logger.error(f"Audit stopped early: {result.error}")
            return 1
        return 0

    except KeyboardInterrupt:
        logger.info("Processing interrupted by user")
        return 130

    except Exception as e:
        logger.error(f"Unexpected error during ledger audit: {str(e)}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
