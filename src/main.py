"""
Command line entry point for the controller variance engine.
"""

import asyncio
import logging
import sys
from typing import List, Optional, Sequence

from config.settings import Settings, AlertThresholds
from analysis.engine import ControllerAnalysisEngine, AnalysisResult
from data.models import AnalysisRequest
from data.workbook_store import WorkbookDataStore
from reports.alert_report import AlertReportGenerator
from utils.logging_config import setup_logging


async def run_analysis(settings: Settings, input_file: str, tenant_id: str, year: int, month: str,
                       companies: Sequence[str] = (), brand_id: Optional[str] = None,
                       thresholds: Optional[AlertThresholds] = None) -> AnalysisResult:
    """Analyse one period of a workbook export."""
    store = WorkbookDataStore(input_file, tenant_id)
    reference = await store.load_reference_data()
    engine = ControllerAnalysisEngine(settings, store, store, store)
    request = AnalysisRequest(
        tenant_id=tenant_id,
        year=year,
        month=month,
        company_filter=tuple(companies),
        brand_id=brand_id,
    )
    return await engine.analyze(request, reference, thresholds)


def main(input_file: str, tenant_id: str, year: int, month: str,
         output_file: Optional[str] = None, csv_file: Optional[str] = None,
         companies: Sequence[str] = (), brand_id: Optional[str] = None,
         warning_threshold: Optional[float] = None, critical_threshold: Optional[float] = None,
         log_file: Optional[str] = None, log_level: Optional[str] = None) -> None:
    """
    Run the analysis and write the report.

    Args:
        input_file: Workbook with ledger, budget, benchmark, company and account sheets
        tenant_id: Organization whose ledger rows are analysed
        year: Four digit year
        month: Canonical month label (e.g. JANEIRO)
        output_file: Excel report path (defaults to the configured output file)
        csv_file: Optional CSV export of the alert table
        companies: Company ids or display names to restrict to
        brand_id: Restrict to the companies of one brand
        warning_threshold: Overrides the configured warning threshold
        critical_threshold: Overrides the configured critical threshold
        log_file: Optional log file path
        log_level: Overrides LOG_LEVEL from the environment
    """
    settings = Settings()
    setup_logging(log_level or settings.log_level, log_file)
    logger = logging.getLogger(__name__)

    try:
        logger.info("Starting controller variance analysis")

        thresholds = None
        if warning_threshold is not None or critical_threshold is not None:
            configured = settings.get_alert_thresholds()
            thresholds = AlertThresholds(
                warning_threshold=configured.warning_threshold if warning_threshold is None else warning_threshold,
                critical_threshold=configured.critical_threshold if critical_threshold is None else critical_threshold,
            )

        result = asyncio.run(run_analysis(
            settings, input_file, tenant_id, year, month, companies, brand_id, thresholds
        ))

        if result.error:
            logger.warning(f"Analysis completed with errors: {result.error}")

        summary = result.summary
        logger.info(
            f"Overall health: {summary.overall_health.value} - "
            f"{summary.critical_count} critical, {summary.warning_count} warning, {summary.ok_count} ok"
        )

        generator = AlertReportGenerator(settings)
        generator.generate_report(result, output_file or settings.default_output_file)
        if csv_file:
            generator.export_csv(result.alerts, csv_file)

        logger.info("Processing completed successfully")

    except KeyboardInterrupt:
        logger.info("Processing interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Error during processing: {str(e)}")
        sys.exit(1)


def cli(argv: Optional[List[str]] = None) -> None:
    import argparse

    parser = argparse.ArgumentParser(
        description="Controller Variance Engine - budget and period variance alerts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Analyse March 2024 for one organization
  python src/main.py -i export.xlsx -t org-1 -y 2024 -m MARÇO

  # Restrict to two companies and tighten thresholds
  python src/main.py -i export.xlsx -t org-1 -y 2024 -m MARÇO -c "Loja A" -c "Loja B" --warning 3 --critical 10

  # Also export the alert table as CSV
  python src/main.py -i export.xlsx -t org-1 -y 2024 -m MARÇO -o report.xlsx --csv alerts.csv
        """
    )

    parser.add_argument("-i", "--input", required=True, help="Input workbook path")
    parser.add_argument("-t", "--tenant", required=True, help="Organization id")
    parser.add_argument("-y", "--year", required=True, type=int, help="Four digit year")
    parser.add_argument("-m", "--month", required=True, help="Month label, e.g. JANEIRO")
    parser.add_argument("-o", "--output", help="Excel report path")
    parser.add_argument("--csv", help="CSV export path for the alert table")
    parser.add_argument(
        "-c", "--company",
        action="append",
        default=[],
        help="Company id or display name to include (repeatable; default: all)"
    )
    parser.add_argument("-b", "--brand", help="Brand id to restrict to")
    parser.add_argument("--warning", type=float, help="Warning threshold in percent")
    parser.add_argument("--critical", type=float, help="Critical threshold in percent")
    parser.add_argument(
        "--log-level",
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help="Logging level (default: LOG_LEVEL or INFO)"
    )
    parser.add_argument("--log-file", help="Log file path")

    args = parser.parse_args(argv)

    main(
        input_file=args.input,
        tenant_id=args.tenant,
        year=args.year,
        month=args.month,
        output_file=args.output,
        csv_file=args.csv,
        companies=args.company,
        brand_id=args.brand,
        warning_threshold=args.warning,
        critical_threshold=args.critical,
        log_file=args.log_file,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    cli()
