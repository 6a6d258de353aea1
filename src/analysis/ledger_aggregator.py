"""
Ledger aggregation into per (account, department, company) period totals.
"""

import logging
import pandas as pd
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from config.settings import Settings
from data.models import AggregatedCell, Company, LedgerEntry, DEBIT, CREDIT, normalize_nature
from data.sources import LedgerSource, DataSourceError
from utils.periods import normalize_month

GROUP_KEYS = ['account_name', 'department', 'company_reference']
VALUE_COLUMNS = ['value', 'debit', 'credit']


@dataclass
class AggregationResult:
    """Cells of one period plus the fetch error, if any."""
    cells: List[AggregatedCell] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BulkAggregation:
    """Year-wide totals collected by paging through the ledger."""
    totals: pd.DataFrame
    rows_scanned: int
    limit_reached: bool = False
    error: Optional[str] = None


def resolve_effective_companies(companies: Iterable[Company],
                                company_filter: Sequence[str] = (),
                                brand_id: Optional[str] = None) -> List[Company]:
    """
    Companies that take part in an analysis.

    Args:
        companies: Company registry of the tenant
        company_filter: Company ids or display names; empty means no restriction
        brand_id: Restrict to one brand; None or 'all' means every brand

    Returns:
        Operating companies passing both filters, in registry order
    """
    effective = [c for c in companies if c.is_operating]
    if brand_id and brand_id != 'all':
        effective = [c for c in effective if c.brand_id == brand_id]
    if company_filter:
        wanted = set(company_filter)
        effective = [c for c in effective if c.id in wanted or c.display_name in wanted]
    return effective


def group_entries(entries: Iterable[LedgerEntry], default_department: str = 'GERAL',
                  extra_keys: Sequence[str] = ()) -> pd.DataFrame:
    """
    Sum ledger amounts per account, department and company reference.

    Every entry contributes its amount to ``value`` and to exactly one of the
    ``debit``/``credit`` buckets according to its nature.
    """
    keys = GROUP_KEYS + list(extra_keys)
    records = []
    for entry in entries:
        nature = normalize_nature(entry.nature)
        amount = float(entry.amount or 0.0)
        record = {
            'account_name': entry.account_name,
            'department': entry.department or default_department,
            'company_reference': entry.company_reference or '',
            'value': amount,
            'debit': amount if nature == DEBIT else 0.0,
            'credit': amount if nature == CREDIT else 0.0,
        }
        for key in extra_keys:
            record[key] = getattr(entry, key)
        records.append(record)

    if not records:
        return pd.DataFrame(columns=keys + VALUE_COLUMNS)

    frame = pd.DataFrame.from_records(records, columns=keys + VALUE_COLUMNS)
    return (
        frame.groupby(keys, sort=True, dropna=False)[VALUE_COLUMNS]
        .sum()
        .reset_index()
    )


class LedgerAggregator:
    """Fetches ledger rows for one period and reduces them to aggregated cells."""

    def __init__(self, settings: Settings, ledger: LedgerSource):
        self.settings = settings
        self.ledger = ledger
        self.logger = logging.getLogger(__name__)

    async def aggregate(self, tenant_id: str, year: int, month: str,
                        companies: Sequence[Company]) -> AggregationResult:
        """
        Aggregate one period of a tenant's ledger.

        Args:
            tenant_id: Organization identifier
            year: Four digit year
            month: Canonical month label
            companies: Effective companies; an empty list yields no cells and no query

        Returns:
            AggregationResult whose error is set when the ledger fetch failed
        """
        if not tenant_id or not companies:
            self.logger.debug("No tenant or no effective companies, skipping ledger query")
            return AggregationResult()

        month = normalize_month(month)
        lookup = self._company_lookup(companies)
        references = sorted(lookup.keys())

        try:
            entries = await self.ledger.fetch_entries(tenant_id, year, month, references)
        except DataSourceError as e:
            self.logger.error(f"Error fetching ledger for {month}/{year}: {e}")
            return AggregationResult(error=str(e))

        grouped = group_entries(entries, self.settings.get_default_department())
        cells = []
        for row in grouped.to_dict('records'):
            company = lookup.get(row['company_reference'])
            cells.append(AggregatedCell(
                account_name=row['account_name'],
                department=row['department'],
                company_id=company.id if company else None,
                company_reference=row['company_reference'],
                value=float(row['value']),
                debit=float(row['debit']),
                credit=float(row['credit']),
            ))

        unresolved = sum(1 for c in cells if c.company_id is None)
        if unresolved:
            self.logger.warning(
                f"{unresolved} cells in {month}/{year} reference unknown companies; "
                f"kept in totals, left out of company breakdowns"
            )
        self.logger.info(f"Aggregated {len(entries)} ledger rows into {len(cells)} cells for {month}/{year}")
        return AggregationResult(cells=cells)

    async def aggregate_bulk(self, tenant_id: str, year: int,
                             page_size: Optional[int] = None,
                             max_rows: Optional[int] = None) -> BulkAggregation:
        """
        Aggregate a whole year by paging through the ledger.

        Paging stops when the source is exhausted or when ``max_rows`` rows
        have been scanned; hitting the bound is not an error, whatever was
        collected is aggregated.
        """
        page_size = page_size or self.settings.get_page_size()
        max_rows = max_rows or self.settings.get_max_rows()

        rows: List[LedgerEntry] = []
        offset = 0
        limit_reached = False
        error = None

        while True:
            remaining = max_rows - len(rows)
            if remaining <= 0:
                limit_reached = True
                break

            try:
                page = await self.ledger.fetch_page(tenant_id, year, offset, page_size)
            except DataSourceError as e:
                self.logger.error(f"Error fetching ledger page at offset {offset}: {e}")
                error = str(e)
                break

            if not page:
                break

            rows.extend(page[:remaining])
            if len(page) > remaining:
                limit_reached = True
                break
            if len(page) < page_size:
                break
            offset += page_size

        if limit_reached:
            self.logger.warning(f"Ledger safety limit of {max_rows} rows reached for {year}, aggregating partial data")

        totals = group_entries(rows, self.settings.get_default_department(), extra_keys=['month'])
        self.logger.info(f"Bulk aggregation scanned {len(rows)} rows into {len(totals)} totals for {year}")
        return BulkAggregation(totals=totals, rows_scanned=len(rows), limit_reached=limit_reached, error=error)

    def _company_lookup(self, companies: Sequence[Company]) -> Dict[str, Company]:
        """Map display names and ids to companies; display names win on collision."""
        lookup = {}
        for company in companies:
            lookup.setdefault(company.id, company)
        for company in companies:
            lookup[company.display_name] = company
        return lookup
