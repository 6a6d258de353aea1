"""
Ledger, budget and benchmark store interfaces and an in-memory store.
"""

import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Sequence

from data.models import (
    LedgerEntry, BudgetAssumption, BudgetAssumptionValue, BudgetMapping,
    BudgetBook, Benchmark
)
from utils.periods import normalize_month


class DataSourceError(Exception):
    """A store could not be reached or returned unusable data."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source}: {message}")


class LedgerSource(ABC):
    """Remote tabular ledger store."""

    @abstractmethod
    async def fetch_entries(self, tenant_id: str, year: int, month: str,
                            company_references: Optional[Sequence[str]] = None) -> List[LedgerEntry]:
        """Fetch entries of one period, restricted to the given companies when provided."""

    @abstractmethod
    async def fetch_page(self, tenant_id: str, year: int, offset: int, limit: int) -> List[LedgerEntry]:
        """Fetch one page of a tenant's entries for a whole year."""


class BudgetSource(ABC):
    """Budget assumption, value and mapping store."""

    @abstractmethod
    async def fetch_budget(self, tenant_id: str) -> BudgetBook:
        """Fetch all budget tables of a tenant."""


class BenchmarkSource(ABC):
    """Organization-level benchmark store."""

    @abstractmethod
    async def fetch_benchmarks(self, tenant_id: str) -> List[Benchmark]:
        """Fetch the benchmark rows of a tenant."""


class InMemoryDataStore(LedgerSource, BudgetSource, BenchmarkSource):
    """All three stores backed by plain lists.

    Budget and benchmark tables are not tenant-scoped here; a store instance
    holds the data of a single organization.
    """

    def __init__(self,
                 entries: Iterable[LedgerEntry] = (),
                 assumptions: Iterable[BudgetAssumption] = (),
                 assumption_values: Iterable[BudgetAssumptionValue] = (),
                 mappings: Iterable[BudgetMapping] = (),
                 benchmarks: Iterable[Benchmark] = ()):
        self.entries = list(entries)
        self.assumptions = list(assumptions)
        self.assumption_values = list(assumption_values)
        self.mappings = list(mappings)
        self.benchmarks = list(benchmarks)
        self.logger = logging.getLogger(__name__)

    async def fetch_entries(self, tenant_id: str, year: int, month: str,
                            company_references: Optional[Sequence[str]] = None) -> List[LedgerEntry]:
        month = normalize_month(month)
        allowed = set(company_references) if company_references is not None else None
        rows = [
            entry for entry in self.entries
            if entry.tenant_id == tenant_id
            and entry.year == year
            and entry.month == month
            and (allowed is None or entry.company_reference in allowed)
        ]
        self.logger.debug(f"Fetched {len(rows)} ledger rows for {tenant_id} {month}/{year}")
        return rows

    async def fetch_page(self, tenant_id: str, year: int, offset: int, limit: int) -> List[LedgerEntry]:
        rows = [e for e in self.entries if e.tenant_id == tenant_id and e.year == year]
        return rows[offset:offset + limit]

    async def fetch_budget(self, tenant_id: str) -> BudgetBook:
        return BudgetBook(
            assumptions=list(self.assumptions),
            values=list(self.assumption_values),
            mappings=list(self.mappings),
        )

    async def fetch_benchmarks(self, tenant_id: str) -> List[Benchmark]:
        return list(self.benchmarks)
