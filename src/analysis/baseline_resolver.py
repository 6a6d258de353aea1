"""
Concurrent resolution of the current, previous and last-year baselines.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from analysis.ledger_aggregator import LedgerAggregator, AggregationResult
from analysis.benchmark_lookup import BenchmarkLookup, BenchmarkTable
from analysis.budget_resolver import BudgetFetchResult, fetch_budget_book
from data.models import Company
from data.sources import BudgetSource
from utils.periods import Period, normalize_month, previous_period, same_period_last_year

__all__ = [
    'BaselineBundle', 'BaselineResolver', 'previous_period', 'same_period_last_year',
]


@dataclass
class BaselineBundle:
    """Everything the classifier needs for one request, fetched concurrently."""
    period: Period
    previous: Period
    last_year: Period
    current_data: AggregationResult = field(default_factory=AggregationResult)
    previous_data: AggregationResult = field(default_factory=AggregationResult)
    last_year_data: AggregationResult = field(default_factory=AggregationResult)
    benchmarks: BenchmarkTable = field(default_factory=BenchmarkTable)
    budget: BudgetFetchResult = field(default_factory=BudgetFetchResult)

    @property
    def errors(self) -> List[str]:
        sources = [
            self.current_data, self.previous_data, self.last_year_data,
            self.benchmarks, self.budget,
        ]
        return [source.error for source in sources if source.error]


class BaselineResolver:
    """Fans out the three ledger aggregations, benchmark and budget fetches."""

    def __init__(self, aggregator: LedgerAggregator,
                 benchmark_lookup: BenchmarkLookup,
                 budget_source: Optional[BudgetSource] = None):
        self.aggregator = aggregator
        self.benchmark_lookup = benchmark_lookup
        self.budget_source = budget_source
        self.logger = logging.getLogger(__name__)

    async def resolve(self, tenant_id: str, year: int, month: str,
                      companies: Sequence[Company]) -> BaselineBundle:
        """
        Fetch all baselines of a period.

        None of the fetches depends on another, so they run concurrently and
        are joined before returning. A failed fetch leaves its slot empty with
        an error message; the others are unaffected.
        """
        period = Period(year, normalize_month(month))
        previous = previous_period(year, month)
        last_year = same_period_last_year(year, month)

        self.logger.info(
            f"Resolving baselines for {period.label}: previous {previous.label}, last year {last_year.label}"
        )

        results = await asyncio.gather(
            self.aggregator.aggregate(tenant_id, period.year, period.month, companies),
            self.aggregator.aggregate(tenant_id, previous.year, previous.month, companies),
            self.aggregator.aggregate(tenant_id, last_year.year, last_year.month, companies),
            self.benchmark_lookup.load(tenant_id),
            fetch_budget_book(self.budget_source, tenant_id),
            return_exceptions=True,
        )

        fallbacks = [AggregationResult, AggregationResult, AggregationResult, BenchmarkTable, BudgetFetchResult]
        settled = []
        for result, empty in zip(results, fallbacks):
            if isinstance(result, Exception):
                self.logger.error(f"Baseline fetch failed unexpectedly: {result!r}", exc_info=result)
                result = empty(error=str(result) or type(result).__name__)
            settled.append(result)

        current_data, previous_data, last_year_data, benchmarks, budget = settled
        return BaselineBundle(
            period=period,
            previous=previous,
            last_year=last_year,
            current_data=current_data,
            previous_data=previous_data,
            last_year_data=last_year_data,
            benchmarks=benchmarks,
            budget=budget,
        )
