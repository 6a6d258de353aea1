"""
Controller analysis pipeline and the last-request-wins session around it.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

from config.settings import Settings, AlertThresholds
from config.account_mapping import AccountMapper
from analysis.ledger_aggregator import LedgerAggregator, resolve_effective_companies
from analysis.baseline_resolver import BaselineResolver
from analysis.benchmark_lookup import BenchmarkLookup
from analysis.budget_resolver import BudgetResolver
from analysis.variance_classifier import VarianceClassifier, Alert, Severity
from analysis.summary_builder import Summary, build_summary
from analysis.insight_context import InsightContext, build_insight_context, select_top
from data.models import AnalysisRequest, ReferenceData
from data.sources import LedgerSource, BudgetSource, BenchmarkSource
from utils.periods import Period, is_valid_month, normalize_month


@dataclass(frozen=True)
class AnalysisResult:
    """Read-only snapshot handed to the caller."""
    summary: Summary = field(default_factory=Summary)
    alerts: Tuple[Alert, ...] = ()
    top_critical: Tuple[Alert, ...] = ()
    top_warning: Tuple[Alert, ...] = ()
    is_loading: bool = False
    error: Optional[str] = None
    ai_context: Optional[InsightContext] = None
    request: Optional[AnalysisRequest] = None


def validate_request(request: AnalysisRequest) -> List[str]:
    """Problems that prevent any fetch for this request."""
    problems = []
    if not request.tenant_id or not str(request.tenant_id).strip():
        problems.append("missing tenant id")
    if not request.year:
        problems.append("missing year")
    else:
        try:
            year = int(request.year)
        except (TypeError, ValueError):
            year = None
        if year is None or not 1000 <= year <= 9999:
            problems.append(f"year {request.year!r} is not a four digit year")
    if not request.month:
        problems.append("missing month")
    elif not is_valid_month(request.month):
        problems.append(f"unknown month {request.month!r}")
    return problems


class ControllerAnalysisEngine:
    """Runs aggregation, classification and rollups for one request."""

    def __init__(self, settings: Settings, ledger: LedgerSource,
                 budget_source: Optional[BudgetSource] = None,
                 benchmark_source: Optional[BenchmarkSource] = None):
        self.settings = settings
        self.aggregator = LedgerAggregator(settings, ledger)
        self.baseline_resolver = BaselineResolver(
            self.aggregator, BenchmarkLookup(benchmark_source), budget_source
        )
        self.logger = logging.getLogger(__name__)

    async def analyze(self, request: AnalysisRequest, reference: ReferenceData,
                      thresholds: Optional[AlertThresholds] = None) -> AnalysisResult:
        """
        Analyse one (tenant, period, company filter) request.

        Invalid input returns an empty result without fetching anything.
        Source failures are reported in ``error`` while whatever the other
        sources returned is still classified.
        """
        problems = validate_request(request)
        if problems:
            self.logger.warning(f"Skipping analysis: {', '.join(problems)}")
            return AnalysisResult(request=request)

        year = int(request.year)
        month = normalize_month(request.month)
        companies = resolve_effective_companies(
            reference.companies, request.company_filter, request.brand_id
        )
        self.logger.info(
            f"Analysing {month}/{year} for tenant {request.tenant_id} over {len(companies)} companies"
        )

        bundle = await self.baseline_resolver.resolve(request.tenant_id, year, month, companies)

        account_mapper = AccountMapper(
            reference.accounts,
            expense_keywords=self.settings.get_expense_keywords(),
            summary_keywords={
                category: self.settings.get_summary_keywords(category)
                for category in ('revenue', 'margin', 'expenses')
            },
        )
        classifier = VarianceClassifier(self.settings, account_mapper)
        budget_resolver = BudgetResolver(bundle.budget.book, reference.accounts)
        alerts = classifier.classify(bundle, companies, budget_resolver, thresholds)

        summary = build_summary(alerts, account_mapper)
        top_n = self.settings.get_insight_top_n()
        errors = bundle.errors
        if errors:
            self.logger.warning(f"Analysis of {month}/{year} completed with {len(errors)} source errors")

        return AnalysisResult(
            summary=summary,
            alerts=tuple(alerts),
            top_critical=tuple(select_top(alerts, Severity.CRITICAL, top_n)),
            top_warning=tuple(select_top(alerts, Severity.WARNING, top_n)),
            error="; ".join(errors) if errors else None,
            ai_context=build_insight_context(Period(year, month), summary, alerts, top_n),
            request=request,
        )


class AnalysisSession:
    """
    Caller-facing state that only ever reflects the latest request.

    Every refresh takes a generation number; a refresh that has been
    superseded by a newer one finishes without touching ``state``.
    """

    def __init__(self, engine: ControllerAnalysisEngine):
        self.engine = engine
        self.state = AnalysisResult()
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self.logger = logging.getLogger(__name__)

    async def refresh(self, request: AnalysisRequest, reference: ReferenceData,
                      thresholds: Optional[AlertThresholds] = None) -> AnalysisResult:
        """Run a request and publish its result unless a newer request started meanwhile."""
        self._generation += 1
        generation = self._generation
        self.state = replace(self.state, is_loading=True, error=None)

        try:
            result = await self.engine.analyze(request, reference, thresholds)
        except Exception as e:
            self.logger.error(f"Analysis of {request.month}/{request.year} failed: {e}", exc_info=True)
            result = AnalysisResult(request=request, error=str(e) or type(e).__name__)

        if generation != self._generation:
            self.logger.debug(f"Discarding stale result for {request.month}/{request.year}")
            return result

        self.state = result
        return result

    def submit(self, request: AnalysisRequest, reference: ReferenceData,
               thresholds: Optional[AlertThresholds] = None) -> asyncio.Task:
        """Schedule a refresh, cancelling the one still in flight."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = asyncio.ensure_future(self.refresh(request, reference, thresholds))
        return self._task

    async def wait(self) -> AnalysisResult:
        """Wait for the latest submitted refresh and return the published state."""
        # A submit() during the wait replaces the task, so keep following the latest one
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})
        if self._task is not None and not self._task.cancelled():
            self._task.result()
        return self.state
