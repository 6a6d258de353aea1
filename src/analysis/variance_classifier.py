"""
Variance classification of account/department keys into ranked alerts.
"""

import logging
import pandas as pd
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from config.settings import Settings, AlertThresholds
from config.account_mapping import AccountMapper, AccountType
from analysis.baseline_resolver import BaselineBundle
from analysis.budget_resolver import BudgetResolver
from data.models import AggregatedCell, Company
from utils.calculations import Trend, calculate_variance_percentage, classify_trend


class Severity(Enum):
    """Severity tier of an alert."""
    CRITICAL = "critical"
    WARNING = "warning"
    OK = "ok"

    @property
    def rank(self) -> int:
        return SEVERITY_ORDER[self]


SEVERITY_ORDER = {Severity.CRITICAL: 0, Severity.WARNING: 1, Severity.OK: 2}


@dataclass(frozen=True)
class CompanyBreakdown:
    """One company's share of an alert key.

    The variation compares the company value with the key's consolidated
    previous-period total, not with a per-company previous value.
    """
    company_name: str
    value: float
    variation_vs_previous_period: float


@dataclass(frozen=True)
class Alert:
    """Classified variance record of one (account, department) key."""
    id: str
    account_name: str
    department: str
    severity: Severity
    trend: Trend
    real_value: float
    budget_value: float
    previous_period_value: float
    same_month_last_year_value: float
    variation_vs_budget: float
    variation_vs_previous_period: float
    variation_vs_same_month_last_year: float
    benchmark_value: Optional[float] = None
    variation_vs_benchmark: Optional[float] = None
    account_code: Optional[str] = None
    account_type: Optional[AccountType] = None
    company_breakdown: Tuple[CompanyBreakdown, ...] = ()


def consolidate(cells: Sequence[AggregatedCell]) -> Dict[Tuple[str, str], float]:
    """Sum cell values per (account, department) across companies."""
    if not cells:
        return {}
    frame = pd.DataFrame(
        [(c.account_name, c.department, c.value) for c in cells],
        columns=['account_name', 'department', 'value'],
    )
    totals = frame.groupby(['account_name', 'department'], sort=True)['value'].sum()
    return {key: float(value) for key, value in totals.items()}


def rank_alerts(alerts: Sequence[Alert]) -> List[Alert]:
    """Order by severity, then by descending absolute variation vs budget."""
    return sorted(alerts, key=lambda a: (a.severity.rank, -abs(a.variation_vs_budget)))


class VarianceClassifier:
    """Budget, period-over-period and year-over-year variance classification."""

    def __init__(self, settings: Settings, account_mapper: AccountMapper):
        self.settings = settings
        self.account_mapper = account_mapper
        self.logger = logging.getLogger(__name__)

    def classify_severity(self, variation_vs_budget: float, expense_like: bool,
                          thresholds: AlertThresholds) -> Severity:
        """
        Severity of a budget variation.

        Expense-like accounts alert when they run over budget; all other
        accounts alert when they fall short of it.
        """
        if expense_like:
            if variation_vs_budget > thresholds.critical_threshold:
                return Severity.CRITICAL
            if variation_vs_budget > thresholds.warning_threshold:
                return Severity.WARNING
            return Severity.OK

        if variation_vs_budget < -thresholds.critical_threshold:
            return Severity.CRITICAL
        if variation_vs_budget < -thresholds.warning_threshold:
            return Severity.WARNING
        return Severity.OK

    def classify(self, bundle: BaselineBundle, companies: Sequence[Company],
                 budget_resolver: BudgetResolver,
                 thresholds: Optional[AlertThresholds] = None) -> List[Alert]:
        """
        Build the ranked alert list of a period.

        Args:
            bundle: Resolved baselines, benchmarks and budget
            companies: Effective companies, used to name breakdown rows
            budget_resolver: Resolver over the bundle's budget book
            thresholds: Overrides the configured severity thresholds

        Returns:
            Alerts for every key present in the current period, ranked
        """
        thresholds = thresholds or self.settings.get_alert_thresholds()
        trend_band = self.settings.get_trend_band()

        current_cells = bundle.current_data.cells
        if not current_cells:
            self.logger.info(f"No current data for {bundle.period.label}, nothing to classify")
            return []

        current = consolidate(current_cells)
        previous = consolidate(bundle.previous_data.cells)
        last_year = consolidate(bundle.last_year_data.cells)
        breakdowns = self._company_values(current_cells, companies)

        alerts = []
        for key, real_value in current.items():
            account_name, department = key
            previous_value = previous.get(key, 0.0)
            last_year_value = last_year.get(key, 0.0)

            account = self.account_mapper.get_account_by_name(account_name)
            account_type = account.account_type if account else None
            budget_value = budget_resolver.resolve(
                account_name, account.id if account else None, department,
                bundle.period.year, bundle.period.month
            )
            benchmark_value = bundle.benchmarks.get(account_name)

            variation_vs_budget = calculate_variance_percentage(real_value, budget_value)
            variation_vs_previous = calculate_variance_percentage(real_value, previous_value)
            variation_vs_last_year = calculate_variance_percentage(real_value, last_year_value)
            variation_vs_benchmark = (
                calculate_variance_percentage(real_value, benchmark_value)
                if benchmark_value is not None else None
            )

            expense_like = self.account_mapper.is_expense_like(account_name, account_type)
            severity = self.classify_severity(variation_vs_budget, expense_like, thresholds)

            alerts.append(Alert(
                id=f"{account_name}|{department}",
                account_name=account_name,
                department=department,
                severity=severity,
                trend=classify_trend(variation_vs_previous, trend_band),
                real_value=real_value,
                budget_value=budget_value,
                previous_period_value=previous_value,
                same_month_last_year_value=last_year_value,
                variation_vs_budget=variation_vs_budget,
                variation_vs_previous_period=variation_vs_previous,
                variation_vs_same_month_last_year=variation_vs_last_year,
                benchmark_value=benchmark_value,
                variation_vs_benchmark=variation_vs_benchmark,
                account_code=account.code if account else None,
                account_type=account_type,
                company_breakdown=tuple(
                    CompanyBreakdown(
                        company_name=name,
                        value=value,
                        variation_vs_previous_period=calculate_variance_percentage(value, previous_value),
                    )
                    for name, value in breakdowns.get(key, [])
                ),
            ))

        ranked = rank_alerts(alerts)
        counts = {s: sum(1 for a in ranked if a.severity is s) for s in Severity}
        self.logger.info(
            f"Classified {len(ranked)} keys for {bundle.period.label}: "
            f"{counts[Severity.CRITICAL]} critical, {counts[Severity.WARNING]} warning, {counts[Severity.OK]} ok"
        )
        return ranked

    def _company_values(self, cells: Sequence[AggregatedCell],
                        companies: Sequence[Company]) -> Dict[Tuple[str, str], List[Tuple[str, float]]]:
        """Per key, (company display name, value) for cells with a resolved company."""
        names = {company.id: company.display_name for company in companies}
        per_key: Dict[Tuple[str, str], Dict[str, float]] = {}
        for cell in cells:
            if cell.company_id is None or cell.company_id not in names:
                continue
            by_company = per_key.setdefault(cell.key, {})
            by_company[cell.company_id] = by_company.get(cell.company_id, 0.0) + cell.value
        return {
            key: [(names[company_id], value) for company_id, value in by_company.items()]
            for key, by_company in per_key.items()
        }
