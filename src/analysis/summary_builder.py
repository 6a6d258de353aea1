"""
Rollup of classified alerts into counts and headline variations.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Sequence

from config.account_mapping import AccountMapper
from analysis.variance_classifier import Alert, Severity
from utils.calculations import mean_or_zero


@dataclass(frozen=True)
class Summary:
    """View over an alert list; holds no state of its own."""
    critical_count: int = 0
    warning_count: int = 0
    ok_count: int = 0
    total_accounts: int = 0
    overall_health: Severity = Severity.OK
    revenue_vs_budget: float = 0.0
    margin_vs_budget: float = 0.0
    expenses_vs_budget: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['overall_health'] = self.overall_health.value
        return data


# More warnings than this turn overall health to warning
WARNING_HEALTH_LIMIT = 3


def build_summary(alerts: Sequence[Alert], account_mapper: AccountMapper) -> Summary:
    """
    Count alerts per severity and average the budget variation of the
    revenue, margin and expense headline accounts.
    """
    critical_count = sum(1 for a in alerts if a.severity is Severity.CRITICAL)
    warning_count = sum(1 for a in alerts if a.severity is Severity.WARNING)
    ok_count = sum(1 for a in alerts if a.severity is Severity.OK)

    if critical_count > 0:
        overall_health = Severity.CRITICAL
    elif warning_count > WARNING_HEALTH_LIMIT:
        overall_health = Severity.WARNING
    else:
        overall_health = Severity.OK

    def headline(category: str) -> float:
        return mean_or_zero(
            a.variation_vs_budget for a in alerts
            if account_mapper.matches_summary_category(category, a.account_name, a.account_type)
        )

    return Summary(
        critical_count=critical_count,
        warning_count=warning_count,
        ok_count=ok_count,
        total_accounts=len(alerts),
        overall_health=overall_health,
        revenue_vs_budget=headline('revenue'),
        margin_vs_budget=headline('margin'),
        expenses_vs_budget=headline('expenses'),
    )
