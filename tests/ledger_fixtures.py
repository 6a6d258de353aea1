"""Shared builders for ledger, company and store test data."""

import asyncio
from typing import Dict, List, Optional, Sequence, Set

from analysis.variance_classifier import Alert, Severity
from config.account_mapping import Account, AccountType
from data.models import (
    LedgerEntry, Company, BudgetAssumption, BudgetAssumptionValue, BudgetMapping,
    ReferenceData
)
from data.sources import InMemoryDataStore, DataSourceError
from utils.calculations import Trend

TENANT = "org-1"

COMPANIES = [
    Company(id="c1", name="Loja Alfa Ltda", nickname="Loja A", kind="efetiva", brand_id="b1"),
    Company(id="c2", name="Loja Beta Ltda", nickname="Loja B", kind=None, brand_id="b1"),
    Company(id="c3", name="Loja Delta", nickname=None, kind="efetiva", brand_id="b2"),
    Company(id="h1", name="Holding", kind="consolidadora"),
]

ACCOUNTS = [
    Account(id="a-rev", name="Receita Bruta", code="3.1"),
    Account(id="a-adm", name="Despesa Administrativa", code="4.1"),
    Account(id="a-cmv", name="Custo das Mercadorias", code="3.2"),
    Account(id="a-lucro", name="Lucro Operacional", code="5.1"),
]


def entry(account: str, amount: float, company: str = "Loja A", department: Optional[str] = None,
          year: int = 2024, month: str = "MARÇO", nature: str = "D", tenant: str = TENANT) -> LedgerEntry:
    return LedgerEntry(
        tenant_id=tenant,
        year=year,
        month=month,
        account_name=account,
        department=department,
        company_reference=company,
        amount=amount,
        nature=nature,
    )


def reference(accounts: Sequence[Account] = tuple(ACCOUNTS)) -> ReferenceData:
    return ReferenceData(companies=list(COMPANIES), accounts=list(accounts))


class RecordingStore(InMemoryDataStore):
    """In-memory store that records ledger queries and can fail or block on demand."""

    def __init__(self, *args, fail_periods: Set = frozenset(), fail_budget: bool = False,
                 fail_benchmarks: bool = False, gates: Optional[Dict[str, asyncio.Event]] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls: List[tuple] = []
        self.fail_periods = set(fail_periods)
        self.fail_budget = fail_budget
        self.fail_benchmarks = fail_benchmarks
        self.gates = gates or {}

    async def fetch_entries(self, tenant_id, year, month, company_references=None):
        self.calls.append((tenant_id, year, month, tuple(company_references or ())))
        if tenant_id in self.gates:
            await self.gates[tenant_id].wait()
        if (year, month) in self.fail_periods:
            raise DataSourceError("ledger", f"timeout fetching {month}/{year}")
        return await super().fetch_entries(tenant_id, year, month, company_references)

    async def fetch_budget(self, tenant_id):
        if self.fail_budget:
            raise DataSourceError("budget", "connection refused")
        return await super().fetch_budget(tenant_id)

    async def fetch_benchmarks(self, tenant_id):
        if self.fail_benchmarks:
            raise DataSourceError("benchmarks", "connection refused")
        return await super().fetch_benchmarks(tenant_id)


def budget(name_values: Dict[str, float], year: int = 2024, month: str = "MARÇO",
           mappings: Sequence[BudgetMapping] = ()) -> Dict[str, list]:
    """Assumptions named after accounts with one value each, as store kwargs."""
    assumptions = [BudgetAssumption(id=f"p{i}", name=name) for i, name in enumerate(name_values)]
    values = [
        BudgetAssumptionValue(assumption_id=a.id, year=year, month=month, value=name_values[a.name])
        for a in assumptions
    ]
    return {'assumptions': assumptions, 'assumption_values': values, 'mappings': list(mappings)}


def make_alert(account: str, severity: Severity, variation: float = 0.0, department: str = "GERAL",
               account_type: Optional[AccountType] = None) -> Alert:
    """Alert with neutral baselines and the given budget variation."""
    return Alert(
        id=f"{account}|{department}",
        account_name=account,
        department=department,
        severity=severity,
        trend=Trend.STABLE,
        real_value=100.0,
        budget_value=100.0,
        previous_period_value=100.0,
        same_month_last_year_value=100.0,
        variation_vs_budget=variation,
        variation_vs_previous_period=0.0,
        variation_vs_same_month_last_year=0.0,
        account_type=account_type,
    )
