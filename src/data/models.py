"""
Data models for the controller variance engine.
"""

from typing import List, Optional, Tuple
from dataclasses import dataclass, field

from config.account_mapping import Account

DEBIT = 'D'
CREDIT = 'C'

# Company kinds that take part in analysis; blank counts as operating
OPERATING_COMPANY_KINDS = ('efetiva', '')


def normalize_nature(nature: Optional[str]) -> str:
    """Reduce a nature label to 'D' or 'C'; unknown or blank labels are debits."""
    label = str(nature or '').strip().upper()[:1]
    return CREDIT if label == CREDIT else DEBIT


@dataclass(frozen=True)
class LedgerEntry:
    """Raw ledger row as returned by the ledger store."""
    tenant_id: str
    year: int
    month: str
    account_name: str
    department: Optional[str]
    company_reference: str
    amount: float
    nature: str = DEBIT


@dataclass(frozen=True)
class Company:
    """Company registered for a tenant."""
    id: str
    name: str
    nickname: Optional[str] = None
    kind: Optional[str] = None
    brand_id: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.nickname or self.name

    @property
    def is_operating(self) -> bool:
        return (self.kind or '').strip().lower() in OPERATING_COMPANY_KINDS


@dataclass(frozen=True)
class AggregatedCell:
    """Period total for one (account, department, company) key."""
    account_name: str
    department: str
    company_id: Optional[str]
    company_reference: str
    value: float
    debit: float = 0.0
    credit: float = 0.0

    @property
    def key(self) -> Tuple[str, str]:
        return (self.account_name, self.department)


@dataclass(frozen=True)
class BudgetAssumption:
    """Named budget input."""
    id: str
    name: str


@dataclass(frozen=True)
class BudgetAssumptionValue:
    """Period-scoped value of a budget assumption."""
    assumption_id: str
    year: int
    month: str
    value: float


@dataclass(frozen=True)
class BudgetMapping:
    """Explicit link from an assumption to a target account and/or department."""
    id: str
    assumption_id: str
    account_id: Optional[str] = None
    department_id: Optional[str] = None
    target_type: Optional[str] = None


@dataclass
class BudgetBook:
    """Budget tables fetched for one tenant."""
    assumptions: List[BudgetAssumption] = field(default_factory=list)
    values: List[BudgetAssumptionValue] = field(default_factory=list)
    mappings: List[BudgetMapping] = field(default_factory=list)


@dataclass(frozen=True)
class Benchmark:
    """External reference value for an account."""
    account_name: str
    value: float


@dataclass(frozen=True)
class AnalysisRequest:
    """One (tenant, period, company filter) analysis trigger."""
    tenant_id: Optional[str]
    year: Optional[int]
    month: Optional[str]
    company_filter: Tuple[str, ...] = ()
    brand_id: Optional[str] = None


@dataclass
class ReferenceData:
    """Tenant registries the engine reads but never fetches itself."""
    companies: List[Company] = field(default_factory=list)
    accounts: List[Account] = field(default_factory=list)
