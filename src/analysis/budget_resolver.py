"""
Budget resolution through explicit assumption mappings with name fallback.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from config.account_mapping import Account
from data.models import BudgetBook
from data.sources import BudgetSource, DataSourceError
from utils.periods import normalize_month

# Mapping target type that points at a chart-of-accounts line
ACCOUNT_TARGET = 'conta_dre'


@dataclass
class BudgetFetchResult:
    """Budget tables of a tenant plus the fetch error, if any."""
    book: BudgetBook = field(default_factory=BudgetBook)
    error: Optional[str] = None


async def fetch_budget_book(source: Optional[BudgetSource], tenant_id: str) -> BudgetFetchResult:
    """Fetch budget tables, turning store failures into an empty book with an error."""
    if source is None or not tenant_id:
        return BudgetFetchResult()
    try:
        return BudgetFetchResult(book=await source.fetch_budget(tenant_id))
    except DataSourceError as e:
        logging.getLogger(__name__).error(f"Error fetching budget data: {e}")
        return BudgetFetchResult(error=str(e))


class BudgetResolver:
    """
    Resolves the budgeted value of an account for one period.

    Once an account has at least one mapping row, only mapped assumptions
    count toward its budget, even when their values sum to zero. A mapping
    belongs to an account when it targets the account id, or when it targets
    another chart line with the same name. Accounts without mappings match
    assumptions whose name equals the account name.
    """

    def __init__(self, book: BudgetBook, accounts: Iterable[Account] = ()):
        self.book = book
        self.logger = logging.getLogger(__name__)

        account_names = {account.id: account.name for account in accounts}

        self.assumptions_by_account: Dict[str, Set[str]] = defaultdict(set)
        self.assumptions_by_target_name: Dict[str, Set[str]] = defaultdict(set)
        for mapping in book.mappings:
            if mapping.account_id is None:
                continue
            self.assumptions_by_account[mapping.account_id].add(mapping.assumption_id)
            target_name = account_names.get(mapping.account_id)
            if target_name is not None and (mapping.target_type or ACCOUNT_TARGET) == ACCOUNT_TARGET:
                self.assumptions_by_target_name[target_name].add(mapping.assumption_id)

        self.assumptions_by_name: Dict[str, Set[str]] = defaultdict(set)
        for assumption in book.assumptions:
            self.assumptions_by_name[assumption.name].add(assumption.id)

        self.values_by_period: Dict[Tuple[int, str], List] = defaultdict(list)
        for value in book.values:
            self.values_by_period[(value.year, value.month)].append(value)

    def mapped_assumptions(self, account_id: Optional[str], account_name: Optional[str] = None) -> Set[str]:
        """Assumption ids mapped to the account by id or by a same-named target."""
        mapped = set()
        if account_id is not None:
            mapped |= self.assumptions_by_account.get(account_id, set())
        if account_name is not None:
            mapped |= self.assumptions_by_target_name.get(account_name, set())
        return mapped

    def has_mappings(self, account_id: Optional[str], account_name: Optional[str] = None) -> bool:
        """Check whether any mapping row targets the account."""
        return bool(self.mapped_assumptions(account_id, account_name))

    def resolve(self, account_name: str, account_id: Optional[str], department: str,
                year: int, month: str) -> float:
        """
        Budget of an account for a period.

        Args:
            account_name: Display name, used by same-name mappings and the name fallback
            account_id: Chart-of-accounts id; None never matches mapping rows by id
            department: Department of the alert key; mappings are account scoped
                so it does not narrow the match
            year: Budget year
            month: Canonical month label

        Returns:
            Sum of matching assumption values, 0.0 when nothing matches
        """
        assumption_ids = self.mapped_assumptions(account_id, account_name)
        if not assumption_ids:
            assumption_ids = self.assumptions_by_name.get(account_name, set())

        if not assumption_ids:
            return 0.0

        period_values = self.values_by_period.get((year, normalize_month(month)), [])
        return float(sum(v.value or 0.0 for v in period_values if v.assumption_id in assumption_ids))
