"""
Chart-of-accounts entries and account type classification.
"""

from typing import Dict, Iterable, List, Optional
from dataclasses import dataclass
from enum import Enum


class AccountType(Enum):
    """Explicit account type sourced from the chart of accounts."""
    REVENUE = "revenue"
    EXPENSE = "expense"
    COST = "cost"
    MARGIN = "margin"
    OTHER = "other"

    @classmethod
    def parse(cls, value) -> Optional["AccountType"]:
        """Parse a loose label ('Despesa', 'cost', ...) into a type, None when blank."""
        if value is None:
            return None
        text = str(value).strip().lower()
        if not text or text == 'nan':
            return None
        aliases = {
            'receita': cls.REVENUE,
            'despesa': cls.EXPENSE,
            'custo': cls.COST,
            'margem': cls.MARGIN,
            'resultado': cls.MARGIN,
            'outros': cls.OTHER,
        }
        if text in aliases:
            return aliases[text]
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"Unknown account type: {value}")


@dataclass(frozen=True)
class Account:
    """Account information structure."""
    id: str
    name: str
    code: Optional[str] = None
    account_type: Optional[AccountType] = None


EXPENSE_LIKE_TYPES = (AccountType.EXPENSE, AccountType.COST)

SUMMARY_CATEGORY_TYPES = {
    'revenue': AccountType.REVENUE,
    'margin': AccountType.MARGIN,
    'expenses': AccountType.EXPENSE,
}


class AccountMapper:
    """Chart-of-accounts lookup and expense/revenue classification.

    Accounts carrying an explicit type are classified by it. Legacy accounts
    without a type fall back to keyword matching on the account name, which
    is locale specific and silently flips severity direction when a name is
    misleading.
    """

    def __init__(self, accounts: Iterable[Account] = (),
                 expense_keywords: Iterable[str] = ('despesa', 'custo'),
                 summary_keywords: Optional[Dict[str, List[str]]] = None):
        self.accounts = list(accounts)
        self.expense_keywords = [k.lower() for k in expense_keywords]
        self.summary_keywords = {
            category: [k.lower() for k in keywords]
            for category, keywords in (summary_keywords or {
                'revenue': ['receita'],
                'margin': ['margem', 'lucro'],
                'expenses': ['despesa'],
            }).items()
        }
        self.name_to_account = self._build_name_mapping()

    def _build_name_mapping(self) -> Dict[str, Account]:
        """Build mapping from account name to account; first entry wins."""
        mapping = {}
        for account in self.accounts:
            mapping.setdefault(account.name, account)
        return mapping

    def get_account_by_name(self, account_name: str) -> Optional[Account]:
        """Get account information by display name."""
        return self.name_to_account.get(account_name)

    def get_account_type(self, account_name: str) -> Optional[AccountType]:
        """Get the explicit type of a named account, if the chart has one."""
        account = self.get_account_by_name(account_name)
        return account.account_type if account else None

    def is_expense_like(self, account_name: str, account_type: Optional[AccountType] = None) -> bool:
        """Expense-like accounts alert on overruns, all others on shortfalls."""
        if account_type is None:
            account_type = self.get_account_type(account_name)
        if account_type is not None:
            return account_type in EXPENSE_LIKE_TYPES
        name = account_name.lower()
        return any(keyword in name for keyword in self.expense_keywords)

    def matches_summary_category(self, category: str, account_name: str,
                                 account_type: Optional[AccountType] = None) -> bool:
        """Check whether an account feeds a headline summary metric."""
        if account_type is not None:
            return SUMMARY_CATEGORY_TYPES.get(category) == account_type
        name = account_name.lower()
        return any(keyword in name for keyword in self.summary_keywords.get(category, []))
