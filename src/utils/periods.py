"""
Canonical month labels and period arithmetic.
"""

from dataclasses import dataclass
from typing import Tuple

MONTHS: Tuple[str, ...] = (
    'JANEIRO', 'FEVEREIRO', 'MARÇO', 'ABRIL', 'MAIO', 'JUNHO',
    'JULHO', 'AGOSTO', 'SETEMBRO', 'OUTUBRO', 'NOVEMBRO', 'DEZEMBRO',
)

# Spellings seen in imported ledgers that map onto a canonical label
_ALIASES = {
    'MARCO': 'MARÇO',
}


@dataclass(frozen=True)
class Period:
    """A (year, canonical month) pair."""
    year: int
    month: str

    @property
    def label(self) -> str:
        return f"{self.month}/{self.year}"


def normalize_month(month: str) -> str:
    """
    Normalize a month label to its canonical upper-case form.

    Raises:
        ValueError: If the label is not one of the twelve canonical months
    """
    label = str(month).strip().upper()
    label = _ALIASES.get(label, label)
    if label not in MONTHS:
        raise ValueError(f"Unknown month label: {month!r}")
    return label


def is_valid_month(month: str) -> bool:
    """Check whether a label names a canonical month."""
    try:
        normalize_month(month)
    except ValueError:
        return False
    return True


def previous_period(year: int, month: str) -> Period:
    """Immediately preceding period; the first month rolls back to the last month of year - 1."""
    month = normalize_month(month)
    index = MONTHS.index(month)
    if index == 0:
        return Period(year - 1, MONTHS[-1])
    return Period(year, MONTHS[index - 1])


def same_period_last_year(year: int, month: str) -> Period:
    """Same month one year earlier."""
    return Period(year - 1, normalize_month(month))
