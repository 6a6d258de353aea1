"""
Variance and trend calculation utilities.
"""

from enum import Enum
from typing import Iterable

import numpy as np


class Trend(Enum):
    """Direction of the current period against the previous one."""
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


def calculate_variance_percentage(current: float, baseline: float) -> float:
    """
    Calculate the percent deviation of a value from a baseline.

    A zero baseline yields 0.0 rather than an infinite deviation, so a swing
    from exactly zero to any value reads as "no deviation".

    Args:
        current: Realized value
        baseline: Budget, prior period or benchmark value

    Returns:
        Variance percentage
    """
    if baseline == 0:
        return 0.0
    return ((current - baseline) / abs(baseline)) * 100


def classify_trend(variation_vs_previous: float, band: float = 3.0) -> Trend:
    """
    Classify the period-over-period direction.

    Args:
        variation_vs_previous: Variation vs previous period, in percent
        band: Variations within +/- band are stable

    Returns:
        Trend direction
    """
    if variation_vs_previous > band:
        return Trend.UP
    if variation_vs_previous < -band:
        return Trend.DOWN
    return Trend.STABLE


def mean_or_zero(values: Iterable[float]) -> float:
    """Arithmetic mean, 0.0 for an empty input."""
    values = list(values)
    if not values:
        return 0.0
    return float(np.mean(values))
