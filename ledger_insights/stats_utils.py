"""
Statistics Utilities
====================
Shared numeric helpers:
- Mean, population variance / standard deviation, z-score
- Percent change and coefficient of variation
- Explicit group-by and exact Decimal summing
- Week / month bucket keys and month arithmetic
- Currency formatting
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple, TypeVar, Union

import numpy as np
import pandas as pd

T = TypeVar('T')
K = TypeVar('K', bound=Hashable)

Number = Union[int, float, Decimal]

CENT = Decimal("0.01")


# =============================================================================
# CONVERSIONS
# =============================================================================

def to_decimal(value: Number) -> Decimal:
    """Convert without binary float noise (1.1 -> Decimal('1.1'))."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (float, np.floating)):
        if not np.isfinite(value):
            return Decimal("0")
        return Decimal(repr(float(value)))
    if isinstance(value, np.integer):
        return Decimal(int(value))
    return Decimal(value)


def to_money(value: Number) -> Decimal:
    """Quantise to cents, rounding half up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def as_floats(values: Iterable[Number]) -> np.ndarray:
    return np.asarray([float(v) for v in values], dtype=float)


# =============================================================================
# DESCRIPTIVE STATISTICS
# =============================================================================

def mean(values: Sequence[Number]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.mean(as_floats(values)))


def population_variance(values: Sequence[Number]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.var(as_floats(values)))


def std_dev(values: Sequence[Number]) -> float:
    """Population standard deviation."""
    if len(values) == 0:
        return 0.0
    return float(np.std(as_floats(values)))


def z_score(value: Number, series_mean: float, series_std: float) -> Optional[float]:
    """
    Standard score of ``value`` against a reference series.

    Returns None when the reference is flat (std == 0), so callers skip
    detection instead of dividing by zero.
    """
    if series_std == 0 or not np.isfinite(series_std):
        return None
    return (float(value) - series_mean) / series_std


def coefficient_of_variation(values: Sequence[Number]) -> float:
    """std / mean; 0 for empty or zero-mean series."""
    m = mean(values)
    if m == 0:
        return 0.0
    return std_dev(values) / m


def percent_change(previous: Number, current: Number) -> Decimal:
    """
    Percent change from ``previous`` to ``current``.

    A zero baseline reports 100 when anything appeared and 0 otherwise.
    """
    previous = to_decimal(previous)
    current = to_decimal(current)
    if previous == 0:
        return Decimal("100") if current > 0 else Decimal("0")
    return (current - previous) / abs(previous) * 100


def safe_ratio(numerator: Number, denominator: Number) -> Decimal:
    denominator = to_decimal(denominator)
    if denominator == 0:
        return Decimal("0")
    return to_decimal(numerator) / denominator


# =============================================================================
# GROUPING
# =============================================================================

def group_by(items: Iterable[T], key_fn: Callable[[T], K]) -> Dict[K, List[T]]:
    """Group items by key, preserving first-seen order of keys."""
    groups: Dict[K, List[T]] = defaultdict(list)
    for item in items:
        groups[key_fn(item)].append(item)
    return dict(groups)


def sum_decimal(values: Iterable[Decimal]) -> Decimal:
    total = Decimal("0")
    for value in values:
        total += value
    return total


def sum_by(groups: Dict[K, List[T]], amount_fn: Callable[[T], Decimal]) -> Dict[K, Decimal]:
    """Fold each group into an exact Decimal total."""
    return {key: sum_decimal(amount_fn(item) for item in items) for key, items in groups.items()}


# =============================================================================
# CALENDAR BUCKETS
# =============================================================================

def week_key(day: date) -> int:
    """Bucket key ``year * 100 + day_of_year // 7`` (day_of_year is 1-based)."""
    return day.year * 100 + day.timetuple().tm_yday // 7


def month_key(day: date) -> Tuple[int, int]:
    return (day.year, day.month)


def subtract_months(day: date, months: int) -> date:
    """Calendar month arithmetic; month-end days clamp (Mar 31 - 1 -> Feb 28/29)."""
    return (pd.Timestamp(day) - pd.DateOffset(months=months)).date()


def add_months(day: date, months: int) -> date:
    return (pd.Timestamp(day) + pd.DateOffset(months=months)).date()


def months_spanned(first: date, last: date) -> int:
    """Inclusive month difference; same month counts as 1."""
    return (last.year - first.year) * 12 + (last.month - first.month) + 1


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    start = date(year, month, 1)
    end = (pd.Timestamp(start) + pd.offsets.MonthEnd(0)).date()
    return start, end


# =============================================================================
# FORMATTING
# =============================================================================

def format_currency(amount: Number) -> str:
    """Whole-dollar currency string, e.g. $12,345 or -$1,200."""
    value = to_decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    if value < 0:
        return f"-${-value:,.0f}"
    return f"${value:,.0f}"
