"""
Descriptive Statistics Helpers

Percentiles use linear interpolation between order statistics
(rank = p * (n - 1) on the sorted values), the same rule as
PERCENTILE_CONT. Every percentile report goes through ``percentile``.
"""

from decimal import Decimal
from typing import Iterable, Optional, Sequence, Union
import math

Number = Union[int, float, Decimal]


def mean(values: Iterable[Number]) -> Optional[float]:
    """Arithmetic mean as float, None for no values (SQL AVG semantics)"""
    items = list(values)
    if not items:
        return None
    return float(sum(items)) / len(items)


def percentile(values: Sequence[Number], p: float) -> Optional[float]:
    """
    Percentile of ``values`` by linear interpolation.
    
    Args:
        values: Observations, in any order
        p: Fraction between 0 and 1 (0.5 is the median)
        
    Returns:
        Interpolated value, or None when there are no observations
    """
    if not 0 <= p <= 1:
        raise ValueError(f"Percentile must be between 0 and 1, got {p}")
    
    ordered = sorted(float(v) for v in values)
    if not ordered:
        return None
    
    rank = p * (len(ordered) - 1)
    lower = math.floor(rank)
    upper = math.ceil(rank)
    if lower == upper:
        return ordered[lower]
    
    fraction = rank - lower
    return ordered[lower] + (ordered[upper] - ordered[lower]) * fraction
