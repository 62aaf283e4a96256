"""
Interest Projection Module

Non-compounding growth of a customer's data allocation. The allocation itself
is not part of the transaction dataset; callers supply it per customer.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional


DEFAULT_ANNUAL_RATE = Decimal('0.06')
MONTHS_PER_YEAR = 12
DAYS_PER_YEAR = 365


def _as_decimal(value: Any) -> Decimal:
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid number: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Invalid number: {value!r}")
    return result


def _check_allocation(initial_allocation: Any) -> Decimal:
    allocation = _as_decimal(initial_allocation)
    if allocation < Decimal('0'):
        raise ValueError(f"Initial allocation must be non-negative, got {allocation}")
    return allocation


def simple_interest_monthly_growth(
    initial_allocation: Any,
    annual_rate: Any = DEFAULT_ANNUAL_RATE,
    months_per_year: int = MONTHS_PER_YEAR
) -> Decimal:
    """
    One month of simple interest: allocation * (1 + rate / 12).
    
    >>> simple_interest_monthly_growth(1000)
    Decimal('1005.00')
    """
    allocation = _check_allocation(initial_allocation)
    # Multiply before dividing so whole-cent results stay exact
    interest = allocation * _as_decimal(annual_rate) / Decimal(months_per_year)
    return allocation + interest


def simple_interest_daily_growth(
    initial_allocation: Any,
    days: int,
    annual_rate: Any = DEFAULT_ANNUAL_RATE,
    days_per_year: int = DAYS_PER_YEAR
) -> Decimal:
    """Simple interest accrued daily over ``days`` days, without compounding"""
    if days < 0:
        raise ValueError(f"Days must be non-negative, got {days}")
    allocation = _check_allocation(initial_allocation)
    interest = allocation * _as_decimal(annual_rate) * Decimal(days) / Decimal(days_per_year)
    return allocation + interest


def project_allocations(
    allocations: Mapping[int, Any],
    annual_rate: Any = DEFAULT_ANNUAL_RATE,
    months_per_year: int = MONTHS_PER_YEAR,
    days: Optional[int] = None,
    days_per_year: int = DAYS_PER_YEAR
) -> List[Dict[str, Any]]:
    """
    Simple-interest growth for each customer's initial allocation.
    
    Allocations are used as given, without rounding. When ``days`` is set,
    each row also carries the daily-accrued growth over that many days.
    """
    rows = []
    for customer_id in sorted(allocations):
        allocation = _check_allocation(allocations[customer_id])
        row = {
            'customer_id': customer_id,
            'initial_data_allocation': allocation,
            'simple_interest_monthly_growth': simple_interest_monthly_growth(
                allocation, annual_rate, months_per_year
            )
        }
        if days is not None:
            row['simple_interest_daily_growth'] = simple_interest_daily_growth(
                allocation, days, annual_rate, days_per_year
            )
        rows.append(row)
    return rows
