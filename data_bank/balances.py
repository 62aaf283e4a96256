"""
Balance Series Module

Monthly closing balances and the three data allocation policies. All of them
use the signed amount convention from ``models.signed_amount``.

Per-customer sequences are ordered by txn_date; transactions on the same date
keep the order in which the dataset returned them (Python's sort is stable).
"""

from collections import defaultdict, deque
from decimal import Decimal
from datetime import date
from typing import Any, Dict, Iterable, List, Tuple

from .models import CustomerTransaction, signed_amount, month_end


def customer_sequences(transactions: Iterable[CustomerTransaction]) -> Dict[int, List[CustomerTransaction]]:
    """Group transactions by customer, each group ordered by date then input order"""
    grouped: Dict[int, List[CustomerTransaction]] = defaultdict(list)
    for txn in transactions:
        grouped[txn.customer_id].append(txn)
    return {
        customer_id: sorted(grouped[customer_id], key=lambda t: t.txn_date)
        for customer_id in sorted(grouped)
    }


def monthly_closing_balances(transactions: Iterable[CustomerTransaction]) -> List[Dict[str, Any]]:
    """
    Net signed amount per customer per calendar month.
    
    This is the month's own delta, not a balance carried over from earlier
    months. Only months in which the customer transacted appear.
    """
    totals: Dict[Tuple[int, date], Decimal] = defaultdict(lambda: Decimal('0'))
    for txn in transactions:
        totals[(txn.customer_id, month_end(txn.txn_date))] += signed_amount(txn)
    
    return [
        {
            'customer_id': customer_id,
            'end_of_month': end_of_month,
            'closing_balance': totals[(customer_id, end_of_month)]
        }
        for customer_id, end_of_month in sorted(totals)
    ]


def prior_month_end_balances(transactions: Iterable[CustomerTransaction]) -> List[Dict[str, Any]]:
    """
    Allocation option 1: month balance as of the end of the previous month.
    
    Transactions dated on the month's final calendar day are left out
    (txn_date < month end), so a month whose only activity falls on its last
    day has no row.
    """
    return monthly_closing_balances(
        txn for txn in transactions if txn.txn_date < month_end(txn.txn_date)
    )


def trailing_average_balances(
    transactions: Iterable[CustomerTransaction],
    window_size: int = 30
) -> List[Dict[str, Any]]:
    """
    Allocation option 2: moving average of signed amounts.
    
    The window is the current transaction plus up to ``window_size - 1``
    preceding transactions of the same customer, counted in rows rather than
    calendar days. Averages are exact Decimal quotients.
    """
    if window_size < 1:
        raise ValueError(f"Window size must be at least 1, got {window_size}")
    
    rows = []
    for customer_id, sequence in customer_sequences(transactions).items():
        window: deque = deque()
        window_total = Decimal('0')
        
        for txn in sequence:
            amount = signed_amount(txn)
            window.append(amount)
            window_total += amount
            if len(window) > window_size:
                window_total -= window.popleft()
            
            average = window_total / len(window)
            rows.append({
                'customer_id': customer_id,
                'txn_date': txn.txn_date,
                'average_balance': average
            })
    
    return rows


def running_balances(transactions: Iterable[CustomerTransaction]) -> List[Dict[str, Any]]:
    """Allocation option 3: real-time balance after every transaction"""
    rows = []
    for customer_id, sequence in customer_sequences(transactions).items():
        balance = Decimal('0')
        for txn in sequence:
            balance += signed_amount(txn)
            rows.append({
                'customer_id': customer_id,
                'txn_date': txn.txn_date,
                'real_time_balance': balance
            })
    return rows
