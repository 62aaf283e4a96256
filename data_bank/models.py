"""
Data Model Module

Regions, customer node allocations and customer transactions as immutable
dataclasses. Amounts are always Decimal quantized to two places, matching the
DECIMAL(10, 2) column they are loaded from. NEVER uses float for money.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date
from dataclasses import dataclass, asdict
from typing import Dict, Any, Union
from enum import Enum
import calendar


AMOUNT_PRECISION = Decimal("0.01")


class TransactionType(Enum):
    """Known customer transaction types"""
    DEPOSIT = "deposit"
    PURCHASE = "purchase"
    WITHDRAWAL = "withdrawal"


# Types that take money out of the account
DEBIT_TYPES = (TransactionType.PURCHASE.value, TransactionType.WITHDRAWAL.value)


def to_date(value: Union[str, date]) -> date:
    """Coerce an ISO string (or date) into a date"""
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValueError(f"Invalid date: {value!r}")


def to_amount(value: Any) -> Decimal:
    """Coerce a value into a two-place Decimal amount"""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount.quantize(AMOUNT_PRECISION, rounding=ROUND_HALF_UP)


def month_end(day: date) -> date:
    """Last calendar day of the month containing ``day``"""
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


@dataclass(frozen=True)
class Region:
    """Named partition of nodes"""
    region_id: int
    region_name: str
    
    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Region':
        return cls(region_id=int(data['region_id']), region_name=str(data['region_name']))


@dataclass(frozen=True)
class CustomerNode:
    """Time-bounded assignment of a customer to a node within a region"""
    customer_id: int
    region_id: int
    node_id: int
    start_date: date
    end_date: date
    
    def __post_init__(self):
        object.__setattr__(self, 'start_date', to_date(self.start_date))
        object.__setattr__(self, 'end_date', to_date(self.end_date))
        
        if self.start_date > self.end_date:
            raise ValueError(
                f"Allocation for customer {self.customer_id} ends before it starts "
                f"({self.start_date} > {self.end_date})"
            )
    
    @property
    def reallocation_days(self) -> int:
        """Days between allocation start and end"""
        return (self.end_date - self.start_date).days
    
    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result['start_date'] = self.start_date.isoformat()
        result['end_date'] = self.end_date.isoformat()
        return result
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CustomerNode':
        return cls(
            customer_id=int(data['customer_id']),
            region_id=int(data['region_id']),
            node_id=int(data['node_id']),
            start_date=to_date(data['start_date']),
            end_date=to_date(data['end_date'])
        )


@dataclass(frozen=True)
class CustomerTransaction:
    """
    One entry of the append-only customer transaction log.
    
    ``txn_type`` keeps the raw string so that unknown types load fine;
    they simply do not move any balance.
    """
    customer_id: int
    txn_date: date
    txn_type: str
    txn_amount: Decimal
    
    def __post_init__(self):
        object.__setattr__(self, 'txn_date', to_date(self.txn_date))
        object.__setattr__(self, 'txn_amount', to_amount(self.txn_amount))
        
        if self.txn_amount < Decimal('0'):
            raise ValueError(
                f"Transaction amount must be non-negative, got {self.txn_amount}"
            )
    
    @property
    def is_deposit(self) -> bool:
        return self.txn_type == TransactionType.DEPOSIT.value
    
    @property
    def is_debit(self) -> bool:
        return self.txn_type in DEBIT_TYPES
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            'customer_id': self.customer_id,
            'txn_date': self.txn_date.isoformat(),
            'txn_type': self.txn_type,
            'txn_amount': str(self.txn_amount)
        }
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CustomerTransaction':
        return cls(
            customer_id=int(data['customer_id']),
            txn_date=to_date(data['txn_date']),
            txn_type=str(data['txn_type']),
            txn_amount=to_amount(data['txn_amount'])
        )


def signed_amount(txn: CustomerTransaction) -> Decimal:
    """Deposits add money, purchases and withdrawals remove it, anything else is 0"""
    if txn.is_deposit:
        return txn.txn_amount
    if txn.is_debit:
        return -txn.txn_amount
    return Decimal('0')
