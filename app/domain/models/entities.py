"""
Domain Models - Entities
Pure domain objects with no infrastructure dependencies
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class LedgerEntryType(str, Enum):
    """Direction of a cash ledger movement"""
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class NotificationLevel(str, Enum):
    """User notification severity"""
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    INFO = "INFO"


class JobRunStatus(str, Enum):
    """Scheduler job run state"""
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


@dataclass(frozen=True)
class DemoAccount:
    """Paper-trading cash account - Immutable snapshot"""
    user_id: int
    balance: Decimal
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class HoldingPosition:
    """Aggregated fund position - Immutable snapshot"""
    user_id: int
    scheme_code: int
    total_units: Decimal
    invested_amount: Decimal
    last_nav: Optional[Decimal] = None
    last_nav_date: Optional[str] = None

    @property
    def average_cost(self) -> Decimal:
        """Invested amount per unit (0 for an empty position)"""
        if self.total_units <= Decimal("0"):
            return Decimal("0")
        return self.invested_amount / self.total_units


@dataclass(frozen=True)
class LedgerEntry:
    """Cash ledger line - Immutable audit record"""
    user_id: int
    entry_type: LedgerEntryType
    amount: Decimal
    balance_after: Decimal
    description: str
    plan_id: Optional[int] = None
    created_at: Optional[datetime] = None
    id: Optional[int] = None

    def __post_init__(self):
        if self.amount <= Decimal("0"):
            raise ValueError("Ledger amount must be positive")
