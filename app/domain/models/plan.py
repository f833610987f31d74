"""
DOMAIN MODELS — RECURRING PLAN

Passive record of a SIP / SWP / STP. All transitions are applied from
outside by the plan state machine; the record never mutates itself.
Dates are canonical "YYYY-MM-DD" calendar strings.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from app.utils.calendar import Frequency


class TransactionType(str, Enum):
    """Recurring transaction type"""
    SIP = "SIP"
    SWP = "SWP"
    STP = "STP"


class PlanStatus(str, Enum):
    """Lifecycle state of a recurring plan"""
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


TERMINAL_STATUSES = frozenset({PlanStatus.CANCELLED, PlanStatus.COMPLETED})


@dataclass(frozen=True)
class RecurringPlan:
    """Recurring transaction plan - Immutable snapshot"""
    id: Optional[int]
    user_id: int
    scheme_code: int
    transaction_type: TransactionType
    amount: Decimal
    frequency: Frequency
    start_date: str
    end_date: Optional[str]
    next_due_date: str
    installments: Optional[int]
    remaining_installments: Optional[int]
    status: PlanStatus
    executed_count: int = 0
    source_scheme_code: Optional[int] = None
    failure_reason: Optional[str] = None
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.amount <= Decimal("0"):
            raise ValueError("Plan amount must be positive")
        if self.remaining_installments is not None and self.remaining_installments < 0:
            raise ValueError("Remaining installments cannot be negative")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "scheme_code": self.scheme_code,
            "source_scheme_code": self.source_scheme_code,
            "transaction_type": self.transaction_type.value,
            "amount": float(self.amount),
            "frequency": self.frequency.value,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "next_due_date": self.next_due_date,
            "installments": self.installments,
            "remaining_installments": self.remaining_installments,
            "executed_count": self.executed_count,
            "status": self.status.value,
            "failure_reason": self.failure_reason,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
