"""
DOMAIN MODELS — INSTALLMENT EXECUTION

Immutable structures describing installment outcomes and batch summaries.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from app.domain.models.plan import TransactionType


class ExecutionStatus(str, Enum):
    """Outcome of one scheduled installment"""
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


@dataclass(frozen=True)
class NavQuote:
    """Per-unit price of a fund on a calendar day"""
    scheme_code: int
    nav: Decimal
    nav_date: str


@dataclass(frozen=True)
class ExecutionOutcome:
    """
    Result of one scheduled installment (mirrors the persisted audit row).
    """
    plan_id: int
    user_id: int
    transaction_type: TransactionType
    scheduled_date: str
    status: ExecutionStatus
    amount: Decimal
    executed_at: datetime
    units: Optional[Decimal] = None
    nav_used: Optional[Decimal] = None
    balance_before: Optional[Decimal] = None
    balance_after: Optional[Decimal] = None
    failure_reason: Optional[str] = None
    record_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "record_id": self.record_id,
            "plan_id": self.plan_id,
            "user_id": self.user_id,
            "transaction_type": self.transaction_type.value,
            "scheduled_date": self.scheduled_date,
            "status": self.status.value,
            "amount": float(self.amount),
            "units": float(self.units) if self.units is not None else None,
            "nav_used": float(self.nav_used) if self.nav_used is not None else None,
            "balance_before": float(self.balance_before) if self.balance_before is not None else None,
            "balance_after": float(self.balance_after) if self.balance_after is not None else None,
            "failure_reason": self.failure_reason,
            "executed_at": self.executed_at.isoformat(),
        }


@dataclass
class ExecutionSummary:
    """Aggregate result of one engine pass"""
    target_date: str
    total_due: int = 0
    executed: int = 0
    failed: int = 0
    skipped: int = 0
    errors: int = 0
    total_invested: Decimal = Decimal("0")
    total_withdrawn: Decimal = Decimal("0")
    total_transferred: Decimal = Decimal("0")
    records: List[ExecutionOutcome] = field(default_factory=list)
    duration_ms: int = 0

    def add(self, outcome: ExecutionOutcome) -> None:
        self.records.append(outcome)
        if outcome.status == ExecutionStatus.SUCCESS:
            self.executed += 1
            if outcome.transaction_type == TransactionType.SIP:
                self.total_invested += outcome.amount
            elif outcome.transaction_type == TransactionType.SWP:
                self.total_withdrawn += outcome.amount
            else:
                self.total_transferred += outcome.amount
        elif outcome.status == ExecutionStatus.FAILED:
            self.failed += 1
        else:
            self.skipped += 1

    def to_dict(self) -> dict:
        return {
            "target_date": self.target_date,
            "total_due": self.total_due,
            "executed": self.executed,
            "failed": self.failed,
            "skipped": self.skipped,
            "errors": self.errors,
            "total_invested": float(self.total_invested),
            "total_withdrawn": float(self.total_withdrawn),
            "total_transferred": float(self.total_transferred),
            "duration_ms": self.duration_ms,
            "records": [r.to_dict() for r in self.records],
        }
