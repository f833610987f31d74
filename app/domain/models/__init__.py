"""
Domain Models Package
Export all domain entities
"""

from .entities import (
    # Enums
    JobRunStatus,
    LedgerEntryType,
    NotificationLevel,

    # Entities
    DemoAccount,
    HoldingPosition,
    LedgerEntry,
)
from .execution import (
    ExecutionOutcome,
    ExecutionStatus,
    ExecutionSummary,
    NavQuote,
)
from .plan import (
    PlanStatus,
    RecurringPlan,
    TERMINAL_STATUSES,
    TransactionType,
)

__all__ = [
    # Enums
    "ExecutionStatus",
    "JobRunStatus",
    "LedgerEntryType",
    "NotificationLevel",
    "PlanStatus",
    "TransactionType",

    # Entities
    "DemoAccount",
    "ExecutionOutcome",
    "ExecutionSummary",
    "HoldingPosition",
    "LedgerEntry",
    "NavQuote",
    "RecurringPlan",
    "TERMINAL_STATUSES",
]
