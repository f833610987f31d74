"""
Database Models (SQLAlchemy ORM)
Ledger, execution and notification tables are insert-only audit trails
"""

from sqlalchemy import (
    Column, Integer, String, Numeric, Date, DateTime,
    Boolean, ForeignKey, Text, Enum as SQLEnum, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from app.infrastructure.db.database import Base
from app.domain.models import (
    ExecutionStatus,
    JobRunStatus,
    LedgerEntryType,
    NotificationLevel,
    PlanStatus,
    TransactionType,
)
from app.utils.calendar import Frequency
from app.utils.time import now_local_naive


# Tables

class DemoAccountModel(Base):
    """Paper-trading cash account (one per user)"""
    __tablename__ = "demo_account"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, unique=True, index=True)
    balance = Column(Numeric(16, 2), nullable=False)
    created_at = Column(DateTime, nullable=False, default=now_local_naive)
    updated_at = Column(DateTime, nullable=False, default=now_local_naive)


class HoldingModel(Base):
    """Aggregated fund position per user and scheme"""
    __tablename__ = "holding"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    scheme_code = Column(Integer, nullable=False, index=True)

    total_units = Column(Numeric(18, 6), nullable=False, default=0)
    invested_amount = Column(Numeric(16, 2), nullable=False, default=0)

    last_nav = Column(Numeric(14, 4), nullable=True)
    last_nav_date = Column(Date, nullable=True)

    created_at = Column(DateTime, nullable=False, default=now_local_naive)
    updated_at = Column(DateTime, nullable=False, default=now_local_naive)

    __table_args__ = (
        UniqueConstraint("user_id", "scheme_code", name="uq_holding_user_scheme"),
    )


class RecurringPlanModel(Base):
    """SIP / SWP / STP plan (never deleted)"""
    __tablename__ = "recurring_plan"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    scheme_code = Column(Integer, nullable=False, index=True)
    source_scheme_code = Column(Integer, nullable=True)

    transaction_type = Column(SQLEnum(TransactionType), nullable=False)
    amount = Column(Numeric(16, 2), nullable=False)
    frequency = Column(SQLEnum(Frequency), nullable=False)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    next_due_date = Column(Date, nullable=False)

    installments = Column(Integer, nullable=True)
    remaining_installments = Column(Integer, nullable=True)
    executed_count = Column(Integer, nullable=False, default=0)

    status = Column(SQLEnum(PlanStatus), nullable=False, default=PlanStatus.ACTIVE)
    failure_reason = Column(Text, nullable=True)

    # Optimistic concurrency counter, bumped on every write
    version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=now_local_naive)
    updated_at = Column(DateTime, nullable=False, default=now_local_naive)

    # Relationships
    executions = relationship("ExecutionRecordModel", back_populates="plan")

    __table_args__ = (
        Index("ix_recurring_plan_due", "status", "next_due_date"),
    )


class ExecutionRecordModel(Base):
    """Installment outcome - AUDIT RECORD"""
    __tablename__ = "execution_record"

    id = Column(Integer, primary_key=True, autoincrement=True)
    plan_id = Column(Integer, ForeignKey("recurring_plan.id"), nullable=False, index=True)
    scheduled_date = Column(Date, nullable=False, index=True)

    status = Column(SQLEnum(ExecutionStatus), nullable=False)
    amount = Column(Numeric(16, 2), nullable=False)
    units = Column(Numeric(18, 6), nullable=True)
    nav_used = Column(Numeric(14, 4), nullable=True)
    balance_before = Column(Numeric(16, 2), nullable=True)
    balance_after = Column(Numeric(16, 2), nullable=True)
    failure_reason = Column(Text, nullable=True)

    executed_at = Column(DateTime, nullable=False, default=now_local_naive)

    # Relationships
    plan = relationship("RecurringPlanModel", back_populates="executions")

    __table_args__ = (
        UniqueConstraint("plan_id", "scheduled_date", name="uq_execution_plan_slot"),
        Index("ix_execution_record_status", "status", "scheduled_date"),
    )


class LedgerEntryModel(Base):
    """Cash ledger (insert-only)"""
    __tablename__ = "ledger_entry"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("recurring_plan.id"), nullable=True)

    entry_type = Column(SQLEnum(LedgerEntryType), nullable=False)
    amount = Column(Numeric(16, 2), nullable=False)
    balance_after = Column(Numeric(16, 2), nullable=False)
    description = Column(String(255), nullable=False)

    created_at = Column(DateTime, nullable=False, default=now_local_naive)

    __table_args__ = (
        Index("ix_ledger_entry_user_created", "user_id", "created_at"),
    )


class FundNavModel(Base):
    """Local NAV history (populated by the ingestion side)"""
    __tablename__ = "fund_nav"

    id = Column(Integer, primary_key=True, autoincrement=True)
    scheme_code = Column(Integer, nullable=False, index=True)
    nav_date = Column(Date, nullable=False)
    nav = Column(Numeric(14, 4), nullable=False)
    fetched_at = Column(DateTime, nullable=False, default=now_local_naive)

    __table_args__ = (
        Index("ix_fund_nav_unique", "scheme_code", "nav_date", unique=True),
    )


class NotificationModel(Base):
    """User inbox"""
    __tablename__ = "notification"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    level = Column(SQLEnum(NotificationLevel), nullable=False, default=NotificationLevel.INFO)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=now_local_naive)


class JobRunLogModel(Base):
    """Scheduler job run log"""
    __tablename__ = "job_run_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_name = Column(String(100), nullable=False, index=True)
    status = Column(SQLEnum(JobRunStatus), nullable=False)
    triggered_by = Column(String(20), nullable=False)  # SCHEDULE / MANUAL

    started_at = Column(DateTime, nullable=False, default=now_local_naive)
    finished_at = Column(DateTime, nullable=True)
    duration_ms = Column(Integer, nullable=True)
    message = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_job_run_log_job_started", "job_name", "started_at"),
    )
