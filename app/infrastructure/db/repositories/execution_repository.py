"""
Execution Record Repository
Append-only audit trail of installment outcomes
"""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.models import ExecutionOutcome, ExecutionStatus
from app.infrastructure.db.models import ExecutionRecordModel, RecurringPlanModel


def _decimal_or_none(value) -> Optional[Decimal]:
    return Decimal(str(value)) if value is not None else None


class ExecutionRecordRepository:
    """Repository for execution records (insert and read only)"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def create(self, outcome: ExecutionOutcome) -> int:
        """
        Insert the audit row for one slot

        Raises:
            IntegrityError: the (plan_id, scheduled_date) slot already has a row
        """
        model = ExecutionRecordModel(
            plan_id=outcome.plan_id,
            scheduled_date=date.fromisoformat(outcome.scheduled_date),
            status=outcome.status,
            amount=outcome.amount,
            units=outcome.units,
            nav_used=outcome.nav_used,
            balance_before=outcome.balance_before,
            balance_after=outcome.balance_after,
            failure_reason=outcome.failure_reason,
            executed_at=outcome.executed_at,
        )
        self.session.add(model)
        await self.session.flush()
        return model.id

    async def list_for_plan(self, plan_id: int) -> List[ExecutionOutcome]:
        result = await self.session.execute(
            select(ExecutionRecordModel, RecurringPlanModel)
            .join(RecurringPlanModel, ExecutionRecordModel.plan_id == RecurringPlanModel.id)
            .where(ExecutionRecordModel.plan_id == plan_id)
            .order_by(ExecutionRecordModel.scheduled_date)
        )
        return [self._to_domain(record, plan) for record, plan in result.all()]

    async def recent_failures(self, limit: int = 20) -> List[ExecutionOutcome]:
        result = await self.session.execute(
            select(ExecutionRecordModel, RecurringPlanModel)
            .join(RecurringPlanModel, ExecutionRecordModel.plan_id == RecurringPlanModel.id)
            .where(ExecutionRecordModel.status == ExecutionStatus.FAILED)
            .order_by(ExecutionRecordModel.executed_at.desc(), ExecutionRecordModel.id.desc())
            .limit(limit)
        )
        return [self._to_domain(record, plan) for record, plan in result.all()]

    async def get_statistics(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Dict[str, Dict[str, float]]:
        """
        Count and amount per status over scheduled dates in [start, end]

        Returns:
            {"SUCCESS": {"count": n, "amount": x}, "FAILED": ..., "SKIPPED": ...}
        """
        stmt = select(
            ExecutionRecordModel.status,
            func.count(ExecutionRecordModel.id),
            func.coalesce(func.sum(ExecutionRecordModel.amount), 0),
        ).group_by(ExecutionRecordModel.status)
        if start_date:
            stmt = stmt.where(ExecutionRecordModel.scheduled_date >= date.fromisoformat(start_date))
        if end_date:
            stmt = stmt.where(ExecutionRecordModel.scheduled_date <= date.fromisoformat(end_date))

        result = await self.session.execute(stmt)
        stats = {s.value: {"count": 0, "amount": 0.0} for s in ExecutionStatus}
        for status, count, amount in result.all():
            stats[status.value] = {"count": count, "amount": float(amount)}
        return stats

    @staticmethod
    def _to_domain(model: ExecutionRecordModel, plan: RecurringPlanModel) -> ExecutionOutcome:
        return ExecutionOutcome(
            plan_id=model.plan_id,
            user_id=plan.user_id,
            transaction_type=plan.transaction_type,
            scheduled_date=model.scheduled_date.isoformat(),
            status=model.status,
            amount=Decimal(str(model.amount)),
            executed_at=model.executed_at,
            units=_decimal_or_none(model.units),
            nav_used=_decimal_or_none(model.nav_used),
            balance_before=_decimal_or_none(model.balance_before),
            balance_after=_decimal_or_none(model.balance_after),
            failure_reason=model.failure_reason,
            record_id=model.id,
        )
