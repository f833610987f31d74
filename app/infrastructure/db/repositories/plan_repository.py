"""
Recurring Plan Repository
Plans are never deleted; every write goes through an optimistic version check
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.models import PlanStatus, RecurringPlan
from app.infrastructure.db.models import RecurringPlanModel
from app.utils.time import now_local_naive


def _to_db_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _from_db_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


class RecurringPlanRepository:
    """Repository for RecurringPlan"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def create(self, plan: RecurringPlan) -> RecurringPlan:
        """
        Insert a new plan

        Args:
            plan: RecurringPlan without an id

        Returns:
            The stored plan (id assigned)
        """
        model = RecurringPlanModel(
            user_id=plan.user_id,
            scheme_code=plan.scheme_code,
            source_scheme_code=plan.source_scheme_code,
            transaction_type=plan.transaction_type,
            amount=plan.amount,
            frequency=plan.frequency,
            start_date=_to_db_date(plan.start_date),
            end_date=_to_db_date(plan.end_date),
            next_due_date=_to_db_date(plan.next_due_date),
            installments=plan.installments,
            remaining_installments=plan.remaining_installments,
            executed_count=plan.executed_count,
            status=plan.status,
            failure_reason=plan.failure_reason,
            version=0,
            created_at=now_local_naive(),
            updated_at=now_local_naive(),
        )
        self.session.add(model)
        await self.session.flush()
        return self._to_domain(model)

    async def get(self, plan_id: int) -> Optional[RecurringPlan]:
        result = await self.session.execute(
            select(RecurringPlanModel)
            .where(RecurringPlanModel.id == plan_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def list_for_user(
        self,
        user_id: int,
        status: Optional[PlanStatus] = None,
    ) -> List[RecurringPlan]:
        stmt = select(RecurringPlanModel).where(RecurringPlanModel.user_id == user_id)
        if status is not None:
            stmt = stmt.where(RecurringPlanModel.status == status)
        result = await self.session.execute(
            stmt.order_by(RecurringPlanModel.created_at.desc(), RecurringPlanModel.id.desc())
            .execution_options(populate_existing=True)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def find_due_ids(self, current_date: str) -> List[int]:
        """Ids of ACTIVE plans with next_due_date on or before ``current_date``"""
        result = await self.session.execute(
            select(RecurringPlanModel.id)
            .where(
                RecurringPlanModel.status == PlanStatus.ACTIVE,
                RecurringPlanModel.next_due_date <= _to_db_date(current_date),
            )
            .order_by(RecurringPlanModel.next_due_date, RecurringPlanModel.id)
        )
        return list(result.scalars().all())

    async def save_transition(self, before: RecurringPlan, after: RecurringPlan) -> bool:
        """
        Persist ``after`` only if the row still matches ``before``.

        The guard covers version, status and next_due_date, so a slot can be
        claimed by exactly one writer.

        Returns:
            True when the row was updated (version bumped), False when
            another writer got there first
        """
        result = await self.session.execute(
            update(RecurringPlanModel)
            .where(
                RecurringPlanModel.id == before.id,
                RecurringPlanModel.version == before.version,
                RecurringPlanModel.status == before.status,
                RecurringPlanModel.next_due_date == _to_db_date(before.next_due_date),
            )
            .values(
                next_due_date=_to_db_date(after.next_due_date),
                remaining_installments=after.remaining_installments,
                executed_count=after.executed_count,
                status=after.status,
                failure_reason=after.failure_reason,
                version=RecurringPlanModel.version + 1,
                updated_at=now_local_naive(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def _to_domain(model: RecurringPlanModel) -> RecurringPlan:
        return RecurringPlan(
            id=model.id,
            user_id=model.user_id,
            scheme_code=model.scheme_code,
            transaction_type=model.transaction_type,
            amount=Decimal(str(model.amount)),
            frequency=model.frequency,
            start_date=_from_db_date(model.start_date),
            end_date=_from_db_date(model.end_date),
            next_due_date=_from_db_date(model.next_due_date),
            installments=model.installments,
            remaining_installments=model.remaining_installments,
            status=model.status,
            executed_count=model.executed_count or 0,
            source_scheme_code=model.source_scheme_code,
            failure_reason=model.failure_reason,
            version=model.version or 0,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
