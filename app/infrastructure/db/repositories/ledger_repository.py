"""
Ledger Repository
Cash movements, written in the same transaction as the balance change
"""

from decimal import Decimal
from typing import List, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.models import LedgerEntry
from app.infrastructure.db.models import LedgerEntryModel
from app.utils.time import now_local_naive


class LedgerRepository:
    """Repository for LedgerEntry (insert-only)"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def add(self, entry: LedgerEntry) -> int:
        model = LedgerEntryModel(
            user_id=entry.user_id,
            plan_id=entry.plan_id,
            entry_type=entry.entry_type,
            amount=entry.amount,
            balance_after=entry.balance_after,
            description=entry.description[:255],
            created_at=entry.created_at or now_local_naive(),
        )
        self.session.add(model)
        await self.session.flush()
        return model.id

    async def list_for_user(
        self,
        user_id: int,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[LedgerEntry], int]:
        """
        Page through a user's ledger, newest first

        Returns:
            (entries, total_count)
        """
        total = await self.session.scalar(
            select(func.count(LedgerEntryModel.id)).where(LedgerEntryModel.user_id == user_id)
        )
        result = await self.session.execute(
            select(LedgerEntryModel)
            .where(LedgerEntryModel.user_id == user_id)
            .order_by(LedgerEntryModel.created_at.desc(), LedgerEntryModel.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return [self._to_domain(m) for m in result.scalars().all()], int(total or 0)

    @staticmethod
    def _to_domain(model: LedgerEntryModel) -> LedgerEntry:
        return LedgerEntry(
            id=model.id,
            user_id=model.user_id,
            plan_id=model.plan_id,
            entry_type=model.entry_type,
            amount=Decimal(str(model.amount)),
            balance_after=Decimal(str(model.balance_after)),
            description=model.description,
            created_at=model.created_at,
        )
