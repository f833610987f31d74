"""
Demo Account Repository
Balance changes are single-statement deltas guarded in the WHERE clause
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.dml import Update

from app.domain.models import DemoAccount
from app.infrastructure.db.models import DemoAccountModel
from app.utils.time import now_local_naive


def build_debit_stmt(user_id: int, amount: Decimal) -> Update:
    """balance = balance - ?, only while balance >= ?"""
    return (
        update(DemoAccountModel)
        .where(
            DemoAccountModel.user_id == user_id,
            DemoAccountModel.balance >= amount,
        )
        .values(
            balance=DemoAccountModel.balance - amount,
            updated_at=now_local_naive(),
        )
        .execution_options(synchronize_session=False)
    )


def build_credit_stmt(user_id: int, amount: Decimal) -> Update:
    """balance = balance + ?"""
    return (
        update(DemoAccountModel)
        .where(DemoAccountModel.user_id == user_id)
        .values(
            balance=DemoAccountModel.balance + amount,
            updated_at=now_local_naive(),
        )
        .execution_options(synchronize_session=False)
    )


class DemoAccountRepository:
    """Repository for DemoAccount"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def get(self, user_id: int) -> Optional[DemoAccount]:
        result = await self.session.execute(
            select(DemoAccountModel)
            .where(DemoAccountModel.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def get_balance(self, user_id: int) -> Optional[Decimal]:
        result = await self.session.execute(
            select(DemoAccountModel.balance).where(DemoAccountModel.user_id == user_id)
        )
        balance = result.scalar_one_or_none()
        return Decimal(str(balance)) if balance is not None else None

    async def create(self, user_id: int, balance: Decimal) -> DemoAccount:
        model = DemoAccountModel(
            user_id=user_id,
            balance=balance,
            created_at=now_local_naive(),
            updated_at=now_local_naive(),
        )
        self.session.add(model)
        await self.session.flush()
        return self._to_domain(model)

    async def debit(self, user_id: int, amount: Decimal) -> bool:
        """
        Atomically subtract ``amount``.

        Returns:
            False when the account is missing or the balance is short
            (nothing is changed in that case)
        """
        result = await self.session.execute(build_debit_stmt(user_id, amount))
        return result.rowcount == 1

    async def credit(self, user_id: int, amount: Decimal) -> bool:
        """Atomically add ``amount``; False when the account is missing"""
        result = await self.session.execute(build_credit_stmt(user_id, amount))
        return result.rowcount == 1

    @staticmethod
    def _to_domain(model: DemoAccountModel) -> DemoAccount:
        return DemoAccount(
            user_id=model.user_id,
            balance=Decimal(str(model.balance)),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
