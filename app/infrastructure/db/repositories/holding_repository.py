"""
Holding Repository
Unit and cost-basis changes are atomic SQL deltas, never read-modify-write
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.dml import Update

from app.domain.models import HoldingPosition
from app.infrastructure.db.models import HoldingModel
from app.utils.time import now_local_naive


def build_add_units_stmt(
    user_id: int,
    scheme_code: int,
    units: Decimal,
    amount: Decimal,
) -> Update:
    """total_units = total_units + ?, invested_amount = invested_amount + ?"""
    return (
        update(HoldingModel)
        .where(
            HoldingModel.user_id == user_id,
            HoldingModel.scheme_code == scheme_code,
        )
        .values(
            total_units=HoldingModel.total_units + units,
            invested_amount=HoldingModel.invested_amount + amount,
            updated_at=now_local_naive(),
        )
        .execution_options(synchronize_session=False)
    )


def build_remove_units_stmt(user_id: int, scheme_code: int, units: Decimal) -> Update:
    """
    total_units = total_units - ?, with the cost basis reduced in proportion
    (invested_amount * units / total_units). Matches no row when the
    position holds fewer than ``units``.
    """
    return (
        update(HoldingModel)
        .where(
            HoldingModel.user_id == user_id,
            HoldingModel.scheme_code == scheme_code,
            HoldingModel.total_units > 0,
            HoldingModel.total_units >= units,
        )
        .values(
            invested_amount=(
                HoldingModel.invested_amount
                - HoldingModel.invested_amount * units / HoldingModel.total_units
            ),
            total_units=HoldingModel.total_units - units,
            updated_at=now_local_naive(),
        )
        .execution_options(synchronize_session=False)
    )


class HoldingRepository:
    """Repository for HoldingPosition"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def get(self, user_id: int, scheme_code: int) -> Optional[HoldingPosition]:
        result = await self.session.execute(
            select(HoldingModel)
            .where(
                HoldingModel.user_id == user_id,
                HoldingModel.scheme_code == scheme_code,
            )
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def list_for_user(self, user_id: int) -> List[HoldingPosition]:
        result = await self.session.execute(
            select(HoldingModel)
            .where(HoldingModel.user_id == user_id, HoldingModel.total_units > 0)
            .order_by(HoldingModel.invested_amount.desc())
            .execution_options(populate_existing=True)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def add_units(
        self,
        user_id: int,
        scheme_code: int,
        units: Decimal,
        amount: Decimal,
    ) -> None:
        """
        Add ``units`` bought for ``amount``, opening the position if needed.

        A concurrent first purchase of the same scheme surfaces as an
        IntegrityError on the unique (user_id, scheme_code) pair.
        """
        result = await self.session.execute(
            build_add_units_stmt(user_id, scheme_code, units, amount)
        )
        if result.rowcount == 1:
            return

        self.session.add(
            HoldingModel(
                user_id=user_id,
                scheme_code=scheme_code,
                total_units=units,
                invested_amount=amount,
                created_at=now_local_naive(),
                updated_at=now_local_naive(),
            )
        )
        await self.session.flush()

    async def remove_units(self, user_id: int, scheme_code: int, units: Decimal) -> bool:
        """
        Redeem ``units`` at proportional cost.

        Returns:
            False when the position is missing or too small (no change)
        """
        result = await self.session.execute(
            build_remove_units_stmt(user_id, scheme_code, units)
        )
        return result.rowcount == 1

    async def update_last_nav(
        self,
        user_id: int,
        scheme_code: int,
        nav: Decimal,
        nav_date: date,
    ) -> None:
        await self.session.execute(
            update(HoldingModel)
            .where(
                HoldingModel.user_id == user_id,
                HoldingModel.scheme_code == scheme_code,
            )
            .values(last_nav=nav, last_nav_date=nav_date)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    def _to_domain(model: HoldingModel) -> HoldingPosition:
        return HoldingPosition(
            user_id=model.user_id,
            scheme_code=model.scheme_code,
            total_units=Decimal(str(model.total_units)),
            invested_amount=Decimal(str(model.invested_amount)),
            last_nav=Decimal(str(model.last_nav)) if model.last_nav is not None else None,
            last_nav_date=model.last_nav_date.isoformat() if model.last_nav_date else None,
        )
