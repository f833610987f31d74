"""
Fund NAV Repository
Local NAV history; default NAV source for the execution engine
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.models import NavQuote
from app.infrastructure.db.models import FundNavModel
from app.utils.time import now_local_naive


class FundNavRepository:
    """Repository for fund NAV rows"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def get_latest_nav(
        self,
        scheme_code: int,
        as_of: Optional[str] = None,
    ) -> Optional[NavQuote]:
        """
        Latest NAV for a scheme

        Args:
            scheme_code: Fund scheme code
            as_of: Only consider NAVs dated on or before this day

        Returns:
            NavQuote or None when no NAV is known
        """
        stmt = select(FundNavModel).where(FundNavModel.scheme_code == scheme_code)
        if as_of:
            stmt = stmt.where(FundNavModel.nav_date <= date.fromisoformat(as_of))
        result = await self.session.execute(
            stmt.order_by(FundNavModel.nav_date.desc()).limit(1)
        )
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return NavQuote(
            scheme_code=model.scheme_code,
            nav=Decimal(str(model.nav)),
            nav_date=model.nav_date.isoformat(),
        )

    async def upsert_nav(self, scheme_code: int, nav_date: str, nav: Decimal) -> None:
        """Insert or overwrite the NAV of one scheme on one day"""
        if nav <= Decimal("0"):
            raise ValueError("NAV must be positive")

        result = await self.session.execute(
            select(FundNavModel).where(
                FundNavModel.scheme_code == scheme_code,
                FundNavModel.nav_date == date.fromisoformat(nav_date),
            )
        )
        model = result.scalar_one_or_none()
        if model:
            model.nav = nav
            model.fetched_at = now_local_naive()
        else:
            self.session.add(
                FundNavModel(
                    scheme_code=scheme_code,
                    nav_date=date.fromisoformat(nav_date),
                    nav=nav,
                    fetched_at=now_local_naive(),
                )
            )
        await self.session.flush()
