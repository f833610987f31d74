# app/services/portfolio_service.py

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.domain.errors import AccountNotFound, ValidationError
from app.domain.models import DemoAccount
from app.infrastructure.db.repositories.account_repository import DemoAccountRepository
from app.infrastructure.db.repositories.holding_repository import HoldingRepository
from app.infrastructure.db.repositories.ledger_repository import LedgerRepository
from app.infrastructure.db.repositories.nav_repository import FundNavRepository
from app.infrastructure.db.repositories.notification_repository import NotificationRepository

logger = logging.getLogger(__name__)


class PortfolioService:
    """Demo account, holdings and cash ledger for one session"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.accounts = DemoAccountRepository(session)
        self.holdings = HoldingRepository(session)
        self.ledger = LedgerRepository(session)
        self.navs = FundNavRepository(session)
        self.notifications = NotificationRepository(session)

    async def open_account(
        self,
        user_id: int,
        initial_balance: Optional[Decimal] = None,
    ) -> DemoAccount:
        """Return the user's account, opening it with the paper balance if missing"""
        existing = await self.accounts.get(user_id)
        if existing:
            return existing

        balance = Decimal(str(
            initial_balance if initial_balance is not None else settings.INITIAL_DEMO_BALANCE
        ))
        if balance < 0:
            raise ValidationError("initial_balance cannot be negative")

        account = await self.accounts.create(user_id, balance)
        logger.info(f"💰 Opened demo account for user {user_id} with ₹{balance}")
        return account

    async def get_balance(self, user_id: int) -> dict:
        account = await self.accounts.get(user_id)
        if account is None:
            raise AccountNotFound(user_id)
        return {
            "user_id": user_id,
            "balance": float(account.balance),
            "updated_at": account.updated_at.isoformat() if account.updated_at else None,
        }

    async def get_portfolio(self, user_id: int) -> dict:
        """Holdings valued at the latest known NAV, plus totals"""
        account = await self.accounts.get(user_id)
        if account is None:
            raise AccountNotFound(user_id)

        positions = []
        total_invested = Decimal("0")
        current_value = Decimal("0")

        for holding in await self.holdings.list_for_user(user_id):
            quote = await self.navs.get_latest_nav(holding.scheme_code)
            nav = quote.nav if quote else holding.last_nav
            nav_date = quote.nav_date if quote else holding.last_nav_date

            invested = holding.invested_amount
            total_invested += invested

            if nav is None:
                logger.warning("NAV missing for scheme %s", holding.scheme_code)
                positions.append({
                    "scheme_code": holding.scheme_code,
                    "units": float(holding.total_units),
                    "invested_amount": float(invested),
                    "average_cost": float(round(holding.average_cost, 4)),
                    "current_nav": None,
                    "nav_date": None,
                    "current_value": None,
                    "returns": None,
                    "returns_pct": None,
                })
                continue

            value = holding.total_units * nav
            current_value += value
            returns = value - invested
            positions.append({
                "scheme_code": holding.scheme_code,
                "units": float(holding.total_units),
                "invested_amount": float(invested),
                "average_cost": float(round(holding.average_cost, 4)),
                "current_nav": float(nav),
                "nav_date": nav_date,
                "current_value": float(round(value, 2)),
                "returns": float(round(returns, 2)),
                "returns_pct": float(round(returns / invested * 100, 2)) if invested > 0 else 0.0,
            })

        total_returns = current_value - total_invested
        return {
            "user_id": user_id,
            "balance": float(account.balance),
            "positions": positions,
            "summary": {
                "total_invested": float(round(total_invested, 2)),
                "current_value": float(round(current_value, 2)),
                "returns": float(round(total_returns, 2)),
                "returns_pct": (
                    float(round(total_returns / total_invested * 100, 2))
                    if total_invested > 0 else 0.0
                ),
                "net_worth": float(round(account.balance + current_value, 2)),
            },
        }

    async def get_ledger(self, user_id: int, limit: int = 50, offset: int = 0) -> dict:
        if limit <= 0 or limit > 500:
            raise ValidationError("limit must be between 1 and 500")
        if offset < 0:
            raise ValidationError("offset cannot be negative")

        entries, total = await self.ledger.list_for_user(user_id, limit=limit, offset=offset)
        return {
            "total": total,
            "limit": limit,
            "offset": offset,
            "entries": [
                {
                    "id": e.id,
                    "plan_id": e.plan_id,
                    "entry_type": e.entry_type.value,
                    "amount": float(e.amount),
                    "balance_after": float(e.balance_after),
                    "description": e.description,
                    "created_at": e.created_at.isoformat() if e.created_at else None,
                }
                for e in entries
            ],
        }

    async def get_notifications(self, user_id: int, unread_only: bool = False) -> list:
        return await self.notifications.list_for_user(user_id, unread_only=unread_only)
