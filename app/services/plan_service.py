"""
SERVICE — RECURRING PLANS

• Create SIP / SWP / STP plans
• Cancel / pause / resume with ownership and version checks
• One-off lump-sum purchases
• No installment execution here (see ExecutionEngine)
"""

import logging
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Callable, List, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.domain.errors import (
    InvalidState,
    NavUnavailable,
    PlanNotFound,
    Unauthorized,
    ValidationError,
)
from app.domain.models import (
    ExecutionOutcome,
    PlanStatus,
    RecurringPlan,
    TransactionType,
)
from app.domain.services import plan_state_machine as psm
from app.domain.services.execution_engine import buy_units, quantize_amount
from app.infrastructure.db.repositories.execution_repository import ExecutionRecordRepository
from app.infrastructure.db.repositories.nav_repository import FundNavRepository
from app.infrastructure.db.repositories.plan_repository import RecurringPlanRepository
from app.services.portfolio_service import PortfolioService
from app.utils.calendar import DateLike, Frequency, parse_frequency, to_calendar_string, today_in

logger = logging.getLogger(__name__)

# Attempts for a user transition that keeps losing the version race
MAX_TRANSITION_ATTEMPTS = 3


def parse_transaction_type(value: Union[str, TransactionType]) -> TransactionType:
    if isinstance(value, TransactionType):
        return value
    try:
        return TransactionType(str(value).strip().upper())
    except ValueError:
        raise ValidationError(
            f"Unsupported transaction type: {value}",
            details={"transaction_type": str(value)},
        ) from None


def parse_amount(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}") from None
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("amount must be greater than 0")
    return quantize_amount(amount)


class PlanService:
    """Plan lifecycle operations bound to one session"""

    def __init__(self, session: AsyncSession, timezone: Optional[str] = None):
        self.session = session
        self.timezone = timezone or settings.TIMEZONE
        self.plans = RecurringPlanRepository(session)
        self.executions = ExecutionRecordRepository(session)
        self.navs = FundNavRepository(session)
        self.portfolio = PortfolioService(session)

    async def create_plan(
        self,
        user_id: int,
        scheme_code: int,
        transaction_type: Union[str, TransactionType],
        amount,
        frequency: Union[str, Frequency],
        start_date: Optional[DateLike] = None,
        end_date: Optional[DateLike] = None,
        installments: Optional[int] = None,
        source_scheme_code: Optional[int] = None,
    ) -> RecurringPlan:
        """
        Create an ACTIVE plan due on its start date

        Args:
            user_id: Owner
            scheme_code: Fund bought (SIP/STP) or sold (SWP)
            transaction_type: SIP / SWP / STP
            amount: Per-installment amount (> 0)
            frequency: DAILY / WEEKLY / MONTHLY / QUARTERLY / YEARLY
            start_date: First installment, defaults to today
            end_date: Last allowed installment date (inclusive)
            installments: Optional installment count
            source_scheme_code: Fund redeemed by an STP

        Raises:
            ValidationError, InvalidFrequency, InvalidDate
        """
        tx_type = parse_transaction_type(transaction_type)
        freq = parse_frequency(frequency)
        plan_amount = parse_amount(amount)

        today = today_in(self.timezone)
        start = to_calendar_string(start_date, self.timezone) if start_date is not None else today
        end = to_calendar_string(end_date, self.timezone) if end_date is not None else None

        if start < today:
            raise ValidationError(
                f"start_date {start} is in the past (today is {today})",
                details={"start_date": start, "today": today},
            )

        if tx_type == TransactionType.STP:
            if source_scheme_code is None:
                raise ValidationError("STP requires source_scheme_code")
            if source_scheme_code == scheme_code:
                raise ValidationError("STP source and target schemes must differ")
        elif source_scheme_code is not None:
            raise ValidationError(f"source_scheme_code only applies to STP, not {tx_type.value}")

        await self.portfolio.open_account(user_id)

        plan = psm.new_plan(
            user_id=user_id,
            scheme_code=scheme_code,
            transaction_type=tx_type,
            amount=plan_amount,
            frequency=freq,
            start_date=start,
            end_date=end,
            installments=installments,
            source_scheme_code=source_scheme_code,
        )
        stored = await self.plans.create(plan)

        logger.info(
            f"📅 Created {tx_type.value} plan {stored.id} for user {user_id}: "
            f"₹{plan_amount} {freq.value} from {start}"
            + (f" to {end}" if end else "")
        )
        return stored

    async def get_plan(self, user_id: int, plan_id: int) -> RecurringPlan:
        plan = await self.plans.get(plan_id)
        if plan is None:
            raise PlanNotFound(plan_id)
        if plan.user_id != user_id:
            raise Unauthorized(f"Plan {plan_id} does not belong to user {user_id}")
        return plan

    async def list_plans(
        self,
        user_id: int,
        status: Optional[Union[str, PlanStatus]] = None,
    ) -> List[RecurringPlan]:
        if status is not None and not isinstance(status, PlanStatus):
            try:
                status = PlanStatus(str(status).strip().upper())
            except ValueError:
                raise ValidationError(f"Unknown plan status: {status}") from None
        return await self.plans.list_for_user(user_id, status=status)

    async def get_plan_executions(self, user_id: int, plan_id: int) -> List[ExecutionOutcome]:
        await self.get_plan(user_id, plan_id)
        return await self.executions.list_for_plan(plan_id)

    async def cancel_plan(self, user_id: int, plan_id: int) -> dict:
        """
        Stop a plan. The result is always CANCELLED.

        Raises:
            PlanNotFound, Unauthorized, InvalidState (already CANCELLED/COMPLETED)
        """
        plan = await self._transition(user_id, plan_id, psm.cancel)
        logger.info(f"🛑 Plan {plan_id} cancelled by user {user_id}")
        return {"success": True, "plan_id": plan.id, "status": plan.status.value}

    async def pause_plan(self, user_id: int, plan_id: int) -> RecurringPlan:
        plan = await self._transition(user_id, plan_id, psm.pause)
        logger.info(f"⏸️ Plan {plan_id} paused by user {user_id}")
        return plan

    async def resume_plan(self, user_id: int, plan_id: int) -> RecurringPlan:
        today = today_in(self.timezone)
        plan = await self._transition(user_id, plan_id, lambda p: psm.resume(p, today))
        logger.info(
            f"▶️ Plan {plan_id} resumed by user {user_id}: "
            f"status={plan.status.value} next_due={plan.next_due_date}"
        )
        return plan

    async def _transition(
        self,
        user_id: int,
        plan_id: int,
        apply: Callable[[RecurringPlan], RecurringPlan],
    ) -> RecurringPlan:
        """Apply a user transition under an optimistic version check."""
        for attempt in range(1, MAX_TRANSITION_ATTEMPTS + 1):
            current = await self.get_plan(user_id, plan_id)
            updated = apply(current)
            if await self.plans.save_transition(current, updated):
                return replace(updated, version=current.version + 1)
            logger.info(f"Plan {plan_id} changed concurrently (attempt {attempt}), retrying")

        raise InvalidState(f"Plan {plan_id} is being modified concurrently, try again")

    async def invest_lump_sum(self, user_id: int, scheme_code: int, amount) -> dict:
        """
        One-off purchase at the latest NAV

        Raises:
            NavUnavailable, InsufficientBalance
        """
        lump_amount = parse_amount(amount)
        await self.portfolio.open_account(user_id)

        today = today_in(self.timezone)
        quote = await self.navs.get_latest_nav(scheme_code, as_of=today)
        if quote is None:
            raise NavUnavailable(f"No NAV available for scheme {scheme_code}")

        result = await buy_units(
            self.session,
            user_id,
            scheme_code,
            lump_amount,
            quote,
            description=f"Lump sum purchase of scheme {scheme_code}",
        )
        logger.info(
            f"💸 Lump sum ₹{lump_amount} into scheme {scheme_code} for user {user_id}: "
            f"{result['units']} units @ {quote.nav}"
        )
        return {
            "success": True,
            "scheme_code": scheme_code,
            "amount": float(lump_amount),
            "units": float(result["units"]),
            "nav_used": float(result["nav_used"]),
            "nav_date": quote.nav_date,
            "balance_after": float(result["balance_after"]),
        }
