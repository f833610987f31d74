"""
EXECUTION ENGINE

Executes due SIP / SWP / STP installments against demo accounts and holdings.

RESPONSIBILITIES:
- Find ACTIVE plans due on or before the target day
- Realize every due slot of a plan in order (catch-up)
- Record one ExecutionRecord per slot
- Summarize the pass

RULES:
✅ One transaction per slot (claim + money movement + audit row)
✅ Balance and units change only through guarded atomic deltas
✅ Business failures become FAILED records and advance the schedule
✅ Infrastructure failures roll the slot back and leave the plan due
❌ One plan never blocks another
"""

import logging
import time
from datetime import date
from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Awaitable, Callable, Optional, Protocol

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.domain.errors import (
    AccountNotFound,
    BusinessRuleError,
    InsufficientBalance,
    InsufficientUnits,
    NavUnavailable,
)
from app.domain.models import (
    ExecutionOutcome,
    ExecutionStatus,
    ExecutionSummary,
    LedgerEntry,
    LedgerEntryType,
    NavQuote,
    NotificationLevel,
    PlanStatus,
    RecurringPlan,
    TransactionType,
)
from app.domain.services import plan_state_machine as psm
from app.infrastructure.db.repositories.account_repository import DemoAccountRepository
from app.infrastructure.db.repositories.execution_repository import ExecutionRecordRepository
from app.infrastructure.db.repositories.holding_repository import HoldingRepository
from app.infrastructure.db.repositories.ledger_repository import LedgerRepository
from app.infrastructure.db.repositories.nav_repository import FundNavRepository
from app.infrastructure.db.repositories.notification_repository import NotificationRepository
from app.infrastructure.db.repositories.plan_repository import RecurringPlanRepository
from app.utils.calendar import DateLike, to_calendar_string, today_in
from app.utils.time import now_local_naive

logger = logging.getLogger(__name__)

AMOUNT_QUANT = Decimal("0.01")
UNITS_QUANT = Decimal("0.000001")


class NavSource(Protocol):
    """Protocol for NAV lookups - ASYNC"""

    async def get_latest_nav(
        self,
        scheme_code: int,
        as_of: Optional[str] = None,
    ) -> Optional[NavQuote]:
        """Latest NAV dated on or before ``as_of``"""
        ...


RunNotifier = Callable[[ExecutionSummary], Awaitable[None]]


def quantize_units(amount: Decimal, nav: Decimal) -> Decimal:
    return (amount / nav).quantize(UNITS_QUANT, rounding=ROUND_HALF_UP)


def quantize_amount(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(AMOUNT_QUANT, rounding=ROUND_HALF_UP)


# ------------------------------------------------------------------
# Trade primitives (shared with the lump-sum path)
# ------------------------------------------------------------------

async def buy_units(
    session: AsyncSession,
    user_id: int,
    scheme_code: int,
    amount: Decimal,
    quote: NavQuote,
    description: str,
    plan_id: Optional[int] = None,
) -> dict:
    """
    Debit cash and add units at ``quote``.

    Raises:
        InsufficientBalance: balance below ``amount`` (nothing changed)
    """
    accounts = DemoAccountRepository(session)
    holdings = HoldingRepository(session)

    units = quantize_units(amount, quote.nav)
    if not await accounts.debit(user_id, amount):
        balance = await accounts.get_balance(user_id)
        raise InsufficientBalance(
            f"Insufficient balance: required ₹{amount}, available ₹{balance or 0}",
            details={"required": float(amount), "available": float(balance or 0)},
        )

    balance_after = await accounts.get_balance(user_id)
    await holdings.add_units(user_id, scheme_code, units, amount)
    await holdings.update_last_nav(user_id, scheme_code, quote.nav, _as_date(quote.nav_date))
    await LedgerRepository(session).add(
        LedgerEntry(
            user_id=user_id,
            plan_id=plan_id,
            entry_type=LedgerEntryType.DEBIT,
            amount=amount,
            balance_after=balance_after,
            description=description,
        )
    )
    return {
        "units": units,
        "nav_used": quote.nav,
        "balance_before": balance_after + amount,
        "balance_after": balance_after,
    }


async def sell_units(
    session: AsyncSession,
    user_id: int,
    scheme_code: int,
    amount: Decimal,
    quote: NavQuote,
    description: str,
    plan_id: Optional[int] = None,
) -> dict:
    """
    Redeem units worth ``amount`` and credit the cash.

    Raises:
        InsufficientUnits: position smaller than required (nothing changed)
        AccountNotFound: no demo account to credit
    """
    accounts = DemoAccountRepository(session)
    holdings = HoldingRepository(session)

    units = quantize_units(amount, quote.nav)
    if not await holdings.remove_units(user_id, scheme_code, units):
        held = await holdings.get(user_id, scheme_code)
        available = held.total_units if held else Decimal("0")
        raise InsufficientUnits(
            f"Insufficient units in scheme {scheme_code}: required {units}, available {available}",
            details={"required": float(units), "available": float(available)},
        )

    await holdings.update_last_nav(user_id, scheme_code, quote.nav, _as_date(quote.nav_date))
    if not await accounts.credit(user_id, amount):
        raise AccountNotFound(user_id)
    balance_after = await accounts.get_balance(user_id)
    await LedgerRepository(session).add(
        LedgerEntry(
            user_id=user_id,
            plan_id=plan_id,
            entry_type=LedgerEntryType.CREDIT,
            amount=amount,
            balance_after=balance_after,
            description=description,
        )
    )
    return {
        "units": units,
        "nav_used": quote.nav,
        "balance_before": balance_after - amount,
        "balance_after": balance_after,
    }


def _as_date(value: str) -> date:
    return date.fromisoformat(value)


class _SlotConflict(Exception):
    """Another writer changed the plan row after it was read"""


# ------------------------------------------------------------------
# Engine
# ------------------------------------------------------------------

class ExecutionEngine:
    """
    Runs due installments.

    Usage:
        engine = ExecutionEngine(async_session_factory)
        summary = await engine.run_due_installments("2025-01-10")
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        nav_source: Optional[NavSource] = None,
        timezone: Optional[str] = None,
        notifier: Optional[RunNotifier] = None,
    ):
        """
        Args:
            session_factory: Opens one AsyncSession per slot
            nav_source: NAV lookup; defaults to the local fund_nav table
            timezone: Operating timezone (defaults to settings.TIMEZONE)
            notifier: Awaited with the summary after each pass
        """
        self.session_factory = session_factory
        self.nav_source = nav_source
        self.timezone = timezone or settings.TIMEZONE
        self.notifier = notifier

    async def run_due_installments(self, current_date: Optional[DateLike] = None) -> ExecutionSummary:
        """
        Execute every slot due on or before ``current_date``.

        Args:
            current_date: Target calendar day (defaults to today in the
                operating timezone)

        Returns:
            ExecutionSummary for the pass
        """
        if current_date is None:
            target = today_in(self.timezone)
        else:
            target = to_calendar_string(current_date, self.timezone)

        started = time.monotonic()
        summary = ExecutionSummary(target_date=target)

        async with self.session_factory() as session:
            plan_ids = await RecurringPlanRepository(session).find_due_ids(target)

        summary.total_due = len(plan_ids)
        logger.info(f"⏰ Executing due installments for {target}: {len(plan_ids)} plan(s) due")

        for plan_id in plan_ids:
            await self._run_plan(plan_id, target, summary)

        summary.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"✅ Installment run {target} complete: "
            f"executed={summary.executed} failed={summary.failed} "
            f"skipped={summary.skipped} errors={summary.errors} "
            f"invested=₹{summary.total_invested} withdrawn=₹{summary.total_withdrawn} "
            f"transferred=₹{summary.total_transferred} ({summary.duration_ms} ms)"
        )

        if self.notifier is not None:
            try:
                await self.notifier(summary)
            except Exception:
                logger.exception("Run summary notification failed")

        return summary

    async def _run_plan(self, plan_id: int, target: str, summary: ExecutionSummary) -> None:
        """Realize due slots of one plan until it is no longer due."""
        while True:
            try:
                async with self.session_factory() as session:
                    outcome = await self._run_slot(session, plan_id, target)
            except _SlotConflict:
                logger.info(f"Plan {plan_id}: slot claimed by another writer, skipping")
                summary.skipped += 1
                return
            except IntegrityError:
                logger.warning(f"Plan {plan_id}: slot already recorded, skipping")
                summary.skipped += 1
                return
            except SQLAlchemyError:
                logger.exception(f"Plan {plan_id}: slot rolled back on database error")
                summary.errors += 1
                return
            except Exception:
                logger.exception(f"Plan {plan_id}: slot rolled back on unexpected error")
                summary.errors += 1
                return

            if outcome is None:
                return

            summary.add(outcome)
            if outcome.status == ExecutionStatus.SKIPPED:
                return

    async def _run_slot(
        self,
        session: AsyncSession,
        plan_id: int,
        target: str,
    ) -> Optional[ExecutionOutcome]:
        """
        One slot, one transaction.

        Returns:
            The committed outcome, or None when the plan is not due
        """
        plans = RecurringPlanRepository(session)
        plan = await plans.get(plan_id)
        if plan is None or not psm.is_due(plan, target):
            return None

        slot = plan.next_due_date

        if psm.slot_past_end(plan):
            reason = "Plan end date reached"
            if not await plans.save_transition(plan, psm.complete(plan, reason)):
                raise _SlotConflict()
            outcome = self._outcome(plan, slot, ExecutionStatus.SKIPPED, failure_reason=reason)
            return await self._record(session, outcome)

        claimed = psm.advance(plan)
        if not await plans.save_transition(plan, claimed):
            raise _SlotConflict()
        claimed = replace(claimed, version=plan.version + 1)

        try:
            fields = await self._apply(session, plan, slot)
        except BusinessRuleError as e:
            logger.warning(f"Plan {plan.id} slot {slot} failed: {e.reason} ({e.message})")
            if not await plans.save_transition(claimed, replace(claimed, failure_reason=e.reason)):
                raise _SlotConflict()
            outcome = self._outcome(plan, slot, ExecutionStatus.FAILED, failure_reason=e.reason)
        else:
            outcome = self._outcome(plan, slot, ExecutionStatus.SUCCESS, **fields)
            logger.info(
                f"Plan {plan.id} {plan.transaction_type.value} slot {slot}: "
                f"₹{plan.amount} → {fields['units']} units @ {fields['nav_used']}"
            )

        if claimed.status == PlanStatus.COMPLETED:
            logger.info(f"Plan {plan.id} completed after slot {slot}")

        return await self._record(session, outcome)

    async def _apply(self, session: AsyncSession, plan: RecurringPlan, slot: str) -> dict:
        nav_source = self.nav_source or FundNavRepository(session)
        quote = await nav_source.get_latest_nav(plan.scheme_code, as_of=slot)
        if quote is None:
            raise NavUnavailable(f"No NAV for scheme {plan.scheme_code} on or before {slot}")

        label = f"{plan.transaction_type.value} #{plan.id} installment {slot}"

        if plan.transaction_type == TransactionType.SIP:
            return await buy_units(
                session, plan.user_id, plan.scheme_code, plan.amount, quote, label, plan.id
            )

        if plan.transaction_type == TransactionType.SWP:
            return await sell_units(
                session, plan.user_id, plan.scheme_code, plan.amount, quote, label, plan.id
            )

        # STP: redeem from the source fund, buy the target; cash untouched
        source_quote = await nav_source.get_latest_nav(plan.source_scheme_code, as_of=slot)
        if source_quote is None:
            raise NavUnavailable(
                f"No NAV for source scheme {plan.source_scheme_code} on or before {slot}"
            )

        holdings = HoldingRepository(session)
        source_units = quantize_units(plan.amount, source_quote.nav)
        if not await holdings.remove_units(plan.user_id, plan.source_scheme_code, source_units):
            raise InsufficientUnits(
                f"Insufficient units in source scheme {plan.source_scheme_code}: "
                f"required {source_units}"
            )
        await holdings.update_last_nav(
            plan.user_id, plan.source_scheme_code, source_quote.nav, _as_date(source_quote.nav_date)
        )

        units = quantize_units(plan.amount, quote.nav)
        await holdings.add_units(plan.user_id, plan.scheme_code, units, plan.amount)
        await holdings.update_last_nav(plan.user_id, plan.scheme_code, quote.nav, _as_date(quote.nav_date))

        balance = await DemoAccountRepository(session).get_balance(plan.user_id)
        return {
            "units": units,
            "nav_used": quote.nav,
            "balance_before": balance,
            "balance_after": balance,
        }

    async def _record(self, session: AsyncSession, outcome: ExecutionOutcome) -> ExecutionOutcome:
        record_id = await ExecutionRecordRepository(session).create(outcome)
        title, message, level = _notification_for(outcome)
        await NotificationRepository(session).create(outcome.user_id, title, message, level)
        await session.commit()
        return replace(outcome, record_id=record_id)

    @staticmethod
    def _outcome(plan: RecurringPlan, slot: str, status: ExecutionStatus, **fields) -> ExecutionOutcome:
        return ExecutionOutcome(
            plan_id=plan.id,
            user_id=plan.user_id,
            transaction_type=plan.transaction_type,
            scheduled_date=slot,
            status=status,
            amount=plan.amount,
            executed_at=now_local_naive(),
            **fields,
        )


def _notification_for(outcome: ExecutionOutcome):
    kind = outcome.transaction_type.value
    if outcome.status == ExecutionStatus.SUCCESS:
        return (
            f"{kind} executed",
            f"₹{outcome.amount} {kind} installment for {outcome.scheduled_date} executed "
            f"({outcome.units} units @ ₹{outcome.nav_used}).",
            NotificationLevel.SUCCESS,
        )
    if outcome.status == ExecutionStatus.FAILED:
        return (
            f"{kind} failed",
            f"₹{outcome.amount} {kind} installment for {outcome.scheduled_date} failed: "
            f"{outcome.failure_reason}.",
            NotificationLevel.ERROR,
        )
    return (
        f"{kind} skipped",
        f"{kind} installment for {outcome.scheduled_date} skipped: {outcome.failure_reason}.",
        NotificationLevel.INFO,
    )
