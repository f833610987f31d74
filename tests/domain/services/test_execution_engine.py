"""
Tests for ExecutionEngine against a real (SQLite) database

✅ SIP / SWP / STP money movement
✅ Business failures recorded and advanced
✅ Infrastructure failures rolled back
✅ Idempotent reruns and catch-up
"""

from dataclasses import replace
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.domain.models import ExecutionStatus, NavQuote, PlanStatus, TransactionType
from app.domain.services import plan_state_machine as psm
from app.domain.services.execution_engine import ExecutionEngine
from app.domain.services.schedule_preview import generate_preview
from app.infrastructure.db.models import ExecutionRecordModel, LedgerEntryModel, NotificationModel
from app.infrastructure.db.repositories.account_repository import DemoAccountRepository
from app.infrastructure.db.repositories.execution_repository import ExecutionRecordRepository
from app.infrastructure.db.repositories.holding_repository import HoldingRepository
from app.infrastructure.db.repositories.nav_repository import FundNavRepository
from app.infrastructure.db.repositories.plan_repository import RecurringPlanRepository

USER = 1
EQUITY = 101
DEBT = 201


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

async def seed(session_factory, balance="100000", navs=(), holdings=()):
    async with session_factory() as session:
        await DemoAccountRepository(session).create(USER, Decimal(balance))
        nav_repo = FundNavRepository(session)
        for scheme_code, nav_date, nav in navs:
            await nav_repo.upsert_nav(scheme_code, nav_date, Decimal(nav))
        holding_repo = HoldingRepository(session)
        for scheme_code, units, invested in holdings:
            await holding_repo.add_units(USER, scheme_code, Decimal(units), Decimal(invested))
        await session.commit()


async def create_plan(session_factory, **overrides):
    params = dict(
        user_id=USER,
        scheme_code=EQUITY,
        transaction_type=TransactionType.SIP,
        amount=Decimal("1000"),
        frequency="MONTHLY",
        start_date="2025-01-10",
    )
    params.update(overrides)
    async with session_factory() as session:
        plan = await RecurringPlanRepository(session).create(psm.new_plan(**params))
        await session.commit()
    return plan


async def load_plan(session_factory, plan_id):
    async with session_factory() as session:
        return await RecurringPlanRepository(session).get(plan_id)


async def balance_of(session_factory):
    async with session_factory() as session:
        return await DemoAccountRepository(session).get_balance(USER)


async def holding_of(session_factory, scheme_code):
    async with session_factory() as session:
        return await HoldingRepository(session).get(USER, scheme_code)


async def records_of(session_factory, plan_id):
    async with session_factory() as session:
        return await ExecutionRecordRepository(session).list_for_plan(plan_id)


async def count_rows(session_factory, model):
    async with session_factory() as session:
        return await session.scalar(select(func.count(model.id)))


class FlakyNavSource:
    """Price feed that times out for one scheme"""

    def __init__(self, broken_scheme):
        self.broken_scheme = broken_scheme

    async def get_latest_nav(self, scheme_code, as_of=None):
        if scheme_code == self.broken_scheme:
            raise ConnectionError("NAV API timeout")
        return NavQuote(scheme_code=scheme_code, nav=Decimal("100"), nav_date=as_of)


class FailingNavSource:
    """Simulates the database going away mid-slot"""

    async def get_latest_nav(self, scheme_code, as_of=None):
        raise OperationalError("SELECT nav FROM fund_nav", {}, Exception("connection lost"))


# ------------------------------------------------------------------
# SIP
# ------------------------------------------------------------------

@pytest.mark.asyncio
async def test_sip_installment_debits_and_buys(session_factory):
    await seed(session_factory, navs=[(EQUITY, "2025-01-09", "100")])
    plan = await create_plan(session_factory, installments=3)

    summary = await ExecutionEngine(session_factory).run_due_installments("2025-01-10")

    assert summary.total_due == 1
    assert summary.executed == 1
    assert summary.total_invested == Decimal("1000")
    assert await balance_of(session_factory) == Decimal("99000")

    holding = await holding_of(session_factory, EQUITY)
    assert holding.total_units == Decimal("10")
    assert holding.invested_amount == Decimal("1000")

    stored = await load_plan(session_factory, plan.id)
    assert stored.next_due_date == "2025-02-10"
    assert stored.remaining_installments == 2
    assert stored.executed_count == 1
    assert stored.version == 1

    [record] = await records_of(session_factory, plan.id)
    assert record.status == ExecutionStatus.SUCCESS
    assert record.units == Decimal("10")
    assert record.nav_used == Decimal("100")
    assert record.balance_before == Decimal("100000")
    assert record.balance_after == Decimal("99000")

    assert await count_rows(session_factory, LedgerEntryModel) == 1
    assert await count_rows(session_factory, NotificationModel) == 1


@pytest.mark.asyncio
async def test_money_is_conserved_across_installments(session_factory):
    await seed(session_factory, navs=[(EQUITY, "2025-01-01", "50")])
    plan = await create_plan(session_factory, frequency="WEEKLY", start_date="2025-01-01")

    summary = await ExecutionEngine(session_factory).run_due_installments("2025-01-31")

    assert summary.executed == 5
    spent = Decimal("100000") - await balance_of(session_factory)
    assert spent == summary.total_invested == Decimal("5000")

    records = await records_of(session_factory, plan.id)
    assert sum(r.amount for r in records if r.status == ExecutionStatus.SUCCESS) == spent
    holding = await holding_of(session_factory, EQUITY)
    assert holding.total_units == Decimal("100")


@pytest.mark.asyncio
async def test_insufficient_balance_fails_without_touching_balance(session_factory):
    await seed(session_factory, balance="5000", navs=[(EQUITY, "2025-01-01", "100")])
    plan = await create_plan(session_factory, amount=Decimal("10000"))

    summary = await ExecutionEngine(session_factory).run_due_installments("2025-01-10")

    assert summary.failed == 1
    assert summary.executed == 0
    assert await balance_of(session_factory) == Decimal("5000")
    assert await holding_of(session_factory, EQUITY) is None

    [record] = await records_of(session_factory, plan.id)
    assert record.status == ExecutionStatus.FAILED
    assert record.failure_reason == "InsufficientBalance"

    stored = await load_plan(session_factory, plan.id)
    assert stored.next_due_date == "2025-02-10"
    assert stored.failure_reason == "InsufficientBalance"
    assert stored.status == PlanStatus.ACTIVE
    assert await count_rows(session_factory, LedgerEntryModel) == 0


@pytest.mark.asyncio
async def test_missing_nav_fails_and_advances(session_factory):
    await seed(session_factory)
    plan = await create_plan(session_factory)

    summary = await ExecutionEngine(session_factory).run_due_installments("2025-01-10")

    assert summary.failed == 1
    [record] = await records_of(session_factory, plan.id)
    assert record.failure_reason == "NavUnavailable"
    assert await balance_of(session_factory) == Decimal("100000")
    assert (await load_plan(session_factory, plan.id)).next_due_date == "2025-02-10"


@pytest.mark.asyncio
async def test_nav_dated_after_slot_is_not_used(session_factory):
    await seed(session_factory, navs=[
        (EQUITY, "2025-01-05", "80"),
        (EQUITY, "2025-01-20", "125"),
    ])
    plan = await create_plan(session_factory)

    await ExecutionEngine(session_factory).run_due_installments("2025-01-25")

    [record] = await records_of(session_factory, plan.id)
    assert record.nav_used == Decimal("80")
    assert record.units == Decimal("12.5")


# ------------------------------------------------------------------
# SWP / STP
# ------------------------------------------------------------------

@pytest.mark.asyncio
async def test_swp_redeems_at_proportional_cost(session_factory):
    await seed(
        session_factory,
        balance="0",
        navs=[(EQUITY, "2025-01-01", "120")],
        holdings=[(EQUITY, "100", "10000")],
    )
    plan = await create_plan(
        session_factory, transaction_type=TransactionType.SWP, amount=Decimal("1200")
    )

    summary = await ExecutionEngine(session_factory).run_due_installments("2025-01-10")

    assert summary.executed == 1
    assert summary.total_withdrawn == Decimal("1200")
    assert await balance_of(session_factory) == Decimal("1200")

    holding = await holding_of(session_factory, EQUITY)
    assert holding.total_units == Decimal("90")
    assert holding.invested_amount == Decimal("9000")

    [record] = await records_of(session_factory, plan.id)
    assert record.units == Decimal("10")


@pytest.mark.asyncio
async def test_swp_without_enough_units_fails(session_factory):
    await seed(
        session_factory,
        navs=[(EQUITY, "2025-01-01", "100")],
        holdings=[(EQUITY, "5", "500")],
    )
    plan = await create_plan(
        session_factory, transaction_type=TransactionType.SWP, amount=Decimal("1000")
    )

    summary = await ExecutionEngine(session_factory).run_due_installments("2025-01-10")

    assert summary.failed == 1
    [record] = await records_of(session_factory, plan.id)
    assert record.failure_reason == "InsufficientUnits"
    holding = await holding_of(session_factory, EQUITY)
    assert holding.total_units == Decimal("5")
    assert await balance_of(session_factory) == Decimal("100000")


@pytest.mark.asyncio
async def test_stp_moves_value_between_funds(session_factory):
    await seed(
        session_factory,
        navs=[(EQUITY, "2025-01-01", "100"), (DEBT, "2025-01-01", "50")],
        holdings=[(DEBT, "100", "5000")],
    )
    plan = await create_plan(
        session_factory,
        transaction_type=TransactionType.STP,
        source_scheme_code=DEBT,
        amount=Decimal("1000"),
    )

    summary = await ExecutionEngine(session_factory).run_due_installments("2025-01-10")

    assert summary.executed == 1
    assert summary.total_transferred == Decimal("1000")
    assert await balance_of(session_factory) == Decimal("100000")

    source = await holding_of(session_factory, DEBT)
    target = await holding_of(session_factory, EQUITY)
    assert source.total_units == Decimal("80")
    assert source.invested_amount == Decimal("4000")
    assert target.total_units == Decimal("10")
    assert target.invested_amount == Decimal("1000")

    [record] = await records_of(session_factory, plan.id)
    assert record.status == ExecutionStatus.SUCCESS


@pytest.mark.asyncio
async def test_stp_missing_source_nav_fails(session_factory):
    await seed(
        session_factory,
        navs=[(EQUITY, "2025-01-01", "100")],
        holdings=[(DEBT, "100", "5000")],
    )
    plan = await create_plan(
        session_factory,
        transaction_type=TransactionType.STP,
        source_scheme_code=DEBT,
    )

    await ExecutionEngine(session_factory).run_due_installments("2025-01-10")

    [record] = await records_of(session_factory, plan.id)
    assert record.failure_reason == "NavUnavailable"
    assert (await holding_of(session_factory, DEBT)).total_units == Decimal("100")
    assert await holding_of(session_factory, EQUITY) is None


# ------------------------------------------------------------------
# Scheduling behaviour
# ------------------------------------------------------------------

@pytest.mark.asyncio
async def test_rerun_for_same_day_executes_nothing(session_factory):
    await seed(session_factory, navs=[(EQUITY, "2025-01-01", "100")])
    plan = await create_plan(session_factory)
    engine = ExecutionEngine(session_factory)

    first = await engine.run_due_installments("2025-01-10")
    second = await engine.run_due_installments("2025-01-10")

    assert first.executed == 1
    assert second.total_due == 0
    assert second.executed == 0
    assert len(await records_of(session_factory, plan.id)) == 1
    assert await balance_of(session_factory) == Decimal("99000")


@pytest.mark.asyncio
async def test_catch_up_realizes_preview(session_factory):
    await seed(session_factory, navs=[(EQUITY, "2025-01-01", "100")])
    plan = await create_plan(
        session_factory, frequency="DAILY", start_date="2025-01-01", end_date="2025-01-05"
    )

    summary = await ExecutionEngine(session_factory).run_due_installments("2025-01-10")

    records = await records_of(session_factory, plan.id)
    expected = generate_preview("2025-01-01", "2025-01-05", "DAILY", tz="Asia/Kolkata")
    assert [r.scheduled_date for r in records] == expected
    assert summary.executed == 5
    assert (await load_plan(session_factory, plan.id)).status == PlanStatus.COMPLETED


@pytest.mark.asyncio
async def test_catch_up_stops_at_target_date(session_factory):
    await seed(session_factory, navs=[(EQUITY, "2025-01-01", "100")])
    plan = await create_plan(session_factory, frequency="DAILY", start_date="2025-01-01")

    await ExecutionEngine(session_factory).run_due_installments("2025-01-03")

    stored = await load_plan(session_factory, plan.id)
    assert stored.next_due_date == "2025-01-04"
    assert stored.executed_count == 3


@pytest.mark.asyncio
async def test_installment_limit_completes_plan(session_factory):
    await seed(session_factory, navs=[(EQUITY, "2025-01-01", "100")])
    plan = await create_plan(
        session_factory, frequency="DAILY", start_date="2025-01-01", installments=2
    )

    summary = await ExecutionEngine(session_factory).run_due_installments("2025-01-31")

    assert summary.executed == 2
    stored = await load_plan(session_factory, plan.id)
    assert stored.status == PlanStatus.COMPLETED
    assert stored.remaining_installments == 0


@pytest.mark.asyncio
async def test_database_error_rolls_back_slot(session_factory):
    await seed(session_factory, navs=[(EQUITY, "2025-01-01", "100")])
    plan = await create_plan(session_factory)

    summary = await ExecutionEngine(
        session_factory, nav_source=FailingNavSource()
    ).run_due_installments("2025-01-10")

    assert summary.errors == 1
    assert summary.executed == summary.failed == 0
    stored = await load_plan(session_factory, plan.id)
    assert stored.next_due_date == "2025-01-10"
    assert stored.version == 0
    assert await count_rows(session_factory, ExecutionRecordModel) == 0
    assert await balance_of(session_factory) == Decimal("100000")

    # Plan is still due and succeeds once the database is back
    retry = await ExecutionEngine(session_factory).run_due_installments("2025-01-10")
    assert retry.executed == 1


@pytest.mark.asyncio
async def test_one_failing_plan_does_not_block_others(session_factory):
    await seed(session_factory, balance="1500", navs=[(EQUITY, "2025-01-01", "100")])
    big = await create_plan(session_factory, amount=Decimal("5000"))
    small = await create_plan(session_factory, amount=Decimal("1000"))

    summary = await ExecutionEngine(session_factory).run_due_installments("2025-01-10")

    assert summary.failed == 1
    assert summary.executed == 1
    assert (await records_of(session_factory, big.id))[0].status == ExecutionStatus.FAILED
    assert (await records_of(session_factory, small.id))[0].status == ExecutionStatus.SUCCESS


@pytest.mark.asyncio
async def test_unexpected_error_in_one_plan_does_not_stop_the_run(session_factory):
    await seed(session_factory)
    broken = await create_plan(session_factory, scheme_code=999)
    healthy = await create_plan(session_factory)
    notified = []

    async def notifier(summary):
        notified.append(summary)

    summary = await ExecutionEngine(
        session_factory, nav_source=FlakyNavSource(broken_scheme=999), notifier=notifier
    ).run_due_installments("2025-01-10")

    assert summary.errors == 1
    assert summary.executed == 1
    assert notified == [summary]
    assert (await records_of(session_factory, healthy.id))[0].status == ExecutionStatus.SUCCESS
    assert await records_of(session_factory, broken.id) == []

    stored = await load_plan(session_factory, broken.id)
    assert stored.next_due_date == "2025-01-10"
    assert stored.version == 0
    assert await balance_of(session_factory) == Decimal("99000")


@pytest.mark.asyncio
async def test_swp_without_account_is_rolled_back(session_factory):
    await seed(session_factory, navs=[(EQUITY, "2025-01-01", "100")])
    async with session_factory() as session:
        await HoldingRepository(session).add_units(2, EQUITY, Decimal("50"), Decimal("5000"))
        await session.commit()
    plan = await create_plan(
        session_factory, user_id=2, transaction_type=TransactionType.SWP, amount=Decimal("1000")
    )

    summary = await ExecutionEngine(session_factory).run_due_installments("2025-01-10")

    assert summary.errors == 1
    assert summary.executed == 0
    async with session_factory() as session:
        holding = await HoldingRepository(session).get(2, EQUITY)
    assert holding.total_units == Decimal("50")
    assert (await load_plan(session_factory, plan.id)).next_due_date == "2025-01-10"


@pytest.mark.asyncio
async def test_paused_and_cancelled_plans_are_not_due(session_factory):
    await seed(session_factory, navs=[(EQUITY, "2025-01-01", "100")])
    paused = await create_plan(session_factory)
    cancelled = await create_plan(session_factory)
    async with session_factory() as session:
        repo = RecurringPlanRepository(session)
        await repo.save_transition(paused, psm.pause(paused))
        await repo.save_transition(cancelled, psm.cancel(cancelled))
        await session.commit()

    summary = await ExecutionEngine(session_factory).run_due_installments("2025-01-10")

    assert summary.total_due == 0
    assert await balance_of(session_factory) == Decimal("100000")


@pytest.mark.asyncio
async def test_slot_past_end_date_is_skipped(session_factory):
    await seed(session_factory, navs=[(EQUITY, "2025-01-01", "100")])
    async with session_factory() as session:
        legacy = psm.new_plan(
            user_id=USER,
            scheme_code=EQUITY,
            transaction_type=TransactionType.SIP,
            amount=Decimal("1000"),
            frequency="MONTHLY",
            start_date="2025-01-10",
            end_date="2025-01-31",
        )
        plan = await RecurringPlanRepository(session).create(
            replace(legacy, next_due_date="2025-02-10")
        )
        await session.commit()

    summary = await ExecutionEngine(session_factory).run_due_installments("2025-02-10")

    assert summary.skipped == 1
    [record] = await records_of(session_factory, plan.id)
    assert record.status == ExecutionStatus.SKIPPED
    assert (await load_plan(session_factory, plan.id)).status == PlanStatus.COMPLETED
    assert await balance_of(session_factory) == Decimal("100000")


@pytest.mark.asyncio
async def test_notifier_receives_summary(session_factory):
    await seed(session_factory, navs=[(EQUITY, "2025-01-01", "100")])
    await create_plan(session_factory)
    received = []

    async def notifier(summary):
        received.append(summary)

    await ExecutionEngine(session_factory, notifier=notifier).run_due_installments("2025-01-10")

    assert len(received) == 1
    assert received[0].executed == 1
    assert received[0].target_date == "2025-01-10"
