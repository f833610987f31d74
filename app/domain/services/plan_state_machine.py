"""
PLAN STATE MACHINE

ACTIVE  -> PAUSED | CANCELLED | COMPLETED
PAUSED  -> ACTIVE | CANCELLED
CANCELLED, COMPLETED are terminal.

Transitions are pure: each takes a RecurringPlan snapshot and returns the
next one. Persisting the result is the caller's job.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Optional, Union

from app.domain.errors import InvalidDate, InvalidState, ValidationError
from app.domain.models.plan import PlanStatus, RecurringPlan, TransactionType
from app.utils.calendar import Frequency, add_step, parse_frequency


def new_plan(
    user_id: int,
    scheme_code: int,
    transaction_type: TransactionType,
    amount: Decimal,
    frequency: Union[str, Frequency],
    start_date: str,
    end_date: Optional[str] = None,
    installments: Optional[int] = None,
    source_scheme_code: Optional[int] = None,
) -> RecurringPlan:
    """Build a fresh ACTIVE plan due on its start date."""
    if end_date is not None and start_date > end_date:
        raise ValidationError("start_date must be on or before end_date")
    if installments is not None and installments <= 0:
        raise ValidationError("installments must be a positive integer")

    return RecurringPlan(
        id=None,
        user_id=user_id,
        scheme_code=scheme_code,
        transaction_type=transaction_type,
        amount=amount,
        frequency=parse_frequency(frequency),
        start_date=start_date,
        end_date=end_date,
        next_due_date=start_date,
        installments=installments,
        remaining_installments=installments,
        status=PlanStatus.ACTIVE,
        source_scheme_code=source_scheme_code,
    )


def _is_past_end(plan: RecurringPlan, calendar_date: str) -> bool:
    return plan.end_date is not None and calendar_date > plan.end_date


def advance(plan: RecurringPlan, failure_reason: Optional[str] = None) -> RecurringPlan:
    """
    Consume the current slot (executed or failed) and move to the next one.
    """
    if plan.status != PlanStatus.ACTIVE:
        raise InvalidState(f"Cannot advance plan in {plan.status.value} state")

    remaining = plan.remaining_installments
    if remaining is not None:
        remaining = max(remaining - 1, 0)

    status = PlanStatus.ACTIVE
    try:
        next_due = add_step(plan.next_due_date, plan.frequency)
    except InvalidDate:
        # Last representable calendar date: nothing left to schedule
        next_due = plan.next_due_date
        status = PlanStatus.COMPLETED

    if remaining == 0 or _is_past_end(plan, next_due):
        status = PlanStatus.COMPLETED

    return replace(
        plan,
        next_due_date=next_due,
        remaining_installments=remaining,
        executed_count=plan.executed_count + 1,
        status=status,
        failure_reason=failure_reason,
    )


def complete(plan: RecurringPlan, reason: str) -> RecurringPlan:
    """Close out an ACTIVE plan whose end condition is already reached."""
    if plan.status != PlanStatus.ACTIVE:
        raise InvalidState(f"Cannot complete plan in {plan.status.value} state")
    return replace(plan, status=PlanStatus.COMPLETED, failure_reason=reason)


def cancel(plan: RecurringPlan) -> RecurringPlan:
    """User stop. Always CANCELLED, regardless of execution history."""
    if plan.is_terminal:
        raise InvalidState(f"Plan is already {plan.status.value}")
    return replace(plan, status=PlanStatus.CANCELLED, failure_reason="Stopped by user")


def pause(plan: RecurringPlan) -> RecurringPlan:
    if plan.status != PlanStatus.ACTIVE:
        raise InvalidState(f"Only ACTIVE plans can be paused (plan is {plan.status.value})")
    return replace(plan, status=PlanStatus.PAUSED)


def resume(plan: RecurringPlan, today: str) -> RecurringPlan:
    """
    Reactivate a paused plan.

    Slots that fell due while paused are forfeited: the due date moves
    forward to the first slot on or after ``today`` without consuming
    installments. A slot beyond the end date is left for the engine,
    which records it SKIPPED and completes the plan.
    """
    if plan.status != PlanStatus.PAUSED:
        raise InvalidState(f"Only PAUSED plans can be resumed (plan is {plan.status.value})")

    next_due = plan.next_due_date
    while next_due < today:
        next_due = add_step(next_due, plan.frequency)

    return replace(plan, next_due_date=next_due, status=PlanStatus.ACTIVE, failure_reason=None)


def is_due(plan: RecurringPlan, current_date: Union[str, date]) -> bool:
    if isinstance(current_date, date):
        current_date = current_date.isoformat()
    return plan.status == PlanStatus.ACTIVE and plan.next_due_date <= current_date


def slot_past_end(plan: RecurringPlan) -> bool:
    """True when the current slot already lies beyond the plan's end date."""
    return _is_past_end(plan, plan.next_due_date) or plan.remaining_installments == 0
