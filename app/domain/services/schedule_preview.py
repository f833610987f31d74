"""
SCHEDULE PREVIEW

Installment date sequence for a prospective plan.

RULES:
✅ Pure, no I/O
✅ Same add_step chain the execution engine realizes
✅ Never more than MAX_PREVIEW_INSTALLMENTS dates
"""

from datetime import tzinfo
from itertools import islice
from typing import Iterator, List, Optional, Union

from app.config import settings
from app.domain.errors import InvalidDate, ValidationError
from app.utils.calendar import DateLike, Frequency, add_step, parse_frequency, to_calendar_string

MAX_PREVIEW_INSTALLMENTS = 500


def iter_schedule(
    start_date: DateLike,
    end_date: Optional[DateLike],
    frequency: Union[str, Frequency],
    tz: Union[str, tzinfo, None] = None,
) -> Iterator[str]:
    """
    Lazily yield installment dates from ``start_date``.

    Unbounded when ``end_date`` is None; callers cap it. Stops at the
    last representable calendar date.
    """
    freq = parse_frequency(frequency)
    zone = tz or settings.TIMEZONE
    current = to_calendar_string(start_date, zone)
    end = to_calendar_string(end_date, zone) if end_date is not None else None

    def _walk() -> Iterator[str]:
        nonlocal current
        while end is None or current <= end:
            yield current
            try:
                current = add_step(current, freq)
            except InvalidDate:
                return

    return _walk()


def generate_preview(
    start_date: DateLike,
    end_date: Optional[DateLike],
    frequency: Union[str, Frequency],
    tz: Union[str, tzinfo, None] = None,
    installments: Optional[int] = None,
) -> List[str]:
    """
    Ordered installment dates for a plan.

    Args:
        start_date: First installment (any date representation)
        end_date: Last allowed date (inclusive) or None
        frequency: DAILY / WEEKLY / MONTHLY / QUARTERLY / YEARLY
        tz: Operating timezone (defaults to settings.TIMEZONE)
        installments: Optional installment count limit

    Returns:
        List of "YYYY-MM-DD" strings, empty when start is after end

    Raises:
        InvalidFrequency: Unknown frequency token
    """
    if installments is not None and installments <= 0:
        raise ValidationError("installments must be a positive integer")

    limit = MAX_PREVIEW_INSTALLMENTS
    if installments is not None:
        limit = min(limit, installments)

    return list(islice(iter_schedule(start_date, end_date, frequency, tz), limit))
