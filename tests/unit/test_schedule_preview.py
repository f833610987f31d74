"""
Unit Tests for the schedule preview generator
"""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from app.domain.errors import InvalidFrequency, ValidationError
from app.domain.services.schedule_preview import (
    MAX_PREVIEW_INSTALLMENTS,
    generate_preview,
    iter_schedule,
)

IST = "Asia/Kolkata"


def test_daily_range_inclusive():
    dates = generate_preview("2025-01-10", "2025-01-15", "DAILY", tz=IST)
    assert dates == [
        "2025-01-10", "2025-01-11", "2025-01-12",
        "2025-01-13", "2025-01-14", "2025-01-15",
    ]


def test_weekly_january():
    dates = generate_preview("2025-01-01", "2025-01-31", "WEEKLY", tz=IST)
    assert dates == ["2025-01-01", "2025-01-08", "2025-01-15", "2025-01-22", "2025-01-29"]


def test_monthly():
    dates = generate_preview("2025-01-10", "2025-04-10", "MONTHLY", tz=IST)
    assert dates == ["2025-01-10", "2025-02-10", "2025-03-10", "2025-04-10"]


def test_monthly_from_month_end_overflows():
    # Each step chains from the previous date: Jan 31 -> Mar 3 -> Apr 3
    dates = generate_preview("2025-01-31", "2025-03-31", "MONTHLY", tz=IST)
    assert dates == ["2025-01-31", "2025-03-03"]


def test_quarterly_year():
    dates = generate_preview("2025-01-01", "2025-12-31", "QUARTERLY", tz=IST)
    assert len(dates) == 4
    assert dates[1] == "2025-04-01"


def test_start_after_end_is_empty():
    assert generate_preview("2025-02-01", "2025-01-01", "DAILY", tz=IST) == []


def test_open_ended_is_capped():
    dates = generate_preview("2025-01-01", None, "DAILY", tz=IST)
    assert len(dates) == MAX_PREVIEW_INSTALLMENTS == 500
    assert dates[-1] == "2026-05-15"


def test_open_ended_stops_at_last_representable_date():
    assert generate_preview("9990-01-01", None, "YEARLY", tz=IST) == [
        f"{year}-01-01" for year in range(9990, 10000)
    ]
    assert generate_preview("9999-12-30", "9999-12-31", "DAILY", tz=IST) == ["9999-12-30", "9999-12-31"]


def test_installment_limit():
    dates = generate_preview("2025-01-01", None, "MONTHLY", tz=IST, installments=3)
    assert dates == ["2025-01-01", "2025-02-01", "2025-03-01"]


def test_installment_limit_never_exceeds_cap():
    dates = generate_preview("2025-01-01", None, "DAILY", tz=IST, installments=10_000)
    assert len(dates) == MAX_PREVIEW_INSTALLMENTS


def test_non_positive_installments_rejected():
    with pytest.raises(ValidationError):
        generate_preview("2025-01-01", None, "DAILY", tz=IST, installments=0)


def test_idempotent():
    first = generate_preview("2025-01-31", "2026-01-31", "MONTHLY", tz=IST)
    second = generate_preview("2025-01-31", "2026-01-31", "MONTHLY", tz=IST)
    assert first == second


def test_datetime_start_uses_operating_day():
    start = datetime(2026, 1, 31, 0, 0, tzinfo=ZoneInfo(IST))
    dates = generate_preview(start, "2026-02-02", "DAILY", tz=IST)
    assert dates == ["2026-01-31", "2026-02-01", "2026-02-02"]


def test_invalid_frequency_raised_eagerly():
    with pytest.raises(InvalidFrequency):
        iter_schedule("2025-01-01", None, "HOURLY", tz=IST)


def test_iter_schedule_restarts_each_call():
    a = iter_schedule("2025-01-01", "2025-01-03", "DAILY", tz=IST)
    b = iter_schedule("2025-01-01", "2025-01-03", "DAILY", tz=IST)
    assert list(a) == list(b) == ["2025-01-01", "2025-01-02", "2025-01-03"]
