"""Time utilities (operating timezone from settings.TIMEZONE)."""

from datetime import datetime
from zoneinfo import ZoneInfo

from app.config import settings

OPERATING_TZ = ZoneInfo(settings.TIMEZONE)


def now_local_naive() -> datetime:
    """
    Current wall-clock time in the operating timezone, returned as a naive
    datetime for DB storage.
    """
    return datetime.now(OPERATING_TZ).replace(tzinfo=None)
