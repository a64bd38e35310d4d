import os
from datetime import datetime, time, timedelta
from typing import Optional, Tuple
from zoneinfo import ZoneInfo


def _timezone() -> ZoneInfo:
    name = os.environ.get("APP_TIMEZONE", "UTC")
    return ZoneInfo(name)


def now_tz() -> datetime:
    return datetime.now(_timezone())


def ensure_timezone(dt: datetime) -> datetime:
    tz = _timezone()
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def ensure_optional_timezone(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    return ensure_timezone(dt)


def day_bounds(moment: datetime) -> Tuple[datetime, datetime]:
    """Start of the local day and start of the next one."""
    local = ensure_timezone(moment)
    start = datetime.combine(local.date(), time.min, tzinfo=local.tzinfo)
    return start, start + timedelta(days=1)
