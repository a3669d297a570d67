"""
Local-time helpers.

Days, schedules and chart labels follow one configured IANA zone
(Asia/Shanghai by default); storage is UTC.
"""

from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo


def now_utc() -> datetime:
    return datetime.now(UTC)


def to_local(moment: datetime, tz: ZoneInfo) -> datetime:
    """Convert to the local zone; naive input is taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(tz)


def local_date(moment: datetime, tz: ZoneInfo) -> date:
    return to_local(moment, tz).date()


def start_of_local_day(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def local_day_bounds(moment: datetime, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """[start, end) of the local calendar day containing ``moment``."""
    day = local_date(moment, tz)
    return start_of_local_day(day, tz), start_of_local_day(day + timedelta(days=1), tz)


def hour_of_day(moment: datetime, tz: ZoneInfo) -> float:
    """Local hours since midnight plus minutes/60."""
    local = to_local(moment, tz)
    return local.hour + local.minute / 60
