from datetime import datetime
from zoneinfo import ZoneInfo


def to_local_naive(dt: datetime, tz: ZoneInfo) -> datetime:
    """Reservations are stored as naive wall-clock time of the business; naive input is taken as local."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(tz).replace(tzinfo=None)


def local_now(tz: ZoneInfo) -> datetime:
    return datetime.now(tz).replace(tzinfo=None)


def format_for_humans(dt: datetime) -> str:
    return dt.strftime("%d-%m-%Y %H:%M")
