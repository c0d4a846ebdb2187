from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable
from zoneinfo import ZoneInfo

from ..utils.time import to_local_naive
from .errors import InvalidInputError
from .schedule import ScheduleTemplate, format_time_of_day

APPROVED_STATUSES = frozenset({"approved"})
FAILED_STATUSES = frozenset({"rejected", "cancelled", "failure", "null"})
# Numeric(12, 2) column
MAX_DEPOSIT = Decimal("10000000000")


def parse_query_date(raw: str | None) -> date:
    """Parse `YYYY-MM-DD` (a full ISO datetime is accepted and truncated to its date)."""
    if raw is None or not raw.strip():
        raise InvalidInputError("date is required")
    value = raw.strip()
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError as exc:
        raise InvalidInputError(f"invalid date: {raw!r}") from exc


def parse_slot_datetime(raw: str | None, tz: ZoneInfo | None = None) -> datetime:
    """A reference carrying an offset is converted to `tz` wall-clock time before the offset is dropped."""
    if raw is None or not raw.strip():
        raise InvalidInputError("reservation reference is required")
    try:
        parsed = datetime.fromisoformat(raw.strip())
    except ValueError as exc:
        raise InvalidInputError(f"invalid reservation reference: {raw!r}") from exc
    if tz is not None:
        return normalize_slot(to_local_naive(parsed, tz))
    return normalize_slot(parsed.replace(tzinfo=None))


def normalize_slot(moment: datetime) -> datetime:
    return moment.replace(second=0, microsecond=0)


def format_external_reference(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M")


def parse_deposit_amount(value: Any) -> Decimal | None:
    """
    Deposit amounts arrive as numbers or numeric strings.
    Returns None when no deposit was given. Raises InvalidInputError when not a positive number.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise InvalidInputError("deposit amount must be a valid number")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise InvalidInputError("deposit amount must be a valid number") from exc
    if not amount.is_finite():
        raise InvalidInputError("deposit amount must be a valid number")
    if amount <= 0:
        raise InvalidInputError("deposit amount must be positive")
    if amount >= MAX_DEPOSIT:
        raise InvalidInputError("deposit amount is too large")
    return amount.quantize(Decimal("0.01"))


def validate_slot_request(template: ScheduleTemplate, moment: datetime) -> None:
    """Closed-day policy first, then the time must be one the template offers."""
    template.ensure_open(moment.date())
    if not template.offers(moment):
        raise InvalidInputError(f"{format_time_of_day(moment.time())} is not an offered time on that day")


def filter_available(offered: Iterable[time], reserved: Iterable[datetime]) -> list[str]:
    """Drop every offered time whose HH:MM matches a reserved timestamp's HH:MM."""
    taken = {format_time_of_day(moment.time()) for moment in reserved}
    return [label for label in (format_time_of_day(t) for t in offered) if label not in taken]


def is_payment_approved(status: str | None) -> bool:
    return (status or "").strip().lower() in APPROVED_STATUSES


def is_payment_failed(status: str | None) -> bool:
    return (status or "").strip().lower() in FAILED_STATUSES
