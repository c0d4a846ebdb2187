from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Mapping, Sequence

from .errors import InvalidInputError, PolicyViolationError

WEEKDAYS: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

_WEEKDAY_HOURS = ("08:00", "09:00", "10:00", "11:00")
_SATURDAY_HOURS = (
    "08:00",
    "09:00",
    "10:00",
    "11:00",
    "12:00",
    "14:00",
    "15:00",
    "16:00",
    "17:00",
    "18:00",
    "19:00",
    "20:00",
)

DEFAULT_TEMPLATE: dict[str, tuple[str, ...]] = {
    "monday": _WEEKDAY_HOURS,
    "tuesday": _WEEKDAY_HOURS,
    "wednesday": _WEEKDAY_HOURS,
    "thursday": _WEEKDAY_HOURS,
    "friday": _WEEKDAY_HOURS,
    "saturday": _SATURDAY_HOURS,
}
DEFAULT_CLOSED_WEEKDAY = "sunday"


def weekday_index(weekday: int | str) -> int | None:
    """Resolve a weekday index (0=Monday) or English label; None when unrecognized."""
    if isinstance(weekday, int):
        return weekday if 0 <= weekday < len(WEEKDAYS) else None
    label = weekday.strip().lower()
    if label in WEEKDAYS:
        return WEEKDAYS.index(label)
    return None


def parse_time_of_day(value: str) -> time:
    try:
        parsed = time.fromisoformat(value.strip())
    except (AttributeError, ValueError) as exc:
        raise InvalidInputError(f"invalid time of day: {value!r}") from exc
    return parsed.replace(second=0, microsecond=0)


def format_time_of_day(value: time) -> str:
    return value.strftime("%H:%M")


@dataclass(frozen=True)
class ScheduleTemplate:
    slots: Mapping[int, tuple[time, ...]] = field(default_factory=dict)
    closed_weekday: int | None = None

    @classmethod
    def from_config(
        cls,
        template: Mapping[str, Sequence[str]],
        *,
        closed_weekday: str | None,
    ) -> "ScheduleTemplate":
        slots: dict[int, tuple[time, ...]] = {}
        for label, values in template.items():
            index = weekday_index(label)
            if index is None:
                raise InvalidInputError(f"unknown weekday in schedule template: {label!r}")
            slots[index] = tuple(sorted({parse_time_of_day(v) for v in values}))

        closed: int | None = None
        if closed_weekday:
            closed = weekday_index(closed_weekday)
            if closed is None:
                raise InvalidInputError(f"unknown closed weekday: {closed_weekday!r}")
            slots.pop(closed, None)
        return cls(slots=slots, closed_weekday=closed)

    def slots_for(self, weekday: int | str) -> tuple[time, ...]:
        index = weekday_index(weekday)
        if index is None:
            return ()
        return self.slots.get(index, ())

    def ensure_open(self, day: date) -> None:
        """Raise PolicyViolationError when `day` falls on the closed weekday."""
        if self.closed_weekday is not None and day.weekday() == self.closed_weekday:
            raise PolicyViolationError(f"no bookings on {WEEKDAYS[self.closed_weekday]}")

    def offers(self, moment: datetime) -> bool:
        wanted = moment.time().replace(second=0, microsecond=0)
        return wanted in self.slots_for(moment.weekday())
