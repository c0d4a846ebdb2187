from datetime import date
from typing import List

from ..domain.repositories import ReservationStore
from ..domain.schedule import ScheduleTemplate
from ..domain.services import filter_available, parse_query_date


async def compute_available(
    store: ReservationStore,
    template: ScheduleTemplate,
    *,
    raw_date: str | None,
) -> List[str]:
    day = parse_query_date(raw_date)
    return await compute_available_on(store, template, day=day)


async def compute_available_on(
    store: ReservationStore,
    template: ScheduleTemplate,
    *,
    day: date,
) -> List[str]:
    template.ensure_open(day)
    offered = template.slots_for(day.weekday())
    if not offered:
        return []
    reserved = await store.list_active_on(day)
    return filter_available(offered, (reservation.date_time for reservation in reserved))
