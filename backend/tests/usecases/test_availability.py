from datetime import date, datetime

import pytest
from turnos.domain.errors import InvalidInputError, PolicyViolationError
from turnos.domain.schedule import ScheduleTemplate
from turnos.models import ReservationStatus
from turnos.usecases import availability as uc


async def _reserve(store, moment: datetime, status: ReservationStatus = ReservationStatus.CONFIRMED) -> None:
    await store.insert_if_absent(
        date_time=moment,
        client_name="Ana",
        service_type="haircut",
        client_email=None,
        status=status,
        deposit_amount=None,
    )


@pytest.mark.asyncio
async def test_reserved_monday_slot_is_removed(memory_store) -> None:
    template = ScheduleTemplate.from_config({"monday": ["09:00", "11:00"]}, closed_weekday=None)
    await _reserve(memory_store, datetime(2024, 6, 10, 9, 0))

    result = await uc.compute_available(memory_store, template, raw_date="2024-06-10")

    assert result == ["11:00"]


@pytest.mark.asyncio
async def test_pending_holds_also_block_the_slot(memory_store, schedule) -> None:
    await _reserve(memory_store, datetime(2024, 6, 10, 8, 0), ReservationStatus.PENDING)
    await _reserve(memory_store, datetime(2024, 6, 10, 10, 0), ReservationStatus.CONFIRMED)

    result = await uc.compute_available(memory_store, schedule, raw_date="2024-06-10")

    assert result == ["09:00", "11:00"]


@pytest.mark.asyncio
async def test_cancelled_reservations_free_the_slot(memory_store, schedule) -> None:
    moment = datetime(2024, 6, 10, 8, 0)
    await _reserve(memory_store, moment, ReservationStatus.PENDING)
    await memory_store.update_status(
        moment, from_status=ReservationStatus.PENDING, to_status=ReservationStatus.CANCELLED
    )

    result = await uc.compute_available(memory_store, schedule, raw_date="2024-06-10")

    assert "08:00" in result


@pytest.mark.asyncio
async def test_reservations_on_other_days_do_not_interfere(memory_store, schedule) -> None:
    await _reserve(memory_store, datetime(2024, 6, 11, 9, 0))

    result = await uc.compute_available(memory_store, schedule, raw_date="2024-06-10")

    assert result == ["08:00", "09:00", "10:00", "11:00"]


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["2024-06-09", "2024-06-16", "2024-06-23"])
async def test_closed_weekday_is_a_policy_violation(memory_store, schedule, raw: str) -> None:
    with pytest.raises(PolicyViolationError):
        await uc.compute_available(memory_store, schedule, raw_date=raw)


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", [None, "", "tomorrow"])
async def test_missing_or_unparseable_date_is_invalid(memory_store, schedule, raw) -> None:
    with pytest.raises(InvalidInputError):
        await uc.compute_available(memory_store, schedule, raw_date=raw)


@pytest.mark.asyncio
async def test_unconfigured_weekday_returns_empty(memory_store, schedule) -> None:
    assert await uc.compute_available_on(memory_store, schedule, day=date(2024, 6, 12)) == []


@pytest.mark.asyncio
async def test_fully_booked_day_returns_empty(memory_store, schedule) -> None:
    for hour in (8, 9, 14):
        await _reserve(memory_store, datetime(2024, 6, 15, hour, 0))

    assert await uc.compute_available(memory_store, schedule, raw_date="2024-06-15") == []
