"""Shared fixtures: an in-memory store for usecase tests and a temporary SQLite database for store/API tests."""
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence

import pytest
import pytest_asyncio
from turnos.database import Database
from turnos.domain.errors import PaymentGatewayError
from turnos.domain.repositories import PaymentIntent
from turnos.domain.schedule import ScheduleTemplate
from turnos.infrastructure.repositories import SqlAlchemyReservationStore
from turnos.models import ACTIVE_STATUSES, Reservation, ReservationStatus


class InMemoryReservationStore:
    """Mirrors SqlAlchemyReservationStore semantics, including the one-active-row-per-slot rule."""

    def __init__(self) -> None:
        self.rows: list[Reservation] = []
        self._next_id = 1

    async def find_active(self, date_time: datetime) -> Optional[Reservation]:
        await asyncio.sleep(0)
        return next((r for r in self.rows if r.active_slot == date_time), None)

    async def insert_if_absent(
        self,
        *,
        date_time: datetime,
        client_name: str,
        service_type: str,
        client_email: str | None,
        status: ReservationStatus,
        deposit_amount: Decimal | None,
        external_reference: str | None = None,
        payment_id: str | None = None,
    ) -> Optional[Reservation]:
        active = status in ACTIVE_STATUSES
        if active and any(r.active_slot == date_time for r in self.rows):
            return None
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        reservation = Reservation(
            id=self._next_id,
            date_time=date_time,
            active_slot=date_time if active else None,
            client_name=client_name,
            service_type=service_type,
            client_email=client_email,
            status=status,
            deposit_amount=deposit_amount,
            external_reference=external_reference,
            payment_id=payment_id,
            created_at=now,
            updated_at=now,
        )
        self._next_id += 1
        self.rows.append(reservation)
        return reservation

    async def update_status(
        self,
        date_time: datetime,
        *,
        from_status: ReservationStatus,
        to_status: ReservationStatus,
        **fields: Any,
    ) -> bool:
        for row in self.rows:
            if row.active_slot == date_time and row.status == from_status:
                row.status = to_status
                if to_status == ReservationStatus.CANCELLED:
                    row.active_slot = None
                for key, value in fields.items():
                    setattr(row, key, value)
                return True
        return False

    async def delete_before(self, cutoff: datetime) -> int:
        before = len(self.rows)
        self.rows = [r for r in self.rows if r.date_time >= cutoff]
        return before - len(self.rows)

    async def list_active_on(self, day: date) -> list[Reservation]:
        start = datetime.combine(day, time.min)
        end = start + timedelta(days=1)
        return sorted(
            (r for r in self.rows if r.active_slot is not None and start <= r.active_slot < end),
            key=lambda r: r.date_time,
        )

    async def list_all(self) -> list[Reservation]:
        return sorted(self.rows, key=lambda r: (r.date_time, r.id))


class FakeGateway:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[dict[str, Any]] = []

    async def create_payment_intent(
        self,
        *,
        amount: Decimal,
        currency: str,
        description: str,
        payer_name: str,
        external_reference: str,
        return_urls: Mapping[str, str],
    ) -> PaymentIntent:
        self.calls.append(
            {
                "amount": amount,
                "currency": currency,
                "description": description,
                "payer_name": payer_name,
                "external_reference": external_reference,
                "return_urls": dict(return_urls),
            }
        )
        if self.fail:
            raise PaymentGatewayError("provider down")
        return PaymentIntent(
            external_reference=external_reference,
            redirect_url=f"https://pay.example/checkout/{external_reference}",
            preference_id="pref-1",
        )


class FakeNotifier:
    def __init__(self, *, result: bool = True, raises: bool = False) -> None:
        self.result = result
        self.raises = raises
        self.sent: list[tuple[list[str], str, str]] = []

    async def send(self, recipients: Sequence[str], subject: str, body: str) -> bool:
        if self.raises:
            raise ConnectionError("smtp down")
        self.sent.append((list(recipients), subject, body))
        return self.result


@pytest.fixture()
def memory_store() -> InMemoryReservationStore:
    return InMemoryReservationStore()


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def schedule() -> ScheduleTemplate:
    return ScheduleTemplate.from_config(
        {
            "monday": ["08:00", "09:00", "10:00", "11:00"],
            "tuesday": ["08:00", "09:00", "10:00", "11:00"],
            "saturday": ["08:00", "09:00", "14:00"],
        },
        closed_weekday="sunday",
    )


@pytest.fixture()
def db_url(tmp_path: Any) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'turnos.db'}"


@pytest_asyncio.fixture()
async def database(db_url: str) -> AsyncIterator[Database]:
    db = Database(db_url)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture()
def sql_store(database: Database) -> SqlAlchemyReservationStore:
    return SqlAlchemyReservationStore(database.sessionmaker)
