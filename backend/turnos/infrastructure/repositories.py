from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..domain.repositories import ReservationStore
from ..models import ACTIVE_STATUSES, Reservation, ReservationStatus


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SqlAlchemyReservationStore(ReservationStore):
    """
    Every method runs as its own short transaction so that no database transaction
    stays open across payment-provider or SMTP calls made by the caller.
    """

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self.sessionmaker = sessionmaker

    async def find_active(self, date_time: datetime) -> Optional[Reservation]:
        async with self.sessionmaker() as session:
            result = await session.scalar(select(Reservation).where(Reservation.active_slot == date_time))
            return result if isinstance(result, Reservation) else None

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
        now = _utc_now_naive()
        active = status in ACTIVE_STATUSES
        reservation = Reservation(
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
        async with self.sessionmaker() as session:
            try:
                async with session.begin():
                    session.add(reservation)
            except IntegrityError:
                # uq_res_active_slot: another writer holds this date_time
                return None
        return reservation

    async def update_status(
        self,
        date_time: datetime,
        *,
        from_status: ReservationStatus,
        to_status: ReservationStatus,
        **fields: Any,
    ) -> bool:
        values: dict[str, Any] = {**fields, "status": to_status, "updated_at": _utc_now_naive()}
        if to_status == ReservationStatus.CANCELLED:
            values["active_slot"] = None
        stmt = (
            update(Reservation)
            .where(Reservation.active_slot == date_time, Reservation.status == from_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self.sessionmaker() as session, session.begin():
            result = await session.execute(stmt)
        return bool(result.rowcount)

    async def delete_before(self, cutoff: datetime) -> int:
        stmt = delete(Reservation).where(Reservation.date_time < cutoff).execution_options(synchronize_session=False)
        async with self.sessionmaker() as session, session.begin():
            result = await session.execute(stmt)
        return int(result.rowcount or 0)

    async def list_active_on(self, day: date) -> List[Reservation]:
        start = datetime.combine(day, time.min)
        end = start + timedelta(days=1)
        stmt = (
            select(Reservation)
            .where(Reservation.active_slot >= start, Reservation.active_slot < end)
            .order_by(Reservation.date_time)
        )
        async with self.sessionmaker() as session:
            rows = await session.scalars(stmt)
            return list(rows.all())

    async def list_all(self) -> List[Reservation]:
        stmt = select(Reservation).order_by(Reservation.date_time, Reservation.id)
        async with self.sessionmaker() as session:
            rows = await session.scalars(stmt)
            return list(rows.all())
