from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping, Protocol, Sequence

from ..models import Reservation, ReservationStatus


class ReservationStore(Protocol):
    async def find_active(self, date_time: datetime) -> Reservation | None: ...

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
    ) -> Reservation | None: ...

    async def update_status(
        self,
        date_time: datetime,
        *,
        from_status: ReservationStatus,
        to_status: ReservationStatus,
        **fields: Any,
    ) -> bool: ...

    async def delete_before(self, cutoff: datetime) -> int: ...

    async def list_active_on(self, day: date) -> list[Reservation]: ...

    async def list_all(self) -> list[Reservation]: ...


@dataclass(frozen=True)
class PaymentIntent:
    external_reference: str
    redirect_url: str
    preference_id: str | None = None


class PaymentGateway(Protocol):
    async def create_payment_intent(
        self,
        *,
        amount: Decimal,
        currency: str,
        description: str,
        payer_name: str,
        external_reference: str,
        return_urls: Mapping[str, str],
    ) -> PaymentIntent: ...


class Notifier(Protocol):
    async def send(self, recipients: Sequence[str], subject: str, body: str) -> bool: ...
