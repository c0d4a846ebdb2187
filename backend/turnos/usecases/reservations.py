import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional
from urllib.parse import urlencode

from ..domain.errors import ConflictError, PaymentGatewayError, PaymentRejectedError, UnavailableError
from ..domain.repositories import Notifier, PaymentGateway, ReservationStore
from ..domain.schedule import ScheduleTemplate
from ..domain.services import (
    format_external_reference,
    is_payment_approved,
    is_payment_failed,
    normalize_slot,
    parse_deposit_amount,
    validate_slot_request,
)
from ..models import Reservation, ReservationStatus
from ..utils.time import format_for_humans

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReservationHandle:
    reservation: Reservation
    external_reference: str
    redirect_url: Optional[str] = None

    @property
    def requires_payment(self) -> bool:
        return self.redirect_url is not None


@dataclass(frozen=True)
class ConfirmationResult:
    reservation: Optional[Reservation]
    already_confirmed: bool
    notified: bool = False


def build_return_urls(
    callback_base_url: str,
    *,
    client_name: str,
    service_type: str,
    client_email: Optional[str],
) -> dict[str, str]:
    """The provider appends external_reference/status/payment_id to these URLs on redirect."""
    base = callback_base_url.rstrip("/")
    client_params = {"clientName": client_name, "serviceType": service_type}
    if client_email:
        client_params["clientEmail"] = client_email
    return {
        "success": f"{base}/turnos/confirmar?{urlencode(client_params)}",
        "failure": f"{base}/turnos/error",
        "pending": f"{base}/turnos/pendiente",
    }


async def request_reservation(
    store: ReservationStore,
    gateway: Optional[PaymentGateway],
    template: ScheduleTemplate,
    *,
    date_time: datetime,
    client_name: str,
    service_type: str,
    deposit_amount: Any = None,
    client_email: Optional[str] = None,
    callback_base_url: str = "",
    currency: str = "ARS",
    notifier: Optional[Notifier] = None,
    contact_email: Optional[str] = None,
) -> ReservationHandle:
    amount = parse_deposit_amount(deposit_amount)
    slot = normalize_slot(date_time)
    validate_slot_request(template, slot)
    reference = format_external_reference(slot)

    # Fast path only; the unique active_slot index decides below.
    if await store.find_active(slot) is not None:
        raise ConflictError("the slot for this date and time is already reserved")

    status = ReservationStatus.PENDING if amount is not None else ReservationStatus.CONFIRMED
    reservation = await store.insert_if_absent(
        date_time=slot,
        client_name=client_name,
        service_type=service_type,
        client_email=client_email,
        status=status,
        deposit_amount=amount,
        external_reference=reference,
    )
    if reservation is None:
        raise ConflictError("the slot for this date and time is already reserved")

    if amount is None:
        logger.info("Reservation %s confirmed without deposit", reference)
        await notify_confirmation(notifier, reservation, contact_email=contact_email)
        return ReservationHandle(reservation=reservation, external_reference=reference)

    if gateway is None:
        await store.update_status(slot, from_status=ReservationStatus.PENDING, to_status=ReservationStatus.CANCELLED)
        raise UnavailableError("payments are not available")
    try:
        intent = await gateway.create_payment_intent(
            amount=amount,
            currency=currency,
            description=f"Reservation: {service_type}",
            payer_name=client_name,
            external_reference=reference,
            return_urls=build_return_urls(
                callback_base_url,
                client_name=client_name,
                service_type=service_type,
                client_email=client_email,
            ),
        )
    except Exception as exc:
        # release the hold instead of waiting for the sweeper
        await store.update_status(slot, from_status=ReservationStatus.PENDING, to_status=ReservationStatus.CANCELLED)
        if not isinstance(exc, PaymentGatewayError):
            logger.exception("Unexpected payment gateway failure for %s", reference)
        raise UnavailableError("could not start the deposit payment") from exc

    logger.info("Reservation %s pending payment", reference)
    return ReservationHandle(
        reservation=reservation,
        external_reference=intent.external_reference,
        redirect_url=intent.redirect_url,
    )


async def confirm_reservation(
    store: ReservationStore,
    notifier: Optional[Notifier],
    template: ScheduleTemplate,
    *,
    date_time: datetime,
    payment_status: Optional[str],
    client_name: str,
    service_type: str,
    client_email: Optional[str] = None,
    payment_id: Optional[str] = None,
    contact_email: Optional[str] = None,
) -> ConfirmationResult:
    slot = normalize_slot(date_time)
    if not is_payment_approved(payment_status):
        if is_payment_failed(payment_status):
            released = await store.update_status(
                slot, from_status=ReservationStatus.PENDING, to_status=ReservationStatus.CANCELLED
            )
            logger.info("Payment %s for %s; hold released=%s", payment_status, slot, released)
        raise PaymentRejectedError("the payment was not approved")

    extra = {"payment_id": payment_id} if payment_id else {}
    flipped = await store.update_status(
        slot,
        from_status=ReservationStatus.PENDING,
        to_status=ReservationStatus.CONFIRMED,
        **extra,
    )
    if flipped:
        reservation = await store.find_active(slot)
        notified = await notify_confirmation(notifier, reservation, contact_email=contact_email)
        return ConfirmationResult(reservation=reservation, already_confirmed=False, notified=notified)

    existing = await store.find_active(slot)
    if existing is not None:
        return _already_confirmed_or_conflict(existing)

    # No hold on record (purged, or the request never reached us): persist the paid slot now,
    # subject to the same schedule rules as a fresh request.
    validate_slot_request(template, slot)
    reservation = await store.insert_if_absent(
        date_time=slot,
        client_name=client_name,
        service_type=service_type,
        client_email=client_email,
        status=ReservationStatus.CONFIRMED,
        deposit_amount=None,
        external_reference=format_external_reference(slot),
        payment_id=payment_id,
    )
    if reservation is None:
        existing = await store.find_active(slot)
        if existing is None:
            raise ConflictError("the slot for this date and time changed concurrently")
        return _already_confirmed_or_conflict(existing)

    notified = await notify_confirmation(notifier, reservation, contact_email=contact_email)
    return ConfirmationResult(reservation=reservation, already_confirmed=False, notified=notified)


def _already_confirmed_or_conflict(existing: Reservation) -> ConfirmationResult:
    if existing.status == ReservationStatus.CONFIRMED:
        logger.info("Duplicate confirmation for %s ignored", existing.date_time)
        return ConfirmationResult(reservation=existing, already_confirmed=True)
    raise ConflictError("the slot for this date and time is held by another reservation")


async def cancel_reservation(store: ReservationStore, *, date_time: datetime) -> bool:
    """Release a pending hold. Confirmed reservations are left untouched."""
    return await store.update_status(
        normalize_slot(date_time),
        from_status=ReservationStatus.PENDING,
        to_status=ReservationStatus.CANCELLED,
    )


async def purge_expired(store: ReservationStore, *, now: datetime, retention: timedelta) -> int:
    cutoff = now - retention
    return await store.delete_before(cutoff)


async def list_reservations(store: ReservationStore) -> list[Reservation]:
    return await store.list_all()


async def notify_confirmation(
    notifier: Optional[Notifier],
    reservation: Optional[Reservation],
    *,
    contact_email: Optional[str],
) -> bool:
    """Send client and owner emails. Failures are logged and reported as False, never raised."""
    if notifier is None or reservation is None:
        return False
    when = format_for_humans(reservation.date_time)
    sent = False
    try:
        if reservation.client_email:
            sent = await notifier.send(
                [reservation.client_email],
                "Your appointment is confirmed",
                f"Hi {reservation.client_name},\n\n"
                f"Your {reservation.service_type} appointment on {when} is confirmed.\n",
            )
        if contact_email:
            owner_sent = await notifier.send(
                [contact_email],
                "New appointment booked",
                f"{reservation.client_name} booked {reservation.service_type} on {when}.\n"
                f"Client email: {reservation.client_email or '-'}\n",
            )
            sent = sent or owner_sent
    except Exception:
        logger.exception("Notifier failed for reservation at %s", reservation.date_time)
        return False
    return sent
