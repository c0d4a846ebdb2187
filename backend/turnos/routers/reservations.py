import logging
from typing import List, Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.exc import SQLAlchemyError

from ..config import Settings
from ..deps import get_app_settings, get_notifier, get_payment_gateway, get_schedule, get_store
from ..domain.errors import (
    ConflictError,
    InvalidInputError,
    PaymentRejectedError,
    PolicyViolationError,
    UnavailableError,
)
from ..domain.repositories import Notifier, PaymentGateway, ReservationStore
from ..domain.schedule import ScheduleTemplate
from ..domain.services import parse_slot_datetime
from ..models import ReservationStatus
from ..schemas import PaymentReturn, ReservationConfirmed, ReservationCreate, ReservationRead, ReservationRequested
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.time import to_local_naive

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/turnos", tags=["reservations"])

INTERNAL_ERROR = "internal error while processing the request"


@router.post("/reservar", response_model=ReservationRequested)
async def request_reservation(
    payload: ReservationCreate,
    response: Response,
    store: ReservationStore = Depends(get_store),
    gateway: Optional[PaymentGateway] = Depends(get_payment_gateway),
    notifier: Optional[Notifier] = Depends(get_notifier),
    schedule: ScheduleTemplate = Depends(get_schedule),
    settings: Settings = Depends(get_app_settings),
) -> ReservationRequested:
    date_time = to_local_naive(payload.date_time, ZoneInfo(settings.business_timezone))
    try:
        handle = await reservation_usecase.request_reservation(
            store,
            gateway,
            schedule,
            date_time=date_time,
            client_name=payload.client_name,
            service_type=payload.service_type,
            deposit_amount=payload.deposit_amount,
            client_email=payload.client_email,
            callback_base_url=settings.backend_url,
            currency=settings.payment_currency,
            notifier=notifier,
            contact_email=settings.contact_email or None,
        )
    except (ConflictError, InvalidInputError, PolicyViolationError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except UnavailableError:
        logger.exception("Payment provider unavailable for %s", date_time)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=INTERNAL_ERROR)
    except SQLAlchemyError:
        logger.exception("Store error while reserving %s", date_time)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=INTERNAL_ERROR)

    reservation = handle.reservation
    try:
        emit_audit_log(
            action="reservation.requested",
            initiator="client",
            date_time=reservation.date_time,
            client_name=reservation.client_name,
            service_type=reservation.service_type,
            status_from=None,
            status_to=reservation.status,
            external_reference=handle.external_reference,
        )
    except RuntimeError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed to write audit log")

    if handle.requires_payment:
        message = "pay the deposit to confirm the reservation"
    else:
        response.status_code = status.HTTP_201_CREATED
        message = "reservation confirmed"
    return ReservationRequested(
        message=message,
        date_time=reservation.date_time,
        status=reservation.status,
        redirect_url=handle.redirect_url,
        external_reference=handle.external_reference,
    )


@router.get("/confirmar", response_model=ReservationConfirmed, status_code=status.HTTP_201_CREATED)
async def confirm_reservation(
    external_reference: Optional[str] = Query(default=None, alias="externalReference"),
    provider_reference: Optional[str] = Query(default=None, alias="external_reference"),
    payment_status: Optional[str] = Query(default=None, alias="status"),
    client_name: str = Query(..., alias="clientName", min_length=1),
    service_type: str = Query(..., alias="serviceType", min_length=1),
    client_email: Optional[str] = Query(default=None, alias="clientEmail"),
    payment_id: Optional[str] = Query(default=None, alias="payment_id"),
    store: ReservationStore = Depends(get_store),
    notifier: Optional[Notifier] = Depends(get_notifier),
    schedule: ScheduleTemplate = Depends(get_schedule),
    settings: Settings = Depends(get_app_settings),
) -> ReservationConfirmed:
    try:
        date_time = parse_slot_datetime(external_reference or provider_reference, ZoneInfo(settings.business_timezone))
        result = await reservation_usecase.confirm_reservation(
            store,
            notifier,
            schedule,
            date_time=date_time,
            payment_status=payment_status,
            client_name=client_name,
            service_type=service_type,
            client_email=client_email,
            payment_id=payment_id,
            contact_email=settings.contact_email or None,
        )
    except PaymentRejectedError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="the payment was not approved")
    except (ConflictError, InvalidInputError, PolicyViolationError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except SQLAlchemyError:
        logger.exception("Store error while confirming %s", external_reference or provider_reference)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=INTERNAL_ERROR)

    if result.already_confirmed:
        return ReservationConfirmed(message="reservation already confirmed", already_confirmed=True)

    try:
        emit_audit_log(
            action="reservation.confirmed",
            initiator="payment_gateway",
            date_time=date_time,
            client_name=client_name,
            service_type=service_type,
            status_from=ReservationStatus.PENDING,
            status_to=ReservationStatus.CONFIRMED,
            external_reference=external_reference or provider_reference,
            extra={"payment_id": payment_id, "notified": result.notified},
        )
    except RuntimeError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed to write audit log")
    return ReservationConfirmed(message="reservation confirmed")


@router.get("/error", response_model=PaymentReturn)
async def payment_failed(
    external_reference: Optional[str] = Query(default=None, alias="externalReference"),
    provider_reference: Optional[str] = Query(default=None, alias="external_reference"),
    store: ReservationStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> PaymentReturn:
    try:
        date_time = parse_slot_datetime(external_reference or provider_reference, ZoneInfo(settings.business_timezone))
        cancelled = await reservation_usecase.cancel_reservation(store, date_time=date_time)
    except InvalidInputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except SQLAlchemyError:
        logger.exception("Store error while cancelling %s", external_reference or provider_reference)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=INTERNAL_ERROR)

    if cancelled:
        try:
            emit_audit_log(
                action="reservation.cancelled",
                initiator="payment_gateway",
                date_time=date_time,
                status_from=ReservationStatus.PENDING,
                status_to=ReservationStatus.CANCELLED,
                external_reference=external_reference or provider_reference,
            )
        except RuntimeError:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed to write audit log")
    return PaymentReturn(message="the payment failed; the reservation was released", cancelled=cancelled)


@router.get("/pendiente", response_model=PaymentReturn, status_code=status.HTTP_202_ACCEPTED)
async def payment_pending(
    external_reference: Optional[str] = Query(default=None, alias="externalReference"),
    provider_reference: Optional[str] = Query(default=None, alias="external_reference"),
    settings: Settings = Depends(get_app_settings),
) -> PaymentReturn:
    try:
        parse_slot_datetime(external_reference or provider_reference, ZoneInfo(settings.business_timezone))
    except InvalidInputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return PaymentReturn(message="the payment is pending; the reservation is held until it is approved")


@router.get("", response_model=List[ReservationRead])
async def list_reservations(
    store: ReservationStore = Depends(get_store),
) -> list[ReservationRead]:
    try:
        rows = await reservation_usecase.list_reservations(store)
    except SQLAlchemyError:
        logger.exception("Store error while listing reservations")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=INTERNAL_ERROR)
    return [ReservationRead.from_db(reservation=reservation) for reservation in rows]
