from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, field_serializer
from pydantic.alias_generators import to_camel

from .models import Reservation, ReservationStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReservationCreate(CamelModel):
    date_time: datetime
    client_name: str = Field(min_length=1, max_length=255)
    service_type: str = Field(min_length=1, max_length=255)
    # parsed by domain.services.parse_deposit_amount
    deposit_amount: Optional[Union[StrictInt, StrictFloat, str]] = None
    client_email: Optional[str] = Field(default=None, max_length=255)


class ReservationRequested(CamelModel):
    message: str
    date_time: datetime
    status: ReservationStatus
    redirect_url: Optional[str] = Field(default=None, alias="redirectURL")
    external_reference: str

    @field_serializer("date_time")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat(timespec="minutes")


class ReservationConfirmed(CamelModel):
    message: str
    already_confirmed: bool = False


class PaymentReturn(CamelModel):
    message: str
    cancelled: bool = False


class ReservationRead(CamelModel):
    date_time: datetime
    client_name: str
    service_type: str
    client_email: Optional[str]
    status: ReservationStatus
    deposit_amount: Optional[Decimal]
    created_at: datetime

    @field_serializer("date_time")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat(timespec="minutes")

    @classmethod
    def from_db(cls, *, reservation: Reservation) -> "ReservationRead":
        return cls(
            date_time=reservation.date_time,
            client_name=reservation.client_name,
            service_type=reservation.service_type,
            client_email=reservation.client_email,
            status=reservation.status,
            deposit_amount=reservation.deposit_amount,
            created_at=reservation.created_at,
        )
