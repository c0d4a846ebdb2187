from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from .config import Settings, get_settings
from .database import Database
from .domain.repositories import Notifier, PaymentGateway
from .domain.schedule import ScheduleTemplate
from .infrastructure.repositories import SqlAlchemyReservationStore


def get_database(request: Request) -> Database:
    database: Optional[Database] = getattr(request.app.state, "database", None)
    if database is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="database not initialised")
    return database


async def get_store(database: Database = Depends(get_database)) -> SqlAlchemyReservationStore:
    return SqlAlchemyReservationStore(database.sessionmaker)


def get_app_settings(request: Request) -> Settings:
    settings: Optional[Settings] = getattr(request.app.state, "settings", None)
    return settings if settings is not None else get_settings()


def get_schedule(request: Request, settings: Settings = Depends(get_app_settings)) -> ScheduleTemplate:
    schedule: Optional[ScheduleTemplate] = getattr(request.app.state, "schedule", None)
    return schedule if schedule is not None else settings.build_schedule()


def get_payment_gateway(request: Request) -> Optional[PaymentGateway]:
    return getattr(request.app.state, "payment_gateway", None)


def get_notifier(request: Request) -> Optional[Notifier]:
    return getattr(request.app.state, "notifier", None)
