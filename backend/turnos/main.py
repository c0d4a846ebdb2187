import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .database import Database
from .domain.repositories import Notifier, PaymentGateway
from .domain.schedule import ScheduleTemplate
from .infrastructure.notifier import SmtpNotifier
from .infrastructure.payments import MercadoPagoGateway
from .routers import availability, reservations
from .scheduler.purge_job import build_scheduler
from .utils.request_id import request_id_middleware

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    database: Optional[Database] = None,
    schedule: Optional[ScheduleTemplate] = None,
    payment_gateway: Optional[PaymentGateway] = None,
    notifier: Optional[Notifier] = None,
    run_scheduler: bool = True,
) -> FastAPI:
    """Collaborators passed in are used as-is; the lifespan builds whatever is missing from settings."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owns_database = app.state.database is None
        if owns_database:
            app.state.database = Database.from_settings(settings)
        await app.state.database.create_all()
        if app.state.payment_gateway is None:
            app.state.payment_gateway = MercadoPagoGateway(
                settings.mercadopago_access_token,
                api_url=settings.mercadopago_api_url,
            )
        if app.state.notifier is None:
            app.state.notifier = SmtpNotifier(
                host=settings.smtp_host,
                port=settings.smtp_port,
                user=settings.email_user,
                password=settings.email_pass,
            )

        scheduler = None
        if run_scheduler:
            scheduler = build_scheduler(app.state.database, settings)
            scheduler.start()
            logger.info(
                "Purge job scheduled every %s minutes (retention %sh)",
                settings.purge_interval_minutes,
                settings.retention_hours,
            )
        app.state.scheduler = scheduler
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown(wait=False)
            if owns_database:
                await app.state.database.dispose()

    app = FastAPI(title="Turnos API", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.schedule = schedule or settings.build_schedule()
    app.state.payment_gateway = payment_gateway
    app.state.notifier = notifier

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(request_id_middleware)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "invalid request", "errors": jsonable_errors(exc)},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(availability.router)
    app.include_router(reservations.router)
    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, object]]:
    return [{"loc": list(error.get("loc", ())), "msg": error.get("msg", "")} for error in exc.errors()]


app = create_app()
