"""
Retention sweeper: every PURGE_INTERVAL_MINUTES delete reservations whose date_time is more
than RETENTION_HOURS in the past, whatever their status. A failed run is logged and the next
run proceeds as scheduled.
"""
import logging
from datetime import timedelta
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..config import Settings
from ..database import Database
from ..infrastructure.repositories import SqlAlchemyReservationStore
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.time import local_now

logger = logging.getLogger(__name__)

PURGE_JOB_ID = "purge_expired"


async def run_purge_job(database: Database, *, retention_hours: int, timezone_name: str) -> int | None:
    """Returns the number of deleted reservations, or None when the run failed."""
    store = SqlAlchemyReservationStore(database.sessionmaker)
    now = local_now(ZoneInfo(timezone_name))
    try:
        deleted = await reservation_usecase.purge_expired(
            store,
            now=now,
            retention=timedelta(hours=retention_hours),
        )
    except Exception as e:
        logger.warning("Purge of expired reservations failed: %s", e, exc_info=True)
        return None

    logger.info("Deleted %s expired reservations", deleted)
    try:
        emit_audit_log(
            action="reservation.purged",
            initiator="system",
            date_time=None,
            extra={"deleted": deleted, "retention_hours": retention_hours},
        )
    except RuntimeError:
        logger.warning("Could not write purge audit log", exc_info=True)
    return deleted


def build_scheduler(database: Database, settings: Settings) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone=settings.business_timezone)
    scheduler.add_job(
        run_purge_job,
        "interval",
        minutes=settings.purge_interval_minutes,
        id=PURGE_JOB_ID,
        kwargs={
            "database": database,
            "retention_hours": settings.retention_hours,
            "timezone_name": settings.business_timezone,
        },
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    return scheduler
