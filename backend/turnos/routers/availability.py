import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError

from ..deps import get_schedule, get_store
from ..domain.errors import InvalidInputError, PolicyViolationError
from ..domain.repositories import ReservationStore
from ..domain.schedule import ScheduleTemplate
from ..usecases import availability as availability_usecase

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/turnos", tags=["availability"])


@router.get("/horarios-disponibles", response_model=List[str])
async def list_available_times(
    date: Optional[str] = Query(default=None, description="Calendar date (YYYY-MM-DD)"),
    store: ReservationStore = Depends(get_store),
    schedule: ScheduleTemplate = Depends(get_schedule),
) -> list[str]:
    try:
        return await availability_usecase.compute_available(store, schedule, raw_date=date)
    except InvalidInputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except PolicyViolationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except SQLAlchemyError:
        logger.exception("Store error while computing availability for %s", date)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="internal error while processing the request",
        )
