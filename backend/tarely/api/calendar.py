from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tarely.api.deps import get_current_user
from tarely.database import get_db
from tarely.errors import ValidationError
from tarely.models.profile import Profile
from tarely.schemas.calendar import CalendarTaskSchema
from tarely.services import calendar_service
from tarely.services.recurrence import ensure_utc

router = APIRouter(prefix="/calendar", tags=["calendar"])


@router.get("/tasks", response_model=list[CalendarTaskSchema])
def calendar_tasks(
    start: datetime = Query(...),
    end: datetime = Query(...),
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Tasks due in the range across every workspace the caller can see."""
    start = ensure_utc(start).astimezone(timezone.utc)
    end = ensure_utc(end).astimezone(timezone.utc)
    if end < start:
        raise ValidationError("El rango de fechas no es válido")
    return calendar_service.tasks_in_range(db, user.id, start, end)
