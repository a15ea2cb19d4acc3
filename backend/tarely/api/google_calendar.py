import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from google_auth_oauthlib.flow import Flow
from sqlalchemy.orm import Session

from tarely.api.deps import get_current_user
from tarely.config import settings
from tarely.database import get_db
from tarely.models.profile import Profile
from tarely.schemas.calendar import (
    BusyBlockSchema,
    CalendarEventSchema,
    CalendarListEntrySchema,
    FreeBusyRequestSchema,
    GoogleAuthUrlSchema,
    GoogleStatusSchema,
    SyncTaskRequestSchema,
    SyncTaskResponseSchema,
)
from tarely.schemas.common import SuccessSchema
from tarely.services import access, calendar_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/google-calendar", tags=["google-calendar"])

SCOPES = [
    "https://www.googleapis.com/auth/calendar.readonly",
    "https://www.googleapis.com/auth/calendar.events",
]


def _create_flow() -> Flow:
    client_config = {
        "web": {
            "client_id": settings.GOOGLE_CLIENT_ID,
            "client_secret": settings.GOOGLE_CLIENT_SECRET,
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
        }
    }
    flow = Flow.from_client_config(client_config, scopes=SCOPES)
    flow.redirect_uri = settings.GOOGLE_REDIRECT_URI
    return flow


@router.get("/auth-url", response_model=GoogleAuthUrlSchema)
def auth_url(user: Profile = Depends(get_current_user)):
    flow = _create_flow()
    authorization_url, _ = flow.authorization_url(
        access_type="offline",
        include_granted_scopes="true",
        prompt="consent",
        state=calendar_service.encode_state(user.id),
    )
    return GoogleAuthUrlSchema(url=authorization_url)


@router.get("/callback")
def callback(code: str, state: str | None = None, db: Session = Depends(get_db)):
    """OAuth redirect target. The caller is identified by the signed state."""
    user_id = calendar_service.decode_state(state)
    flow = _create_flow()
    flow.fetch_token(code=code)
    credentials = flow.credentials

    calendar_service.save_tokens(
        db, user_id, credentials.token, credentials.refresh_token, credentials.expiry
    )
    return RedirectResponse(url=f"{settings.APP_URL.rstrip('/')}/calendario?google=connected")


@router.get("/status", response_model=GoogleStatusSchema)
def status(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    return calendar_service.status(db, user.id)


@router.delete("", response_model=SuccessSchema)
def disconnect(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    calendar_service.disconnect(db, user.id)
    return SuccessSchema()


@router.get("/calendars", response_model=list[CalendarListEntrySchema])
def list_calendars(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    connector = calendar_service.connector_for(db, user.id)
    calendars = connector.list_calendars()
    calendar_service.persist_refresh(db, user.id)
    return [
        CalendarListEntrySchema(
            id=c.calendar_id, summary=c.summary, primary=c.primary, background_color=c.background_color
        )
        for c in calendars
    ]


@router.get("/events", response_model=list[CalendarEventSchema])
def list_events(
    time_min: datetime | None = Query(None, alias="timeMin"),
    time_max: datetime | None = Query(None, alias="timeMax"),
    calendar_id: str = Query("primary", alias="calendarId"),
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    connector = calendar_service.connector_for(db, user.id)
    events = connector.list_events(time_min, time_max, calendar_id)
    calendar_service.persist_refresh(db, user.id)
    return [
        CalendarEventSchema(
            id=e.event_id,
            summary=e.summary,
            description=e.description,
            start=e.start,
            end=e.end,
            all_day=e.all_day,
            html_link=e.html_link,
        )
        for e in events
    ]


@router.post("/freebusy", response_model=list[BusyBlockSchema])
def freebusy(
    body: FreeBusyRequestSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    connector = calendar_service.connector_for(db, user.id)
    blocks = connector.freebusy(body.time_min, body.time_max, body.calendar_ids)
    calendar_service.persist_refresh(db, user.id)
    return [BusyBlockSchema(calendar_id=b.calendar_id, start=b.start, end=b.end) for b in blocks]


@router.post("/sync-task", response_model=SyncTaskResponseSchema)
def sync_task(
    body: SyncTaskRequestSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Mirror a task onto the user's calendar as a one-hour event."""
    task = access.require_task(db, body.task_id, user.id)
    connector = calendar_service.connector_for(db, user.id)
    return calendar_service.sync_task(db, connector, task, user.id, body.action, body.calendar_id)
