"""Task calendar feed and the per-user Google Calendar connection."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from tarely.config import settings
from tarely.errors import NotFoundError, ValidationError
from tarely.models.calendar import GoogleCalendarToken, TaskCalendarSync
from tarely.models.task import Task
from tarely.models.workspace import Workspace
from tarely.services import access
from tarely.services.calendar_connector import CalendarConnector

logger = logging.getLogger(__name__)

_STATE_AUDIENCE = "google-calendar-oauth"
_STATE_TTL = timedelta(minutes=10)


# ── Task feed ─────────────────────────────────────────────────────────────────


def tasks_in_range(db: Session, user_id: str, start: datetime, end: datetime) -> list[dict[str, Any]]:
    """Every task due (or next due) in [start, end] across the caller's workspaces."""
    workspace_ids = access.accessible_workspace_ids(db, user_id)
    if not workspace_ids:
        return []
    rows = (
        db.query(Task, Workspace)
        .join(Workspace, Workspace.id == Task.workspace_id)
        .filter(
            Task.workspace_id.in_(workspace_ids),
            or_(
                and_(Task.due_date >= start, Task.due_date <= end),
                and_(Task.next_due_at >= start, Task.next_due_at <= end),
            ),
        )
        .order_by(Task.due_date.asc())
        .all()
    )
    return [
        {
            "id": task.id,
            "workspace_id": workspace.id,
            "workspace_name": workspace.name,
            "workspace_color": workspace.color,
            "title": task.title,
            "importance": task.importance,
            "completed": task.completed,
            "due_date": task.due_date,
            "next_due_at": task.next_due_at,
        }
        for task, workspace in rows
    ]


# ── OAuth state ───────────────────────────────────────────────────────────────


def encode_state(user_id: str) -> str:
    payload = {
        "sub": user_id,
        "aud": _STATE_AUDIENCE,
        "exp": datetime.now(timezone.utc) + _STATE_TTL,
    }
    return jwt.encode(payload, settings.AUTH_JWT_SECRET, algorithm="HS256")


def decode_state(state: str | None) -> str:
    if not state:
        raise ValidationError("Falta el parámetro state")
    try:
        payload = jwt.decode(
            state, settings.AUTH_JWT_SECRET, algorithms=["HS256"], audience=_STATE_AUDIENCE
        )
    except jwt.PyJWTError as exc:
        logger.warning("decode_state: rejected OAuth state: %s", exc)
        raise ValidationError("Estado de autorización inválido") from exc
    return payload["sub"]


# ── Tokens ────────────────────────────────────────────────────────────────────


def get_token(db: Session, user_id: str) -> GoogleCalendarToken | None:
    return db.query(GoogleCalendarToken).filter(GoogleCalendarToken.user_id == user_id).first()


def save_tokens(
    db: Session,
    user_id: str,
    access_token: str | None,
    refresh_token: str | None,
    expiry: datetime | None,
) -> GoogleCalendarToken:
    token = get_token(db, user_id)
    if token is None:
        if not refresh_token:
            raise ValidationError(
                "Google no devolvió un refresh token. Revoca el acceso en "
                "https://myaccount.google.com/permissions e inténtalo de nuevo."
            )
        token = GoogleCalendarToken(user_id=user_id)
        db.add(token)
    token.access_token = access_token
    if refresh_token:
        token.set_refresh_token(refresh_token)
    if expiry is not None and expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    token.token_expiry = expiry
    db.commit()
    db.refresh(token)
    logger.info("save_tokens: Google Calendar connected for %s", user_id)
    return token


def status(db: Session, user_id: str) -> dict[str, Any]:
    token = get_token(db, user_id)
    if token is None:
        return {"connected": False, "expires_at": None}
    return {"connected": True, "expires_at": token.token_expiry}


def disconnect(db: Session, user_id: str) -> None:
    db.query(TaskCalendarSync).filter(TaskCalendarSync.user_id == user_id).delete(
        synchronize_session="fetch"
    )
    db.query(GoogleCalendarToken).filter(GoogleCalendarToken.user_id == user_id).delete(
        synchronize_session="fetch"
    )
    db.commit()


def connector_for(db: Session, user_id: str) -> CalendarConnector:
    token = get_token(db, user_id)
    if token is None:
        raise NotFoundError("Google Calendar no está conectado")
    return CalendarConnector(token)


def persist_refresh(db: Session, user_id: str) -> None:
    """Commit any access token the connector refreshed during the request."""
    if get_token(db, user_id) is not None:
        db.commit()


# ── Task sync ─────────────────────────────────────────────────────────────────


def sync_task(
    db: Session,
    connector: CalendarConnector,
    task: Task,
    user_id: str,
    action: str,
    calendar_id: str = "primary",
) -> dict[str, Any]:
    sync = (
        db.query(TaskCalendarSync)
        .filter(TaskCalendarSync.task_id == task.id, TaskCalendarSync.user_id == user_id)
        .first()
    )

    if action == "delete":
        if sync is not None:
            connector.delete_event(sync.google_calendar_id, sync.google_event_id)
            db.delete(sync)
        db.commit()
        return {"success": True, "event_id": None, "html_link": None}

    if task.due_date is None:
        raise ValidationError("La tarea no tiene fecha límite")

    body = CalendarConnector.task_event_body(task)
    if sync is not None and action == "update":
        event = connector.update_event(sync.google_calendar_id, sync.google_event_id, body)
    else:
        event = connector.create_event(calendar_id, body)

    now = datetime.now(timezone.utc)
    if sync is None:
        db.add(TaskCalendarSync(
            task_id=task.id,
            user_id=user_id,
            google_event_id=event.event_id,
            google_calendar_id=calendar_id,
            last_synced_at=now,
        ))
    else:
        sync.google_event_id = event.event_id
        if action == "create":
            sync.google_calendar_id = calendar_id
        sync.last_synced_at = now
    db.commit()
    logger.info("sync_task: task %s -> event %s (%s)", task.id, event.event_id, action)
    return {"success": True, "event_id": event.event_id, "html_link": event.html_link}
