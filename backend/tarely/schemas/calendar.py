from datetime import datetime
from typing import Literal

from tarely.schemas.common import CamelModel


class CalendarTaskSchema(CamelModel):
    id: str
    workspace_id: str
    workspace_name: str
    workspace_color: str
    title: str
    importance: int
    completed: bool
    due_date: datetime | None
    next_due_at: datetime | None


class GoogleStatusSchema(CamelModel):
    connected: bool
    expires_at: datetime | None = None


class GoogleAuthUrlSchema(CamelModel):
    url: str


class CalendarListEntrySchema(CamelModel):
    id: str
    summary: str
    primary: bool
    background_color: str | None = None


class CalendarEventSchema(CamelModel):
    id: str
    summary: str
    description: str
    start: datetime | None
    end: datetime | None
    all_day: bool
    html_link: str


class FreeBusyRequestSchema(CamelModel):
    time_min: datetime
    time_max: datetime
    calendar_ids: list[str] = ["primary"]


class BusyBlockSchema(CamelModel):
    calendar_id: str
    start: datetime
    end: datetime


class SyncTaskRequestSchema(CamelModel):
    task_id: str
    action: Literal["create", "update", "delete"]
    calendar_id: str = "primary"


class SyncTaskResponseSchema(CamelModel):
    success: bool = True
    event_id: str | None = None
    html_link: str | None = None
