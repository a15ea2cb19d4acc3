from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from tarely.schemas.common import CamelModel


class RecurrenceSchema(CamelModel):
    frequency: Literal["daily", "weekly", "monthly", "yearly"]
    interval: int = Field(1, ge=1)
    days_of_week: list[int] | None = None  # 0=Sunday .. 6=Saturday
    day_of_month: int | None = Field(None, ge=1, le=31)
    month_of_year: int | None = Field(None, ge=1, le=12)
    ends_at: datetime | None = None


class TaskSchema(CamelModel):
    id: str
    workspace_id: str
    section_id: str | None
    created_by: str | None
    title: str
    description: str
    importance: int
    due_date: datetime | None
    completed: bool
    completed_at: datetime | None
    source: str
    recurrence: RecurrenceSchema | None
    next_due_at: datetime | None
    note_id: str | None
    created_at: datetime
    updated_at: datetime
    tag_ids: list[str] = []
    assignee_ids: list[str] = []
    subtask_count: int = 0
    subtasks_completed: int = 0


class TaskDetailSchema(TaskSchema):
    subtasks: list["SubtaskSchema"] = []


class TaskCreateSchema(CamelModel):
    title: str
    description: str = ""
    # int | float so the range/integer check returns a domain 400, not a 422
    importance: int | float = 5
    due_date: datetime | None = None
    section_id: str | None = None
    source: Literal["manual", "ai"] = "manual"
    recurrence: RecurrenceSchema | None = None


class TaskCreateRequestSchema(TaskCreateSchema):
    workspace_id: str


class TaskBulkCreateSchema(CamelModel):
    workspace_id: str
    tasks: list[TaskCreateSchema]


class TaskUpdateSchema(CamelModel):
    title: str | None = None
    description: str | None = None
    importance: int | float | None = None
    due_date: datetime | None = None
    section_id: str | None = None
    completed: bool | None = None
    recurrence: RecurrenceSchema | None = None


class TaskListResponseSchema(CamelModel):
    tasks: list[TaskSchema]
    total: int


# ── Subtasks ─────────────────────────────────────────────────────────────────


class SubtaskSchema(CamelModel):
    id: str
    task_id: str
    title: str
    completed: bool
    order: int
    created_at: datetime


class SubtaskCreateSchema(CamelModel):
    title: str | None = None
    generate: bool = False


class SubtaskUpdateSchema(CamelModel):
    subtask_id: str
    title: str | None = None
    completed: bool | None = None
    order: int | None = None


class SubtaskGenerateResponseSchema(CamelModel):
    subtasks: list[SubtaskSchema]
    generated: bool = True


# ── Tags / assignees ─────────────────────────────────────────────────────────


class TagAssignSchema(CamelModel):
    tag_id: str


class AssigneeCreateSchema(CamelModel):
    user_id: str


class AssigneeSchema(CamelModel):
    id: str
    task_id: str
    user_id: str
    created_at: datetime
    name: str | None = None
    email: str | None = None
    avatar: str | None = None


# ── Comments / attachments / activity ────────────────────────────────────────


class CommentSchema(CamelModel):
    id: str
    task_id: str
    user_id: str
    content: str
    created_at: datetime
    updated_at: datetime
    author_name: str | None = None
    author_avatar: str | None = None


class CommentCreateSchema(CamelModel):
    content: str


class CommentUpdateSchema(CamelModel):
    comment_id: str
    content: str


class AttachmentSchema(CamelModel):
    id: str
    task_id: str
    user_id: str
    file_name: str
    file_type: str
    file_size: int
    mime_type: str
    storage_path: str
    created_at: datetime
    url: str | None = None


class ActivitySchema(CamelModel):
    id: str
    task_id: str
    user_id: str | None
    action: str
    field_changed: str | None
    old_value: str | None
    new_value: str | None
    metadata: dict | None = Field(None, validation_alias="details")
    created_at: datetime
    user_name: str | None = None


class TaskPromptSchema(CamelModel):
    prompt: str


TaskDetailSchema.model_rebuild()
