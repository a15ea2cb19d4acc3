from datetime import datetime
from typing import Any, Literal

from tarely.schemas.common import CamelModel


class NoteSchema(CamelModel):
    id: str
    workspace_id: str
    user_id: str | None
    folder_id: str | None
    title: str
    icon: str
    cover_image: str | None
    content_json: dict | None
    content_text: str
    word_count: int
    is_pinned: bool
    is_favorite: bool
    sort_order: int
    task_id: str | None
    completed: bool
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime
    tag_ids: list[str] = []


class NoteCreateSchema(CamelModel):
    workspace_id: str
    title: str = ""
    folder_id: str | None = None
    icon: str | None = None
    content_json: dict | None = None
    template_id: str | None = None


class NoteUpdateSchema(CamelModel):
    title: str | None = None
    icon: str | None = None
    cover_image: str | None = None
    content_json: dict | None = None
    is_pinned: bool | None = None
    is_favorite: bool | None = None
    sort_order: int | None = None


class NoteMoveSchema(CamelModel):
    folder_id: str | None = None


class NoteLinkResponseSchema(CamelModel):
    note: NoteSchema
    task_id: str | None


class NoteUploadSchema(CamelModel):
    url: str
    file_name: str
    file_type: str


# ── Folders ──────────────────────────────────────────────────────────────────


class FolderSchema(CamelModel):
    id: str
    workspace_id: str
    parent_folder_id: str | None
    name: str
    icon: str
    color: str
    sort_order: int
    created_at: datetime


class FolderCreateSchema(CamelModel):
    workspace_id: str
    name: str
    parent_folder_id: str | None = None
    icon: str | None = None
    color: str | None = None


class FolderUpdateSchema(CamelModel):
    name: str | None = None
    parent_folder_id: str | None = None
    icon: str | None = None
    color: str | None = None
    sort_order: int | None = None


# ── Templates ────────────────────────────────────────────────────────────────


class TemplateSchema(CamelModel):
    id: str
    user_id: str | None
    name: str
    description: str
    category: str
    icon: str
    content_json: dict | None
    is_global: bool
    created_at: datetime


class TemplateCreateSchema(CamelModel):
    name: str
    description: str = ""
    category: str = "general"
    icon: str | None = None
    content_json: dict | None = None


class TemplateApplySchema(CamelModel):
    workspace_id: str
    folder_id: str | None = None


class SaveAsTemplateSchema(CamelModel):
    name: str | None = None
    description: str = ""
    category: str = "general"


# ── AI agent ─────────────────────────────────────────────────────────────────

NoteAction = Literal[
    "summarize",
    "improve",
    "expand",
    "checklist",
    "extract_tasks",
    "translate",
    "format",
    "rewrite",
    "add_section",
    "remove_section",
    "ask",
]


class NoteAgentRequestSchema(CamelModel):
    action: NoteAction
    content: str | None = None
    query: str | None = None
    section_to_modify: str | None = None


class NoteAgentResponseSchema(CamelModel):
    type: Literal["answer", "modification", "text"]
    result: Any
    action: str
    preview: bool | None = None
