from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session

from tarely.api.deps import get_current_user
from tarely.database import get_db
from tarely.models.profile import Profile
from tarely.schemas.common import SuccessSchema
from tarely.schemas.notes import (
    NoteAgentRequestSchema,
    NoteAgentResponseSchema,
    NoteCreateSchema,
    NoteLinkResponseSchema,
    NoteMoveSchema,
    NoteSchema,
    NoteUpdateSchema,
    NoteUploadSchema,
    SaveAsTemplateSchema,
    TemplateSchema,
)
from tarely.schemas.tags import TagSchema
from tarely.schemas.tasks import TagAssignSchema
from tarely.services import access, ai_bridge, note_library, note_service

router = APIRouter(prefix="/notes", tags=["notes"])


@router.get("", response_model=list[NoteSchema])
def list_notes(
    workspace_id: str = Query(..., alias="workspaceId"),
    folder_id: str | None = Query("all", alias="folderId"),
    search: str | None = Query(None),
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """``folderId`` is ``all``, ``root`` or a folder id. ``search`` overrides it."""
    access.require_access(db, workspace_id, user.id)
    return note_service.list_notes(db, workspace_id, folder_id, search)


@router.post("", response_model=NoteSchema, status_code=201)
def create_note(
    body: NoteCreateSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    workspace = access.require_access(db, body.workspace_id, user.id)
    return note_service.create_note(db, workspace, user.id, body.model_dump(exclude={"workspace_id"}))


@router.get("/{note_id}", response_model=NoteSchema)
def get_note(
    note_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return access.require_note(db, note_id, user.id)


@router.patch("/{note_id}", response_model=NoteSchema)
def update_note(
    note_id: str,
    body: NoteUpdateSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    note = access.require_note(db, note_id, user.id)
    return note_service.update_note(db, note, body.model_dump(exclude_unset=True))


@router.delete("/{note_id}", response_model=SuccessSchema)
def delete_note(
    note_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    note = access.require_note(db, note_id, user.id)
    note_service.delete_note(db, note)
    return SuccessSchema()


@router.post("/{note_id}/duplicate", response_model=NoteSchema, status_code=201)
def duplicate_note(
    note_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    note = access.require_note(db, note_id, user.id)
    return note_service.duplicate_note(db, note, user.id)


@router.post("/{note_id}/move", response_model=NoteSchema)
def move_note(
    note_id: str,
    body: NoteMoveSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    note = access.require_note(db, note_id, user.id)
    return note_service.move_note(db, note, body.folder_id)


@router.post("/{note_id}/save-as-template", response_model=TemplateSchema, status_code=201)
def save_as_template(
    note_id: str,
    body: SaveAsTemplateSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    note = access.require_note(db, note_id, user.id)
    return note_library.save_note_as_template(db, note, user.id, body.model_dump())


# ── Task link ─────────────────────────────────────────────────────────────────


def _link_response(db: Session, note) -> NoteLinkResponseSchema:
    db.refresh(note)
    return NoteLinkResponseSchema(note=NoteSchema.model_validate(note), task_id=note.task_id)


@router.post("/{note_id}/task", response_model=NoteLinkResponseSchema, status_code=201)
def link_task(
    note_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a task from the note and link the two."""
    note = access.require_note(db, note_id, user.id)
    note_service.link_task(db, note, user.id)
    return _link_response(db, note)


@router.delete("/{note_id}/task", response_model=NoteLinkResponseSchema)
def unlink_task(
    note_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    note = access.require_note(db, note_id, user.id)
    note_service.unlink_task(db, note)
    return _link_response(db, note)


@router.post("/{note_id}/task/toggle", response_model=NoteLinkResponseSchema)
def toggle_task(
    note_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    note = access.require_note(db, note_id, user.id)
    note_service.toggle_complete(db, note, user.id)
    return _link_response(db, note)


# ── Tags ──────────────────────────────────────────────────────────────────────


@router.get("/{note_id}/tags", response_model=list[TagSchema])
def list_note_tags(
    note_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    note = access.require_note(db, note_id, user.id)
    return note_service.list_note_tags(db, note)


@router.post("/{note_id}/tags", response_model=TagSchema, status_code=201)
def add_note_tag(
    note_id: str,
    body: TagAssignSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    note = access.require_note(db, note_id, user.id)
    return note_service.add_note_tag(db, note, body.tag_id)


@router.delete("/{note_id}/tags", response_model=SuccessSchema)
def remove_note_tag(
    note_id: str,
    tag_id: str = Query(..., alias="tagId"),
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    note = access.require_note(db, note_id, user.id)
    note_service.remove_note_tag(db, note, tag_id)
    return SuccessSchema()


# ── Uploads and AI ────────────────────────────────────────────────────────────


@router.post("/{note_id}/upload", response_model=NoteUploadSchema, status_code=201)
def upload_file(
    note_id: str,
    file: UploadFile = File(...),
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    note = access.require_note(db, note_id, user.id)
    return note_service.upload_inline_file(
        note,
        user.id,
        file_name=file.filename or "archivo",
        mime_type=file.content_type or "",
        data=file.file.read(),
    )


@router.post("/{note_id}/ai-agent", response_model=NoteAgentResponseSchema, response_model_exclude_none=True)
def run_ai_action(
    note_id: str,
    body: NoteAgentRequestSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Preview an AI edit of the note. The note itself is never modified here."""
    note = access.require_note(db, note_id, user.id)
    content = body.content if body.content is not None else note.content_text
    return ai_bridge.run_note_action(body.action, content, body.query, body.section_to_modify)
