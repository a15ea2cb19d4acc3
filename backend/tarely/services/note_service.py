"""Notes, their link to a task, and tag mirroring across that link.

A note and a task reference each other through ``note.task_id`` and
``task.note_id``. Both keys are written in the same transaction. Tag writes
on a linked note are mirrored onto the task inside a savepoint: the note side
is authoritative and a task-side failure is only logged.
"""
from __future__ import annotations

import logging
import time
from typing import Any

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tarely.errors import (
    ConflictError,
    InvalidOperationError,
    NotFoundError,
    TarelyError,
    UpstreamError,
    ValidationError,
)
from tarely.models.note import Note, NoteFolder, NoteTag, NoteTemplate
from tarely.models.tag import WorkspaceTag
from tarely.models.task import Task, TaskTag
from tarely.models.workspace import Workspace
from tarely.services import rich_text, task_service
from tarely.services import storage as storage_module
from tarely.services.storage import NOTE_ATTACHMENTS, StorageError, classify_mime_type, sanitize_filename

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 20
UNTITLED_TASK = "Nota sin título"
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
_TASK_DESCRIPTION_CHARS = 500


def _set_content(note: Note, content_json: dict | None) -> None:
    note.content_json = content_json
    note.content_text = rich_text.extract_text(content_json) if content_json else ""
    note.word_count = rich_text.word_count(note.content_text)


def _check_folder(db: Session, workspace_id: str, folder_id: str | None) -> None:
    if folder_id is None:
        return
    folder = (
        db.query(NoteFolder.id)
        .filter(NoteFolder.id == folder_id, NoteFolder.workspace_id == workspace_id)
        .first()
    )
    if folder is None:
        raise ValidationError("La carpeta no pertenece a este workspace")


# ── CRUD ──────────────────────────────────────────────────────────────────────


def list_notes(
    db: Session,
    workspace_id: str,
    folder_id: str | None = "all",
    search: str | None = None,
) -> list[Note]:
    query = db.query(Note).filter(Note.workspace_id == workspace_id)
    if search:
        pattern = f"%{search}%"
        return (
            query.filter(or_(Note.title.ilike(pattern), Note.content_text.ilike(pattern)))
            .order_by(Note.updated_at.desc())
            .limit(SEARCH_LIMIT)
            .all()
        )
    if folder_id == "root":
        query = query.filter(Note.folder_id.is_(None))
    elif folder_id and folder_id != "all":
        query = query.filter(Note.folder_id == folder_id)
    return query.order_by(Note.is_pinned.desc(), Note.updated_at.desc()).all()


def create_note(db: Session, workspace: Workspace, user_id: str, data: dict[str, Any]) -> Note:
    """Create a note. An empty title is stored as-is."""
    title = data.get("title") or ""
    if len(title) > 500:
        raise ValidationError("El título no puede superar 500 caracteres")
    _check_folder(db, workspace.id, data.get("folder_id"))

    icon = data.get("icon")
    content_json = data.get("content_json")
    if data.get("template_id"):
        template = db.query(NoteTemplate).filter(NoteTemplate.id == data["template_id"]).first()
        if template is None or not (template.is_global or template.user_id == user_id):
            raise NotFoundError("Plantilla no encontrada")
        content_json = content_json or template.content_json
        icon = icon or template.icon

    note = Note(
        workspace_id=workspace.id,
        user_id=user_id,
        folder_id=data.get("folder_id"),
        title=title,
        icon=icon or "📝",
    )
    _set_content(note, content_json)
    db.add(note)
    db.commit()
    db.refresh(note)
    return note


def update_note(db: Session, note: Note, changes: dict[str, Any]) -> Note:
    if "title" in changes:
        title = changes["title"] or ""
        if len(title) > 500:
            raise ValidationError("El título no puede superar 500 caracteres")
        note.title = title
    if "content_json" in changes:
        _set_content(note, changes["content_json"])
    for field in ("icon", "cover_image", "is_pinned", "is_favorite", "sort_order"):
        if field in changes and (changes[field] is not None or field == "cover_image"):
            setattr(note, field, changes[field])
    db.commit()
    db.refresh(note)
    return note


def duplicate_note(db: Session, note: Note, user_id: str) -> Note:
    """Copy title, content and icon. Tags, pin/favourite and the task link stay behind."""
    copy = Note(
        workspace_id=note.workspace_id,
        user_id=user_id,
        folder_id=note.folder_id,
        title=f"{note.title} (copia)".strip(),
        icon=note.icon,
    )
    _set_content(copy, note.content_json)
    db.add(copy)
    db.commit()
    db.refresh(copy)
    return copy


def move_note(db: Session, note: Note, folder_id: str | None) -> Note:
    _check_folder(db, note.workspace_id, folder_id)
    note.folder_id = folder_id
    db.commit()
    db.refresh(note)
    return note


def delete_note(db: Session, note: Note) -> None:
    note_id = note.id
    db.query(Task).filter(Task.note_id == note_id).update(
        {Task.note_id: None}, synchronize_session="fetch"
    )
    db.query(NoteTag).filter(NoteTag.note_id == note_id).delete(synchronize_session="fetch")
    db.delete(note)
    db.commit()
    logger.info("delete_note: deleted %s", note_id)


# ── Task link ─────────────────────────────────────────────────────────────────


def link_task(db: Session, note: Note, user_id: str) -> Task:
    """Create a task from the note and link both ways in one transaction."""
    if note.task_id:
        raise ConflictError("La nota ya está vinculada a una tarea")

    workspace = db.query(Workspace).filter(Workspace.id == note.workspace_id).one()
    task = task_service.create_task(
        db,
        workspace,
        user_id,
        {
            "title": note.title.strip() or UNTITLED_TASK,
            "description": (note.content_text or "")[:_TASK_DESCRIPTION_CHARS],
            "importance": 5,
            "source": "manual",
        },
        commit=False,
    )
    note.task_id = task.id
    task.note_id = note.id
    for tag_id in note.tag_ids:
        db.add(TaskTag(task_id=task.id, tag_id=tag_id))
    note_id = note.id
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("link_task: note %s was linked concurrently: %s", note_id, exc)
        raise ConflictError("La nota ya está vinculada a una tarea") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("link_task: could not link note %s", note_id)
        raise TarelyError("Error al vincular la nota con la tarea") from exc
    db.refresh(task)
    logger.info("link_task: note %s <-> task %s", note.id, task.id)
    return task


def unlink_task(db: Session, note: Note) -> None:
    """Clear both sides of the link. The task itself survives."""
    if not note.task_id:
        raise InvalidOperationError("La nota no está vinculada a ninguna tarea")
    db.query(Task).filter(Task.id == note.task_id).update(
        {Task.note_id: None}, synchronize_session="fetch"
    )
    note.task_id = None
    note.completed = False
    note.completed_at = None
    db.commit()


def toggle_complete(db: Session, note: Note, user_id: str) -> Task:
    if not note.task_id:
        raise InvalidOperationError("La nota no está vinculada a ninguna tarea")
    task = db.query(Task).filter(Task.id == note.task_id).first()
    if task is None:
        raise NotFoundError("Tarea no encontrada")
    return task_service.update_task(db, task, user_id, {"completed": not task.completed})


# ── Tags with mirroring ───────────────────────────────────────────────────────


def list_note_tags(db: Session, note: Note) -> list[WorkspaceTag]:
    return (
        db.query(WorkspaceTag)
        .join(NoteTag, NoteTag.tag_id == WorkspaceTag.id)
        .filter(NoteTag.note_id == note.id)
        .order_by(WorkspaceTag.name.asc())
        .all()
    )


def add_note_tag(db: Session, note: Note, tag_id: str) -> WorkspaceTag:
    tag = task_service.workspace_tag(db, note.workspace_id, tag_id)
    task_id = note.task_id
    db.add(NoteTag(note_id=note.id, tag_id=tag.id))
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("La etiqueta ya está asignada") from exc

    if task_id:
        try:
            with db.begin_nested():
                exists = (
                    db.query(TaskTag.id)
                    .filter(TaskTag.task_id == task_id, TaskTag.tag_id == tag.id)
                    .first()
                )
                if exists is None:
                    db.add(TaskTag(task_id=task_id, tag_id=tag.id))
        except SQLAlchemyError as exc:
            logger.warning("add_note_tag: mirror onto task %s failed: %s", task_id, exc)

    db.commit()
    return tag


def remove_note_tag(db: Session, note: Note, tag_id: str) -> None:
    task_id = note.task_id
    deleted = (
        db.query(NoteTag)
        .filter(NoteTag.note_id == note.id, NoteTag.tag_id == tag_id)
        .delete(synchronize_session="fetch")
    )
    if not deleted:
        raise NotFoundError("La etiqueta no está asignada")

    if task_id:
        try:
            with db.begin_nested():
                db.query(TaskTag).filter(
                    TaskTag.task_id == task_id, TaskTag.tag_id == tag_id
                ).delete(synchronize_session="fetch")
        except SQLAlchemyError as exc:
            logger.warning("remove_note_tag: mirror onto task %s failed: %s", task_id, exc)

    db.commit()


# ── Inline uploads ────────────────────────────────────────────────────────────


def upload_inline_file(
    note: Note, user_id: str, *, file_name: str, mime_type: str, data: bytes
) -> dict[str, str]:
    if not data:
        raise ValidationError("No se ha proporcionado ningún archivo")
    if len(data) > MAX_UPLOAD_BYTES:
        raise ValidationError("El archivo es demasiado grande (máximo 10MB)")

    path = f"{user_id}/{note.id}/{int(time.time() * 1000)}_{sanitize_filename(file_name)}"
    try:
        storage_module.storage.upload(NOTE_ATTACHMENTS, path, data)
        url = storage_module.storage.create_signed_url(NOTE_ATTACHMENTS, path)
    except StorageError as exc:
        logger.error("upload_inline_file: note %s: %s", note.id, exc)
        raise UpstreamError("Error al subir el archivo") from exc
    return {"url": url, "file_name": file_name, "file_type": classify_mime_type(mime_type)}
