"""Note folders and note templates."""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import or_
from sqlalchemy.orm import Session

from tarely.errors import ForbiddenError, NotFoundError, ValidationError
from tarely.models.note import Note, NoteFolder, NoteTemplate
from tarely.models.workspace import Workspace
from tarely.services import note_service, validation

logger = logging.getLogger(__name__)


# ── Folders ───────────────────────────────────────────────────────────────────


def list_folders(db: Session, workspace_id: str) -> list[NoteFolder]:
    return (
        db.query(NoteFolder)
        .filter(NoteFolder.workspace_id == workspace_id)
        .order_by(NoteFolder.sort_order.asc(), NoteFolder.name.asc())
        .all()
    )


def get_folder(db: Session, folder_id: str) -> NoteFolder:
    folder = db.query(NoteFolder).filter(NoteFolder.id == folder_id).first()
    if folder is None:
        raise NotFoundError("Carpeta no encontrada")
    return folder


def _check_parent(db: Session, workspace_id: str, folder_id: str | None, parent_id: str | None) -> None:
    """The parent must live in the same workspace and must not be the folder or one of its descendants."""
    seen: set[str] = set()
    current = parent_id
    while current is not None:
        if current == folder_id:
            raise ValidationError("Una carpeta no puede moverse dentro de sí misma")
        if current in seen:
            break
        seen.add(current)
        parent = db.query(NoteFolder).filter(NoteFolder.id == current).first()
        if parent is None or parent.workspace_id != workspace_id:
            raise ValidationError("La carpeta padre no pertenece a este workspace")
        current = parent.parent_folder_id


def create_folder(db: Session, workspace: Workspace, user_id: str, data: dict[str, Any]) -> NoteFolder:
    _check_parent(db, workspace.id, None, data.get("parent_folder_id"))
    folder = NoteFolder(
        workspace_id=workspace.id,
        user_id=user_id,
        parent_folder_id=data.get("parent_folder_id"),
        name=validation.require_text(data.get("name"), "nombre", max_length=100),
        icon=data.get("icon") or "Folder",
        color=validation.color(data.get("color"), "#6366f1"),
    )
    db.add(folder)
    db.commit()
    db.refresh(folder)
    return folder


def update_folder(db: Session, folder: NoteFolder, changes: dict[str, Any]) -> NoteFolder:
    if "name" in changes:
        folder.name = validation.require_text(changes["name"], "nombre", max_length=100)
    if "parent_folder_id" in changes:
        _check_parent(db, folder.workspace_id, folder.id, changes["parent_folder_id"])
        folder.parent_folder_id = changes["parent_folder_id"]
    if changes.get("icon") is not None:
        folder.icon = changes["icon"]
    if changes.get("color") is not None:
        folder.color = validation.color(changes["color"], folder.color)
    if changes.get("sort_order") is not None:
        folder.sort_order = changes["sort_order"]
    db.commit()
    db.refresh(folder)
    return folder


def delete_folder(db: Session, folder: NoteFolder) -> int:
    """Delete a folder; its notes and child folders move to the root."""
    folder_id = folder.id
    moved = (
        db.query(Note)
        .filter(Note.folder_id == folder_id)
        .update({Note.folder_id: None}, synchronize_session="fetch")
    )
    db.query(NoteFolder).filter(NoteFolder.parent_folder_id == folder_id).update(
        {NoteFolder.parent_folder_id: None}, synchronize_session="fetch"
    )
    db.delete(folder)
    db.commit()
    logger.info("delete_folder: %s removed, %d notes moved to root", folder_id, moved)
    return moved


# ── Templates ─────────────────────────────────────────────────────────────────


def list_templates(db: Session, user_id: str) -> list[NoteTemplate]:
    return (
        db.query(NoteTemplate)
        .filter(or_(NoteTemplate.is_global.is_(True), NoteTemplate.user_id == user_id))
        .order_by(NoteTemplate.is_global.desc(), NoteTemplate.name.asc())
        .all()
    )


def get_template(db: Session, template_id: str, user_id: str) -> NoteTemplate:
    template = db.query(NoteTemplate).filter(NoteTemplate.id == template_id).first()
    if template is None or not (template.is_global or template.user_id == user_id):
        raise NotFoundError("Plantilla no encontrada")
    return template


def create_template(db: Session, user_id: str, data: dict[str, Any]) -> NoteTemplate:
    template = NoteTemplate(
        user_id=user_id,
        name=validation.require_text(data.get("name"), "nombre", max_length=100),
        description=data.get("description") or "",
        category=data.get("category") or "general",
        icon=data.get("icon") or "📋",
        content_json=data.get("content_json"),
        is_global=False,
    )
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


def delete_template(db: Session, template_id: str, user_id: str) -> None:
    template = get_template(db, template_id, user_id)
    if template.is_global or template.user_id != user_id:
        raise ForbiddenError("No puedes eliminar esta plantilla")
    db.delete(template)
    db.commit()


def apply_template(
    db: Session,
    template_id: str,
    workspace: Workspace,
    user_id: str,
    folder_id: str | None = None,
) -> Note:
    template = get_template(db, template_id, user_id)
    return note_service.create_note(
        db,
        workspace,
        user_id,
        {
            "title": template.name,
            "folder_id": folder_id,
            "icon": template.icon,
            "content_json": template.content_json,
        },
    )


def save_note_as_template(db: Session, note: Note, user_id: str, data: dict[str, Any]) -> NoteTemplate:
    """Capture the note's current content as an independent template."""
    return create_template(
        db,
        user_id,
        {
            "name": data.get("name") or note.title or "Plantilla sin título",
            "description": data.get("description") or "",
            "category": data.get("category") or "general",
            "icon": note.icon,
            "content_json": dict(note.content_json) if note.content_json else None,
        },
    )
