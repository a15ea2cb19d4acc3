from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from tarely.errors import NotFoundError, ValidationError
from tarely.models.note import NoteTag
from tarely.models.tag import WorkspaceTag
from tarely.models.task import TaskTag
from tarely.models.workspace import Workspace
from tarely.services import validation

logger = logging.getLogger(__name__)

_DEFAULT_COLOR = "#6366f1"


def list_tags(db: Session, workspace_id: str) -> list[WorkspaceTag]:
    return (
        db.query(WorkspaceTag)
        .filter(WorkspaceTag.workspace_id == workspace_id)
        .order_by(WorkspaceTag.name.asc())
        .all()
    )


def get_tag(db: Session, tag_id: str) -> WorkspaceTag:
    tag = db.query(WorkspaceTag).filter(WorkspaceTag.id == tag_id).first()
    if tag is None:
        raise NotFoundError("Etiqueta no encontrada")
    return tag


def create_tag(db: Session, workspace: Workspace, name: str, color: str | None = None) -> WorkspaceTag:
    tag = WorkspaceTag(
        workspace_id=workspace.id,
        name=validation.require_text(name, "nombre", max_length=50),
        color=validation.color(color, _DEFAULT_COLOR),
    )
    db.add(tag)
    db.commit()
    db.refresh(tag)
    return tag


def update_tag(db: Session, tag: WorkspaceTag, changes: dict) -> WorkspaceTag:
    changes = {k: v for k, v in changes.items() if v is not None}
    if not changes:
        raise ValidationError("No hay campos para actualizar")
    if "name" in changes:
        tag.name = validation.require_text(changes["name"], "nombre", max_length=50)
    if "color" in changes:
        tag.color = validation.color(changes["color"], tag.color)
    db.commit()
    db.refresh(tag)
    return tag


def delete_tag(db: Session, tag: WorkspaceTag) -> None:
    """Remove a tag and every task and note assignment of it."""
    tag_id = tag.id
    tasks = db.query(TaskTag).filter(TaskTag.tag_id == tag_id).delete(synchronize_session="fetch")
    notes = db.query(NoteTag).filter(NoteTag.tag_id == tag_id).delete(synchronize_session="fetch")
    db.delete(tag)
    db.commit()
    logger.info("delete_tag: %s removed from %d tasks and %d notes", tag_id, tasks, notes)
