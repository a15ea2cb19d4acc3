"""Ownership and membership checks shared by every service.

A caller can read and write inside a workspace when they own it or hold an
``accepted`` membership. Structural operations (sections, workspace settings)
are owner-only.
"""
from __future__ import annotations

from sqlalchemy.orm import Session

from tarely.errors import ForbiddenError, NotFoundError
from tarely.models.note import Note
from tarely.models.task import Task
from tarely.models.workspace import Workspace, WorkspaceMember


def get_workspace(db: Session, workspace_id: str) -> Workspace:
    workspace = db.query(Workspace).filter(Workspace.id == workspace_id).first()
    if workspace is None:
        raise NotFoundError("Workspace no encontrado")
    return workspace


def membership(db: Session, workspace_id: str, user_id: str) -> WorkspaceMember | None:
    return (
        db.query(WorkspaceMember)
        .filter(WorkspaceMember.workspace_id == workspace_id, WorkspaceMember.user_id == user_id)
        .first()
    )


def has_access(db: Session, workspace: Workspace, user_id: str) -> bool:
    if workspace.owner_id == user_id:
        return True
    member = membership(db, workspace.id, user_id)
    return member is not None and member.status == "accepted"


def accessible_workspace_ids(db: Session, user_id: str) -> list[str]:
    owned = [row[0] for row in db.query(Workspace.id).filter(Workspace.owner_id == user_id).all()]
    shared = [
        row[0]
        for row in db.query(WorkspaceMember.workspace_id)
        .filter(WorkspaceMember.user_id == user_id, WorkspaceMember.status == "accepted")
        .all()
    ]
    return owned + [ws_id for ws_id in shared if ws_id not in owned]


def require_access(db: Session, workspace_id: str, user_id: str) -> Workspace:
    workspace = get_workspace(db, workspace_id)
    if not has_access(db, workspace, user_id):
        raise ForbiddenError("No tienes acceso a este workspace")
    return workspace


def require_owner(db: Session, workspace_id: str, user_id: str) -> Workspace:
    workspace = get_workspace(db, workspace_id)
    if workspace.owner_id != user_id:
        raise ForbiddenError("Solo el propietario puede realizar esta acción")
    return workspace


def require_task(db: Session, task_id: str, user_id: str) -> Task:
    task = db.query(Task).filter(Task.id == task_id).first()
    if task is None:
        raise NotFoundError("Tarea no encontrada")
    require_access(db, task.workspace_id, user_id)
    return task


def require_note(db: Session, note_id: str, user_id: str) -> Note:
    note = db.query(Note).filter(Note.id == note_id).first()
    if note is None:
        raise NotFoundError("Nota no encontrada")
    require_access(db, note.workspace_id, user_id)
    return note
