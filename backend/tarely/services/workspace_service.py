from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tarely.errors import (
    ConflictError,
    ForbiddenError,
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)
from tarely.models.note import Note, NoteFolder, NoteTag
from tarely.models.profile import Profile
from tarely.models.section import Section
from tarely.models.tag import WorkspaceTag
from tarely.models.task import Task, TaskAssignee
from tarely.models.workspace import Workspace, WorkspaceMember
from tarely.services import access, section_service, task_service, validation
from tarely.services.recurrence import ensure_utc
from tarely.tasks.email_tasks import send_invitation_email

logger = logging.getLogger(__name__)


# ── Workspaces ────────────────────────────────────────────────────────────────


def _validated_fields(data: dict[str, Any], *, partial: bool) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    if not partial or "name" in data:
        fields["name"] = validation.require_text(data.get("name"), "nombre", max_length=100)
    if not partial or "description" in data:
        fields["description"] = validation.optional_text(
            data.get("description"), "descripción", max_length=500
        )
    if not partial or "instructions" in data:
        fields["instructions"] = validation.optional_text(
            data.get("instructions"), "instrucciones", max_length=10000
        )
    if data.get("icon") is not None:
        fields["icon"] = validation.require_text(data["icon"], "icono", max_length=50)
    if data.get("color") is not None:
        fields["color"] = validation.color(data["color"], "#6366f1")
    return fields


def create_workspace(db: Session, owner_id: str, data: dict[str, Any]) -> Workspace:
    """Create a workspace together with its two system sections."""
    fields = _validated_fields(data, partial=False)
    current = (
        db.query(func.max(Workspace.sort_order)).filter(Workspace.owner_id == owner_id).scalar()
    )
    workspace = Workspace(
        owner_id=owner_id,
        sort_order=0 if current is None else current + 1,
        **fields,
    )
    db.add(workspace)
    db.flush()
    section_service.create_system_sections(db, workspace)
    db.commit()
    db.refresh(workspace)
    logger.info("create_workspace: %s created by %s", workspace.id, owner_id)
    return workspace


def list_workspaces(db: Session, user_id: str) -> list[tuple[Workspace, bool, str | None]]:
    """Owned workspaces first, then the ones shared with the caller."""
    owned = (
        db.query(Workspace)
        .filter(Workspace.owner_id == user_id)
        .order_by(Workspace.sort_order.asc(), Workspace.updated_at.desc())
        .all()
    )
    shared_rows = (
        db.query(Workspace, Profile.name)
        .join(WorkspaceMember, WorkspaceMember.workspace_id == Workspace.id)
        .outerjoin(Profile, Profile.id == Workspace.owner_id)
        .filter(WorkspaceMember.user_id == user_id, WorkspaceMember.status == "accepted")
        .order_by(Workspace.name.asc())
        .all()
    )
    result = [(ws, False, None) for ws in owned]
    result.extend((ws, True, owner_name) for ws, owner_name in shared_rows)
    return result


def update_workspace(db: Session, workspace: Workspace, data: dict[str, Any]) -> Workspace:
    for key, value in _validated_fields(data, partial=True).items():
        setattr(workspace, key, value)
    db.commit()
    db.refresh(workspace)
    return workspace


def delete_workspace(db: Session, workspace: Workspace) -> None:
    """Irreversible fan-out delete of everything the workspace contains."""
    workspace_id = workspace.id
    paths = purge_workspace(db, workspace_id)
    db.commit()

    task_service.remove_attachment_objects(paths)
    logger.info(
        "delete_workspace: deleted %s with %d attachment objects", workspace_id, len(paths)
    )


def purge_workspace(db: Session, workspace_id: str) -> list[str]:
    """Delete the workspace rows without committing. Returns attachment paths."""
    task_ids = [row[0] for row in db.query(Task.id).filter(Task.workspace_id == workspace_id).all()]
    paths = task_service.purge_tasks(db, task_ids)

    note_ids = db.query(Note.id).filter(Note.workspace_id == workspace_id)
    db.query(NoteTag).filter(NoteTag.note_id.in_(note_ids.scalar_subquery())).delete(
        synchronize_session=False
    )
    db.query(Note).filter(Note.workspace_id == workspace_id).delete(synchronize_session=False)
    db.query(NoteFolder).filter(NoteFolder.workspace_id == workspace_id).update(
        {NoteFolder.parent_folder_id: None}, synchronize_session=False
    )
    db.query(NoteFolder).filter(NoteFolder.workspace_id == workspace_id).delete(
        synchronize_session=False
    )
    db.query(WorkspaceTag).filter(WorkspaceTag.workspace_id == workspace_id).delete(
        synchronize_session=False
    )
    db.query(Section).filter(Section.workspace_id == workspace_id).delete(synchronize_session=False)
    db.query(WorkspaceMember).filter(WorkspaceMember.workspace_id == workspace_id).delete(
        synchronize_session=False
    )
    db.query(Workspace).filter(Workspace.id == workspace_id).delete(synchronize_session=False)
    return paths


def reorder_workspaces(db: Session, user_id: str, items: list[dict]) -> None:
    ids = [item["id"] for item in items]
    owned = {
        ws.id: ws
        for ws in db.query(Workspace).filter(Workspace.id.in_(ids), Workspace.owner_id == user_id).all()
    }
    for item in items:
        workspace = owned.get(item["id"])
        if workspace is not None:
            workspace.sort_order = item["sort_order"]
    db.commit()


# ── Dashboard counters ────────────────────────────────────────────────────────


def workspace_stats(db: Session, workspace: Workspace, now: datetime | None = None) -> dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    today = now.date()
    rows = (
        db.query(Task.completed, Task.due_date)
        .filter(Task.workspace_id == workspace.id)
        .all()
    )
    completed = sum(1 for done, _ in rows if done)
    overdue = 0
    due_today = 0
    for done, due_date in rows:
        due_date = ensure_utc(due_date)
        if done or due_date is None:
            continue
        if due_date < now:
            overdue += 1
        if due_date.date() == today:
            due_today += 1
    return {
        "workspace_id": workspace.id,
        "name": workspace.name,
        "color": workspace.color,
        "icon": workspace.icon,
        "total": len(rows),
        "pending": len(rows) - completed,
        "completed": completed,
        "overdue": overdue,
        "due_today": due_today,
    }


def upcoming_tasks(db: Session, workspace: Workspace, limit: int = 5) -> list[Task]:
    return (
        db.query(Task)
        .filter(
            Task.workspace_id == workspace.id,
            Task.completed.is_(False),
            Task.due_date.isnot(None),
        )
        .order_by(Task.due_date.asc())
        .limit(limit)
        .all()
    )


# ── Members ───────────────────────────────────────────────────────────────────


def _can_invite(db: Session, workspace: Workspace, user_id: str) -> bool:
    if workspace.owner_id == user_id:
        return True
    member = access.membership(db, workspace.id, user_id)
    return member is not None and member.status == "accepted" and member.role == "admin"


def invite_member(
    db: Session,
    workspace: Workspace,
    inviter_id: str,
    invitee_id: str,
    role: str = "member",
) -> WorkspaceMember:
    if not _can_invite(db, workspace, inviter_id):
        raise ForbiddenError("No tienes permiso para invitar a este workspace")
    if invitee_id == inviter_id or invitee_id == workspace.owner_id:
        raise ValidationError("No puedes invitar al propietario del workspace")
    if db.query(Profile.id).filter(Profile.id == invitee_id).first() is None:
        raise NotFoundError("Usuario no encontrado")

    existing = access.membership(db, workspace.id, invitee_id)
    if existing is not None and existing.status in ("pending", "accepted"):
        raise ConflictError(
            "El usuario ya tiene una invitación pendiente o es miembro", status_code=400
        )

    if existing is not None:
        # A rejected invite is re-opened in place to keep one row per pair.
        existing.status = "pending"
        existing.role = role
        existing.invited_by = inviter_id
        member = existing
    else:
        member = WorkspaceMember(
            workspace_id=workspace.id,
            user_id=invitee_id,
            invited_by=inviter_id,
            role=role,
            status="pending",
        )
        db.add(member)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(
            "El usuario ya tiene una invitación pendiente o es miembro", status_code=400
        ) from exc
    db.refresh(member)
    logger.info("invite_member: %s invited %s to %s", inviter_id, invitee_id, workspace.id)
    send_invitation_email.delay(member.id)
    return member


def list_members(db: Session, workspace: Workspace) -> list[tuple[WorkspaceMember, Profile | None]]:
    rows = (
        db.query(WorkspaceMember, Profile)
        .outerjoin(Profile, Profile.id == WorkspaceMember.user_id)
        .filter(WorkspaceMember.workspace_id == workspace.id)
        .order_by(WorkspaceMember.created_at.asc())
        .all()
    )
    return [(member, profile) for member, profile in rows]


def list_invitations(db: Session, user_id: str) -> list[dict[str, Any]]:
    rows = (
        db.query(WorkspaceMember, Workspace)
        .join(Workspace, Workspace.id == WorkspaceMember.workspace_id)
        .filter(WorkspaceMember.user_id == user_id, WorkspaceMember.status == "pending")
        .order_by(WorkspaceMember.created_at.desc())
        .all()
    )
    inviter_ids = {m.invited_by for m, _ in rows if m.invited_by}
    inviters = (
        {p.id: p for p in db.query(Profile).filter(Profile.id.in_(inviter_ids)).all()}
        if inviter_ids else {}
    )
    invitations = []
    for member, workspace in rows:
        inviter = inviters.get(member.invited_by)
        invitations.append({
            "id": member.id,
            "workspace_id": workspace.id,
            "workspace_name": workspace.name,
            "workspace_color": workspace.color,
            "role": member.role,
            "invited_by": member.invited_by,
            "inviter_name": inviter.name if inviter else None,
            "inviter_avatar": inviter.avatar if inviter else None,
            "created_at": member.created_at,
        })
    return invitations


def respond_to_invite(db: Session, membership_id: str, user_id: str, accept: bool) -> WorkspaceMember:
    member = db.query(WorkspaceMember).filter(WorkspaceMember.id == membership_id).first()
    if member is None or member.user_id != user_id:
        raise NotFoundError("Invitación no encontrada")
    if member.status != "pending":
        raise InvalidOperationError("La invitación ya fue respondida")
    member.status = "accepted" if accept else "rejected"
    db.commit()
    db.refresh(member)
    return member


def remove_member(db: Session, workspace: Workspace, member_id: str, caller_id: str) -> None:
    member = (
        db.query(WorkspaceMember)
        .filter(WorkspaceMember.id == member_id, WorkspaceMember.workspace_id == workspace.id)
        .first()
    )
    if member is None:
        raise NotFoundError("Miembro no encontrado")
    if caller_id != workspace.owner_id and caller_id != member.user_id:
        raise ForbiddenError("No tienes permiso para eliminar a este miembro")

    task_ids = db.query(Task.id).filter(Task.workspace_id == workspace.id)
    db.query(TaskAssignee).filter(
        TaskAssignee.user_id == member.user_id,
        TaskAssignee.task_id.in_(task_ids.scalar_subquery()),
    ).delete(synchronize_session=False)
    db.delete(member)
    db.commit()


def assignable_members(db: Session, workspace: Workspace) -> list[dict[str, Any]]:
    owner = db.query(Profile).filter(Profile.id == workspace.owner_id).first()
    result = []
    if owner is not None:
        result.append({
            "user_id": owner.id, "name": owner.name, "email": owner.email,
            "avatar": owner.avatar, "is_owner": True,
        })
    for member, profile in list_members(db, workspace):
        if member.status == "accepted" and profile is not None:
            result.append({
                "user_id": profile.id, "name": profile.name, "email": profile.email,
                "avatar": profile.avatar, "is_owner": False,
            })
    return result
