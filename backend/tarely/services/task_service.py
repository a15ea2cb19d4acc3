from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tarely.errors import ConflictError, NotFoundError, ValidationError
from tarely.models.calendar import TaskCalendarSync
from tarely.models.note import Note
from tarely.models.profile import Profile
from tarely.models.section import COMPLETED_SECTION, PENDING_SECTION, Section
from tarely.models.tag import WorkspaceTag
from tarely.models.task import (
    Subtask,
    Task,
    TaskActivity,
    TaskAssignee,
    TaskAttachment,
    TaskComment,
    TaskTag,
)
from tarely.models.workspace import Workspace, WorkspaceMember
from tarely.services import storage as storage_module
from tarely.services import validation
from tarely.services.recurrence import RecurrenceRule, calculate_next_occurrence
from tarely.services.storage import TASK_ATTACHMENTS, StorageError
from tarely.services.task_feed_service import log_activity

logger = logging.getLogger(__name__)

_TITLE_MAX = 1000
_DESCRIPTION_MAX = 5000
_TRACKED_FIELDS = ("title", "description", "importance", "due_date", "section_id")


# ── Helpers ───────────────────────────────────────────────────────────────────


def system_section(db: Session, workspace_id: str, name: str) -> Section | None:
    return (
        db.query(Section)
        .filter(
            Section.workspace_id == workspace_id,
            Section.is_system.is_(True),
            Section.name == name,
        )
        .first()
    )


def _check_section(db: Session, workspace_id: str, section_id: str | None) -> None:
    if section_id is None:
        return
    exists = (
        db.query(Section.id)
        .filter(Section.id == section_id, Section.workspace_id == workspace_id)
        .first()
    )
    if exists is None:
        raise ValidationError("La sección no pertenece a este workspace")


def _apply_recurrence(task: Task, recurrence: dict | None) -> None:
    if recurrence is None:
        task.recurrence_frequency = None
        task.recurrence_interval = None
        task.recurrence_days_of_week = None
        task.recurrence_day_of_month = None
        task.recurrence_month_of_year = None
        task.recurrence_ends_at = None
        task.next_due_at = None
        return
    task.recurrence_frequency = recurrence["frequency"]
    task.recurrence_interval = recurrence.get("interval") or 1
    task.recurrence_days_of_week = recurrence.get("days_of_week")
    task.recurrence_day_of_month = recurrence.get("day_of_month")
    task.recurrence_month_of_year = recurrence.get("month_of_year")
    task.recurrence_ends_at = recurrence.get("ends_at")


def _build_task(workspace_id: str, user_id: str | None, data: dict[str, Any]) -> Task:
    """Validate a draft and return an unsaved Task."""
    task = Task(
        workspace_id=workspace_id,
        created_by=user_id,
        title=validation.require_text(data.get("title"), "título", max_length=_TITLE_MAX),
        description=validation.optional_text(
            data.get("description"), "descripción", max_length=_DESCRIPTION_MAX
        ),
        importance=validation.importance(data.get("importance", 5)),
        due_date=data.get("due_date"),
        section_id=data.get("section_id"),
        source=data.get("source") or "manual",
        completed=False,
    )
    if data.get("recurrence"):
        _apply_recurrence(task, data["recurrence"])
        # First occurrence is visible immediately.
        task.next_due_at = datetime.now(timezone.utc)
    return task


# ── Queries ───────────────────────────────────────────────────────────────────


def list_tasks(db: Session, workspace_id: str) -> list[Task]:
    return (
        db.query(Task)
        .filter(Task.workspace_id == workspace_id)
        .order_by(Task.created_at.desc())
        .all()
    )


def get_task(db: Session, task_id: str) -> Task:
    task = db.query(Task).filter(Task.id == task_id).first()
    if task is None:
        raise NotFoundError("Tarea no encontrada")
    return task


# ── Create ────────────────────────────────────────────────────────────────────


def create_task(
    db: Session,
    workspace: Workspace,
    user_id: str | None,
    data: dict[str, Any],
    *,
    commit: bool = True,
) -> Task:
    task = _build_task(workspace.id, user_id, data)
    _check_section(db, workspace.id, task.section_id)
    db.add(task)
    db.flush()
    log_activity(db, task.id, user_id, "created", details={"source": task.source})
    if commit:
        db.commit()
        db.refresh(task)
    return task


def create_many_tasks(
    db: Session,
    workspace: Workspace,
    user_id: str | None,
    drafts: list[dict[str, Any]],
    *,
    commit: bool = True,
) -> list[Task]:
    """Insert every draft in one batch, returned in input order.

    All drafts are validated before anything is written.
    """
    if not drafts:
        raise ValidationError("No hay tareas que crear")
    tasks = [_build_task(workspace.id, user_id, draft) for draft in drafts]
    for task in tasks:
        _check_section(db, workspace.id, task.section_id)

    db.add_all(tasks)
    db.flush()
    for task in tasks:
        log_activity(db, task.id, user_id, "created", details={"source": task.source})
    if commit:
        db.commit()
        for task in tasks:
            db.refresh(task)
    logger.info("create_many_tasks: created %d tasks in workspace %s", len(tasks), workspace.id)
    return tasks


# ── Update ────────────────────────────────────────────────────────────────────


def _mirror_completion_to_note(db: Session, task: Task) -> None:
    if not task.note_id:
        return
    note = db.query(Note).filter(Note.id == task.note_id).first()
    if note is None:
        return
    note.completed = task.completed
    note.completed_at = task.completed_at


def update_task(db: Session, task: Task, user_id: str | None, changes: dict[str, Any]) -> Task:
    """Apply a partial update.

    Completion policy: completing without an explicit ``section_id`` moves the
    task to "Completadas"; reopening a task that sits there moves it back to
    "Pendientes". A recurring task advances ``next_due_at`` instead of
    completing, until its rule ends.
    """
    # Validate everything first so a rejected update leaves the row untouched.
    if "title" in changes:
        changes["title"] = validation.require_text(changes["title"], "título", max_length=_TITLE_MAX)
    if "description" in changes:
        changes["description"] = validation.optional_text(
            changes["description"], "descripción", max_length=_DESCRIPTION_MAX
        )
    if "importance" in changes:
        changes["importance"] = validation.importance(changes["importance"])
    if "section_id" in changes:
        _check_section(db, task.workspace_id, changes["section_id"])

    for field in _TRACKED_FIELDS:
        if field in changes and getattr(task, field) != changes[field]:
            log_activity(
                db, task.id, user_id, "updated",
                field_changed=field, old_value=getattr(task, field), new_value=changes[field],
            )
            setattr(task, field, changes[field])

    if "recurrence" in changes:
        _apply_recurrence(task, changes["recurrence"])
        if changes["recurrence"] is not None and task.next_due_at is None:
            task.next_due_at = datetime.now(timezone.utc)

    explicit_section = "section_id" in changes
    completed = changes.get("completed")
    if completed is not None and completed != task.completed:
        now = datetime.now(timezone.utc)
        if completed:
            rule = RecurrenceRule.from_task(task)
            next_due = (
                calculate_next_occurrence(task.next_due_at or task.due_date, rule, now)
                if rule else None
            )
            if next_due is not None:
                log_activity(
                    db, task.id, user_id, "recurrence_advanced",
                    field_changed="next_due_at", old_value=task.next_due_at, new_value=next_due,
                )
                task.next_due_at = next_due
                done = system_section(db, task.workspace_id, COMPLETED_SECTION)
                if explicit_section and done is not None and task.section_id == done.id:
                    pending = system_section(db, task.workspace_id, PENDING_SECTION)
                    task.section_id = pending.id if pending else None
            else:
                task.completed = True
                task.completed_at = now
                if not explicit_section:
                    done = system_section(db, task.workspace_id, COMPLETED_SECTION)
                    if done is not None:
                        task.section_id = done.id
                log_activity(
                    db, task.id, user_id, "completed",
                    field_changed="completed", old_value=False, new_value=True,
                )
        else:
            task.completed = False
            task.completed_at = None
            if not explicit_section:
                done = system_section(db, task.workspace_id, COMPLETED_SECTION)
                if done is not None and task.section_id == done.id:
                    pending = system_section(db, task.workspace_id, PENDING_SECTION)
                    task.section_id = pending.id if pending else None
            log_activity(
                db, task.id, user_id, "reopened",
                field_changed="completed", old_value=True, new_value=False,
            )
        _mirror_completion_to_note(db, task)

    task.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(task)
    return task


# ── Delete ────────────────────────────────────────────────────────────────────


def purge_tasks(db: Session, task_ids: list[str]) -> list[str]:
    """Delete tasks and every dependent row. Returns attachment paths to remove
    from storage once the transaction commits."""
    if not task_ids:
        return []
    paths = [
        row[0]
        for row in db.query(TaskAttachment.storage_path)
        .filter(TaskAttachment.task_id.in_(task_ids))
        .all()
    ]
    for model in (
        TaskActivity, TaskComment, TaskAttachment, TaskAssignee, TaskTag, Subtask, TaskCalendarSync,
    ):
        db.query(model).filter(model.task_id.in_(task_ids)).delete(synchronize_session=False)
    # Linked notes survive, orphaned.
    db.query(Note).filter(Note.task_id.in_(task_ids)).update(
        {Note.task_id: None, Note.completed: False, Note.completed_at: None},
        synchronize_session=False,
    )
    db.query(Task).filter(Task.id.in_(task_ids)).update({Task.note_id: None}, synchronize_session=False)
    db.query(Task).filter(Task.id.in_(task_ids)).delete(synchronize_session=False)
    return paths


def remove_attachment_objects(paths: list[str]) -> None:
    if not paths:
        return
    try:
        storage_module.storage.remove(TASK_ATTACHMENTS, paths)
    except StorageError as exc:
        logger.warning("remove_attachment_objects: %d objects left behind: %s", len(paths), exc)


def delete_task(db: Session, task: Task) -> None:
    task_id = task.id
    paths = purge_tasks(db, [task_id])
    db.commit()
    remove_attachment_objects(paths)
    logger.info("delete_task: deleted task %s", task_id)


# ── Tags ──────────────────────────────────────────────────────────────────────


def workspace_tag(db: Session, workspace_id: str, tag_id: str) -> WorkspaceTag:
    tag = (
        db.query(WorkspaceTag)
        .filter(WorkspaceTag.id == tag_id, WorkspaceTag.workspace_id == workspace_id)
        .first()
    )
    if tag is None:
        raise NotFoundError("Etiqueta no encontrada")
    return tag


def list_task_tags(db: Session, task: Task) -> list[WorkspaceTag]:
    return (
        db.query(WorkspaceTag)
        .join(TaskTag, TaskTag.tag_id == WorkspaceTag.id)
        .filter(TaskTag.task_id == task.id)
        .order_by(WorkspaceTag.name.asc())
        .all()
    )


def assign_tag(db: Session, task: Task, tag_id: str) -> WorkspaceTag:
    tag = workspace_tag(db, task.workspace_id, tag_id)
    db.add(TaskTag(task_id=task.id, tag_id=tag.id))
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.info("assign_tag: duplicate tag %s on task %s: %s", tag_id, task.id, exc.orig)
        raise ConflictError("La etiqueta ya está asignada") from exc
    return tag


def remove_tag(db: Session, task: Task, tag_id: str) -> None:
    deleted = (
        db.query(TaskTag)
        .filter(TaskTag.task_id == task.id, TaskTag.tag_id == tag_id)
        .delete(synchronize_session="fetch")
    )
    if not deleted:
        raise NotFoundError("La etiqueta no está asignada")
    db.commit()


# ── Assignees ─────────────────────────────────────────────────────────────────


def list_assignees(db: Session, task: Task) -> list[tuple[TaskAssignee, Profile | None]]:
    rows = (
        db.query(TaskAssignee, Profile)
        .outerjoin(Profile, Profile.id == TaskAssignee.user_id)
        .filter(TaskAssignee.task_id == task.id)
        .order_by(TaskAssignee.created_at.asc())
        .all()
    )
    return [(assignee, profile) for assignee, profile in rows]


def _is_assignable(db: Session, workspace_id: str, user_id: str) -> bool:
    workspace = db.query(Workspace).filter(Workspace.id == workspace_id).first()
    if workspace is None:
        return False
    if workspace.owner_id == user_id:
        return True
    return (
        db.query(WorkspaceMember.id)
        .filter(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.user_id == user_id,
            WorkspaceMember.status == "accepted",
        )
        .first()
        is not None
    )


def assign_user(db: Session, task: Task, assignee_id: str, actor_id: str) -> TaskAssignee:
    if not _is_assignable(db, task.workspace_id, assignee_id):
        raise ValidationError("El usuario no es miembro del workspace")
    assignee = TaskAssignee(task_id=task.id, user_id=assignee_id, assigned_by=actor_id)
    db.add(assignee)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("El usuario ya está asignado a esta tarea", status_code=400) from exc
    log_activity(
        db, task.id, actor_id, "assigned", field_changed="assignee", new_value=assignee_id,
    )
    db.commit()
    db.refresh(assignee)
    return assignee


def unassign_user(db: Session, task: Task, assignee_id: str, actor_id: str) -> None:
    deleted = (
        db.query(TaskAssignee)
        .filter(TaskAssignee.task_id == task.id, TaskAssignee.user_id == assignee_id)
        .delete(synchronize_session="fetch")
    )
    if not deleted:
        raise NotFoundError("El usuario no está asignado a esta tarea")
    log_activity(
        db, task.id, actor_id, "unassigned", field_changed="assignee", old_value=assignee_id,
    )
    db.commit()


