"""Comments, attachments and the activity trail of a task."""
from __future__ import annotations

import logging
import time

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tarely.errors import NotFoundError, UpstreamError, ValidationError
from tarely.models.profile import Profile
from tarely.models.task import Task, TaskActivity, TaskAttachment, TaskComment
from tarely.services import storage as storage_module
from tarely.services.storage import TASK_ATTACHMENTS, StorageError, classify_mime_type, sanitize_filename

logger = logging.getLogger(__name__)

MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024
ACTIVITY_LIMIT = 50


def log_activity(
    db: Session,
    task_id: str,
    user_id: str | None,
    action: str,
    *,
    field_changed: str | None = None,
    old_value=None,
    new_value=None,
    details: dict | None = None,
) -> TaskActivity:
    """Append an activity row. The caller owns the transaction."""
    entry = TaskActivity(
        task_id=task_id,
        user_id=user_id,
        action=action,
        field_changed=field_changed,
        old_value=None if old_value is None else str(old_value),
        new_value=None if new_value is None else str(new_value),
        details=details,
    )
    db.add(entry)
    return entry


def _profiles_by_id(db: Session, user_ids: set[str]) -> dict[str, Profile]:
    if not user_ids:
        return {}
    return {p.id: p for p in db.query(Profile).filter(Profile.id.in_(user_ids)).all()}


# ── Comments ──────────────────────────────────────────────────────────────────


def list_comments(db: Session, task: Task) -> list[tuple[TaskComment, Profile | None]]:
    comments = (
        db.query(TaskComment)
        .filter(TaskComment.task_id == task.id)
        .order_by(TaskComment.created_at.asc())
        .all()
    )
    authors = _profiles_by_id(db, {c.user_id for c in comments})
    return [(c, authors.get(c.user_id)) for c in comments]


def add_comment(db: Session, task: Task, user_id: str, content: str) -> TaskComment:
    text = (content or "").strip()
    if not text:
        raise ValidationError("El comentario no puede estar vacío")
    comment = TaskComment(task_id=task.id, user_id=user_id, content=text)
    db.add(comment)
    db.flush()
    log_activity(
        db, task.id, user_id, "comment_added",
        details={"comment_id": comment.id, "preview": text[:100]},
    )
    db.commit()
    db.refresh(comment)
    return comment


def _own_comment(db: Session, task: Task, comment_id: str, user_id: str) -> TaskComment:
    comment = (
        db.query(TaskComment)
        .filter(TaskComment.id == comment_id, TaskComment.task_id == task.id)
        .first()
    )
    # Other users' comments are indistinguishable from missing ones.
    if comment is None or comment.user_id != user_id:
        raise NotFoundError("Comentario no encontrado")
    return comment


def edit_comment(db: Session, task: Task, comment_id: str, user_id: str, content: str) -> TaskComment:
    comment = _own_comment(db, task, comment_id, user_id)
    text = (content or "").strip()
    if not text:
        raise ValidationError("El comentario no puede estar vacío")
    comment.content = text
    db.commit()
    db.refresh(comment)
    return comment


def delete_comment(db: Session, task: Task, comment_id: str, user_id: str) -> None:
    comment = _own_comment(db, task, comment_id, user_id)
    log_activity(db, task.id, user_id, "comment_deleted", details={"comment_id": comment.id})
    db.delete(comment)
    db.commit()


# ── Attachments ───────────────────────────────────────────────────────────────


def list_attachments(db: Session, task: Task) -> list[tuple[TaskAttachment, str | None]]:
    attachments = (
        db.query(TaskAttachment)
        .filter(TaskAttachment.task_id == task.id)
        .order_by(TaskAttachment.created_at.desc())
        .all()
    )
    result = []
    for attachment in attachments:
        try:
            url = storage_module.storage.create_signed_url(TASK_ATTACHMENTS, attachment.storage_path)
        except StorageError as exc:
            logger.warning("list_attachments: cannot sign %s: %s", attachment.storage_path, exc)
            url = None
        result.append((attachment, url))
    return result


def add_attachment(
    db: Session,
    task: Task,
    user_id: str,
    *,
    file_name: str,
    mime_type: str,
    data: bytes,
) -> tuple[TaskAttachment, str]:
    if not data:
        raise ValidationError("No se ha proporcionado ningún archivo")
    if len(data) > MAX_ATTACHMENT_BYTES:
        raise ValidationError("El archivo es demasiado grande (máximo 10MB)")

    mime_type = mime_type or "application/octet-stream"
    path = f"{user_id}/{task.id}/{int(time.time() * 1000)}_{sanitize_filename(file_name)}"
    try:
        storage_module.storage.upload(TASK_ATTACHMENTS, path, data)
    except StorageError as exc:
        logger.error("add_attachment: upload failed for task %s: %s", task.id, exc)
        raise UpstreamError("Error al subir el archivo") from exc

    attachment = TaskAttachment(
        task_id=task.id,
        user_id=user_id,
        file_name=file_name,
        file_type=classify_mime_type(mime_type),
        file_size=len(data),
        mime_type=mime_type,
        storage_path=path,
    )
    try:
        db.add(attachment)
        db.flush()
        log_activity(
            db, task.id, user_id, "attachment_added",
            details={"attachment_id": attachment.id, "file_name": file_name, "file_size": len(data)},
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        storage_module.storage.remove(TASK_ATTACHMENTS, [path])
        raise

    db.refresh(attachment)
    url = storage_module.storage.create_signed_url(TASK_ATTACHMENTS, path)
    return attachment, url


def delete_attachment(db: Session, task: Task, attachment_id: str, user_id: str) -> None:
    attachment = (
        db.query(TaskAttachment)
        .filter(TaskAttachment.id == attachment_id, TaskAttachment.task_id == task.id)
        .first()
    )
    if attachment is None or attachment.user_id != user_id:
        raise NotFoundError("Archivo no encontrado")

    path = attachment.storage_path
    log_activity(
        db, task.id, user_id, "attachment_removed",
        details={"attachment_id": attachment.id, "file_name": attachment.file_name},
    )
    db.delete(attachment)
    db.commit()
    try:
        storage_module.storage.remove(TASK_ATTACHMENTS, [path])
    except StorageError as exc:
        logger.warning("delete_attachment: could not remove %s: %s", path, exc)


# ── Activity ──────────────────────────────────────────────────────────────────


def list_activity(db: Session, task: Task) -> list[tuple[TaskActivity, Profile | None]]:
    rows = (
        db.query(TaskActivity)
        .filter(TaskActivity.task_id == task.id)
        .order_by(TaskActivity.created_at.desc())
        .limit(ACTIVITY_LIMIT)
        .all()
    )
    actors = _profiles_by_id(db, {r.user_id for r in rows if r.user_id})
    return [(r, actors.get(r.user_id)) for r in rows]
