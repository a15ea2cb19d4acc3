from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from tarely.errors import NotFoundError
from tarely.models.task import Subtask, Task
from tarely.models.workspace import Workspace
from tarely.services import ai_bridge, validation

logger = logging.getLogger(__name__)

MAX_GENERATED = 5


def _next_order(db: Session, task_id: str) -> int:
    current = db.query(func.max(Subtask.order)).filter(Subtask.task_id == task_id).scalar()
    return 0 if current is None else current + 1


def list_subtasks(db: Session, task: Task) -> list[Subtask]:
    return (
        db.query(Subtask)
        .filter(Subtask.task_id == task.id)
        .order_by(Subtask.order.asc())
        .all()
    )


def create_subtask(db: Session, task: Task, title: str | None) -> Subtask:
    subtask = Subtask(
        task_id=task.id,
        title=validation.require_text(title, "título", max_length=500),
        order=_next_order(db, task.id),
        completed=False,
    )
    db.add(subtask)
    db.commit()
    db.refresh(subtask)
    return subtask


def _get_subtask(db: Session, task: Task, subtask_id: str) -> Subtask:
    subtask = (
        db.query(Subtask)
        .filter(Subtask.id == subtask_id, Subtask.task_id == task.id)
        .first()
    )
    if subtask is None:
        raise NotFoundError("Subtarea no encontrada")
    return subtask


def update_subtask(db: Session, task: Task, subtask_id: str, changes: dict) -> Subtask:
    subtask = _get_subtask(db, task, subtask_id)
    if "title" in changes:
        subtask.title = validation.require_text(changes["title"], "título", max_length=500)
    if changes.get("completed") is not None:
        subtask.completed = changes["completed"]
    if changes.get("order") is not None:
        subtask.order = changes["order"]
    db.commit()
    db.refresh(subtask)
    return subtask


def delete_subtask(db: Session, task: Task, subtask_id: str) -> None:
    subtask = _get_subtask(db, task, subtask_id)
    db.delete(subtask)
    db.commit()


def generate_subtasks(db: Session, task: Task, workspace: Workspace) -> list[Subtask]:
    """Ask the AI bridge for a decomposition and insert it after existing subtasks.

    Nothing is written unless the model's answer parses and validates.
    """
    titles = ai_bridge.generate_subtasks(workspace, task)[:MAX_GENERATED]

    start = _next_order(db, task.id)
    created = [
        Subtask(task_id=task.id, title=title, order=start + offset, completed=False)
        for offset, title in enumerate(titles)
    ]
    db.add_all(created)
    db.commit()
    for subtask in created:
        db.refresh(subtask)
    logger.info("generate_subtasks: added %d subtasks to task %s", len(created), task.id)
    return created
