from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from tarely.errors import InvalidOperationError, NotFoundError, ValidationError
from tarely.models.section import COMPLETED_SECTION, PENDING_SECTION, Section
from tarely.models.task import Task
from tarely.models.workspace import Workspace
from tarely.services import validation

logger = logging.getLogger(__name__)


def create_system_sections(db: Session, workspace: Workspace) -> list[Section]:
    sections = [
        Section(workspace_id=workspace.id, name=PENDING_SECTION, icon="circle", color="#6366f1", order=0, is_system=True),
        Section(workspace_id=workspace.id, name=COMPLETED_SECTION, icon="check-circle", color="#22c55e", order=1, is_system=True),
    ]
    db.add_all(sections)
    return sections


def list_sections(db: Session, workspace_id: str) -> list[Section]:
    return (
        db.query(Section)
        .filter(Section.workspace_id == workspace_id)
        .order_by(Section.order.asc())
        .all()
    )


def get_section(db: Session, section_id: str) -> Section:
    section = db.query(Section).filter(Section.id == section_id).first()
    if section is None:
        raise NotFoundError("Sección no encontrada")
    return section


def create_section(
    db: Session,
    workspace: Workspace,
    name: str,
    icon: str | None = None,
    color: str | None = None,
) -> Section:
    current = db.query(func.max(Section.order)).filter(Section.workspace_id == workspace.id).scalar()
    section = Section(
        workspace_id=workspace.id,
        name=validation.require_text(name, "nombre", max_length=100),
        icon=icon or "folder",
        color=validation.color(color, "#8b5cf6"),
        order=0 if current is None else current + 1,
        is_system=False,
    )
    db.add(section)
    db.commit()
    db.refresh(section)
    return section


def update_section(db: Session, section: Section, changes: dict) -> Section:
    if "name" in changes:
        section.name = validation.require_text(changes["name"], "nombre", max_length=100)
    if changes.get("icon") is not None:
        section.icon = changes["icon"]
    if changes.get("color") is not None:
        section.color = validation.color(changes["color"], section.color)
    if changes.get("order") is not None:
        section.order = changes["order"]
    db.commit()
    db.refresh(section)
    return section


def delete_section(db: Session, section: Section) -> str:
    """Delete a user section, re-homing its tasks. Returns the new section id."""
    if section.is_system:
        raise InvalidOperationError("No se pueden eliminar las secciones del sistema")

    fallback = (
        db.query(Section)
        .filter(Section.workspace_id == section.workspace_id, Section.is_system.is_(True))
        .order_by(Section.order.asc())
        .first()
    )
    if fallback is None:
        raise InvalidOperationError("El workspace no tiene secciones del sistema")

    section_id = section.id
    moved = (
        db.query(Task)
        .filter(Task.section_id == section_id)
        .update({Task.section_id: fallback.id}, synchronize_session="fetch")
    )
    fallback_id = fallback.id
    db.delete(section)
    db.commit()
    logger.info("delete_section: removed %s, moved %d tasks to %s", section_id, moved, fallback_id)
    return fallback_id


def reorder_sections(db: Session, workspace: Workspace, items: list[dict]) -> list[Section]:
    orders = [item["order"] for item in items]
    if len(set(orders)) != len(orders):
        raise ValidationError("Los órdenes de sección no pueden repetirse")

    sections = {s.id: s for s in list_sections(db, workspace.id)}
    for item in items:
        if item["id"] not in sections:
            raise ValidationError("La sección no pertenece a este workspace")
    for item in items:
        sections[item["id"]].order = item["order"]
    db.commit()
    return list_sections(db, workspace.id)
