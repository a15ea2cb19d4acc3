from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tarely.api.deps import get_current_user
from tarely.database import get_db
from tarely.models.profile import Profile
from tarely.models.section import Section
from tarely.schemas.common import SuccessSchema
from tarely.schemas.sections import (
    SectionCreateSchema,
    SectionReorderSchema,
    SectionSchema,
    SectionUpdateSchema,
)
from tarely.services import access, section_service

router = APIRouter(prefix="/sections", tags=["sections"])


def _owned_section(db: Session, section_id: str, user_id: str) -> Section:
    section = section_service.get_section(db, section_id)
    access.require_owner(db, section.workspace_id, user_id)
    return section


@router.get("", response_model=list[SectionSchema])
def list_sections(
    workspace_id: str = Query(..., alias="workspaceId"),
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    access.require_access(db, workspace_id, user.id)
    return section_service.list_sections(db, workspace_id)


@router.post("", response_model=SectionSchema, status_code=201)
def create_section(
    body: SectionCreateSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    workspace = access.require_owner(db, body.workspace_id, user.id)
    return section_service.create_section(db, workspace, body.name, body.icon, body.color)


@router.post("/reorder", response_model=list[SectionSchema])
def reorder_sections(
    body: SectionReorderSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    workspace = access.require_owner(db, body.workspace_id, user.id)
    return section_service.reorder_sections(
        db, workspace, [item.model_dump() for item in body.sections]
    )


@router.get("/{section_id}", response_model=SectionSchema)
def get_section(
    section_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    section = section_service.get_section(db, section_id)
    access.require_access(db, section.workspace_id, user.id)
    return section


@router.patch("/{section_id}", response_model=SectionSchema)
def update_section(
    section_id: str,
    body: SectionUpdateSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    section = _owned_section(db, section_id, user.id)
    return section_service.update_section(db, section, body.model_dump(exclude_unset=True))


@router.delete("/{section_id}", response_model=SuccessSchema)
def delete_section(
    section_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    section = _owned_section(db, section_id, user.id)
    section_service.delete_section(db, section)
    return SuccessSchema()
