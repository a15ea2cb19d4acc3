from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tarely.api.deps import get_current_user
from tarely.database import get_db
from tarely.models.profile import Profile
from tarely.models.tag import WorkspaceTag
from tarely.schemas.common import SuccessSchema
from tarely.schemas.tags import TagCreateSchema, TagSchema, TagUpdateSchema
from tarely.services import access, tag_service

router = APIRouter(prefix="/tags", tags=["tags"])


def _accessible_tag(db: Session, tag_id: str, user_id: str) -> WorkspaceTag:
    tag = tag_service.get_tag(db, tag_id)
    access.require_access(db, tag.workspace_id, user_id)
    return tag


@router.get("", response_model=list[TagSchema])
def list_tags(
    workspace_id: str = Query(..., alias="workspaceId"),
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    access.require_access(db, workspace_id, user.id)
    return tag_service.list_tags(db, workspace_id)


@router.post("", response_model=TagSchema, status_code=201)
def create_tag(
    body: TagCreateSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    workspace = access.require_access(db, body.workspace_id, user.id)
    return tag_service.create_tag(db, workspace, body.name, body.color)


@router.patch("/{tag_id}", response_model=TagSchema)
def update_tag(
    tag_id: str,
    body: TagUpdateSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    tag = _accessible_tag(db, tag_id, user.id)
    return tag_service.update_tag(db, tag, body.model_dump(exclude_unset=True))


@router.delete("/{tag_id}", response_model=SuccessSchema)
def delete_tag(
    tag_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    tag = _accessible_tag(db, tag_id, user.id)
    tag_service.delete_tag(db, tag)
    return SuccessSchema()
