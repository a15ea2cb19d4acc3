from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tarely.api.deps import get_current_user
from tarely.database import get_db
from tarely.models.profile import Profile
from tarely.schemas.common import SuccessSchema
from tarely.schemas.notes import NoteSchema, TemplateApplySchema, TemplateCreateSchema, TemplateSchema
from tarely.services import access, note_library

router = APIRouter(prefix="/notes/templates", tags=["templates"])


@router.get("", response_model=list[TemplateSchema])
def list_templates(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    """Global templates plus the caller's own."""
    return note_library.list_templates(db, user.id)


@router.post("", response_model=TemplateSchema, status_code=201)
def create_template(
    body: TemplateCreateSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return note_library.create_template(db, user.id, body.model_dump())


@router.delete("", response_model=SuccessSchema)
def delete_template(
    template_id: str = Query(..., alias="id"),
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    note_library.delete_template(db, template_id, user.id)
    return SuccessSchema()


@router.post("/{template_id}/apply", response_model=NoteSchema, status_code=201)
def apply_template(
    template_id: str,
    body: TemplateApplySchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    workspace = access.require_access(db, body.workspace_id, user.id)
    return note_library.apply_template(db, template_id, workspace, user.id, body.folder_id)
