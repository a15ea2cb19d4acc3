from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tarely.api.deps import get_current_user
from tarely.database import get_db
from tarely.models.note import NoteFolder
from tarely.models.profile import Profile
from tarely.schemas.common import SuccessSchema
from tarely.schemas.notes import FolderCreateSchema, FolderSchema, FolderUpdateSchema
from tarely.services import access, note_library

router = APIRouter(prefix="/notes/folders", tags=["folders"])


def _accessible_folder(db: Session, folder_id: str, user_id: str) -> NoteFolder:
    folder = note_library.get_folder(db, folder_id)
    access.require_access(db, folder.workspace_id, user_id)
    return folder


@router.get("", response_model=list[FolderSchema])
def list_folders(
    workspace_id: str = Query(..., alias="workspaceId"),
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    access.require_access(db, workspace_id, user.id)
    return note_library.list_folders(db, workspace_id)


@router.post("", response_model=FolderSchema, status_code=201)
def create_folder(
    body: FolderCreateSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    workspace = access.require_access(db, body.workspace_id, user.id)
    return note_library.create_folder(db, workspace, user.id, body.model_dump(exclude={"workspace_id"}))


@router.patch("/{folder_id}", response_model=FolderSchema)
def update_folder(
    folder_id: str,
    body: FolderUpdateSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    folder = _accessible_folder(db, folder_id, user.id)
    return note_library.update_folder(db, folder, body.model_dump(exclude_unset=True))


@router.delete("/{folder_id}", response_model=SuccessSchema)
def delete_folder(
    folder_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete a folder. Its notes move to the workspace root."""
    folder = _accessible_folder(db, folder_id, user.id)
    note_library.delete_folder(db, folder)
    return SuccessSchema()
