from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tarely.api.deps import get_current_user
from tarely.database import get_db
from tarely.models.profile import Profile
from tarely.schemas.common import SuccessSchema
from tarely.schemas.workspaces import (
    AssignableMemberSchema,
    InviteSchema,
    MemberSchema,
    WorkspaceCreateSchema,
    WorkspaceOverviewSchema,
    WorkspaceReorderSchema,
    WorkspaceSchema,
    WorkspaceStatsSchema,
    WorkspaceUpdateSchema,
)
from tarely.services import access, workspace_service

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


@router.get("", response_model=list[WorkspaceSchema])
def list_workspaces(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    """Owned workspaces first, then the ones shared with the caller."""
    return [
        WorkspaceSchema.model_validate(ws).model_copy(
            update={"is_shared": is_shared, "owner_name": owner_name}
        )
        for ws, is_shared, owner_name in workspace_service.list_workspaces(db, user.id)
    ]


@router.post("", response_model=WorkspaceSchema, status_code=201)
def create_workspace(
    body: WorkspaceCreateSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return workspace_service.create_workspace(db, user.id, body.model_dump())


@router.patch("/reorder", response_model=SuccessSchema)
def reorder_workspaces(
    body: WorkspaceReorderSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    workspace_service.reorder_workspaces(
        db, user.id, [item.model_dump() for item in body.workspaces]
    )
    return SuccessSchema()


@router.get("/overview", response_model=list[WorkspaceStatsSchema])
def overview(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    """Dashboard counters for every workspace the caller can see."""
    return [
        workspace_service.workspace_stats(db, ws)
        for ws, _, _ in workspace_service.list_workspaces(db, user.id)
    ]


@router.get("/{workspace_id}", response_model=WorkspaceSchema)
def get_workspace(
    workspace_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    workspace = access.require_access(db, workspace_id, user.id)
    return WorkspaceSchema.model_validate(workspace).model_copy(
        update={"is_shared": workspace.owner_id != user.id}
    )


@router.patch("/{workspace_id}", response_model=WorkspaceSchema)
def update_workspace(
    workspace_id: str,
    body: WorkspaceUpdateSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    workspace = access.require_owner(db, workspace_id, user.id)
    return workspace_service.update_workspace(db, workspace, body.model_dump(exclude_unset=True))


@router.delete("/{workspace_id}", response_model=SuccessSchema)
def delete_workspace(
    workspace_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    workspace = access.require_owner(db, workspace_id, user.id)
    workspace_service.delete_workspace(db, workspace)
    return SuccessSchema()


@router.get("/{workspace_id}/overview", response_model=WorkspaceOverviewSchema)
def workspace_overview(
    workspace_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    workspace = access.require_access(db, workspace_id, user.id)
    stats = workspace_service.workspace_stats(db, workspace)
    stats["upcoming"] = workspace_service.upcoming_tasks(db, workspace)
    return stats


# ── Members ───────────────────────────────────────────────────────────────────


@router.get("/{workspace_id}/members", response_model=list[MemberSchema])
def list_members(
    workspace_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    workspace = access.require_access(db, workspace_id, user.id)
    result = []
    for member, profile in workspace_service.list_members(db, workspace):
        schema = MemberSchema.model_validate(member)
        if profile is not None:
            schema = schema.model_copy(
                update={"name": profile.name, "email": profile.email, "avatar": profile.avatar}
            )
        result.append(schema)
    return result


@router.post("/{workspace_id}/members", response_model=MemberSchema, status_code=201)
def invite_member(
    workspace_id: str,
    body: InviteSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    workspace = access.get_workspace(db, workspace_id)
    return workspace_service.invite_member(db, workspace, user.id, body.user_id, body.role)


@router.delete("/{workspace_id}/members", response_model=SuccessSchema)
def remove_member(
    workspace_id: str,
    member_id: str = Query(..., alias="memberId"),
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    workspace = access.get_workspace(db, workspace_id)
    workspace_service.remove_member(db, workspace, member_id, user.id)
    return SuccessSchema()


@router.get("/{workspace_id}/assignable-members", response_model=list[AssignableMemberSchema])
def assignable_members(
    workspace_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    workspace = access.require_access(db, workspace_id, user.id)
    return workspace_service.assignable_members(db, workspace)
