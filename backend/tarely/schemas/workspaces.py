from datetime import datetime
from typing import Literal

from tarely.schemas.common import CamelModel


class WorkspaceSchema(CamelModel):
    id: str
    owner_id: str
    name: str
    description: str
    instructions: str
    icon: str
    color: str
    sort_order: int
    created_at: datetime
    updated_at: datetime
    is_shared: bool = False
    owner_name: str | None = None


class WorkspaceCreateSchema(CamelModel):
    name: str
    description: str = ""
    instructions: str = ""
    icon: str | None = None
    color: str | None = None


class WorkspaceUpdateSchema(CamelModel):
    name: str | None = None
    description: str | None = None
    instructions: str | None = None
    icon: str | None = None
    color: str | None = None


class WorkspaceOrderItem(CamelModel):
    id: str
    sort_order: int


class WorkspaceReorderSchema(CamelModel):
    workspaces: list[WorkspaceOrderItem]


class WorkspaceStatsSchema(CamelModel):
    workspace_id: str
    name: str
    color: str
    icon: str
    total: int
    pending: int
    completed: int
    overdue: int
    due_today: int


class UpcomingTaskSchema(CamelModel):
    id: str
    title: str
    importance: int
    due_date: datetime | None


class WorkspaceOverviewSchema(WorkspaceStatsSchema):
    upcoming: list[UpcomingTaskSchema]


# ── Members ──────────────────────────────────────────────────────────────────


class MemberSchema(CamelModel):
    id: str
    workspace_id: str
    user_id: str
    role: str
    status: str
    invited_by: str | None
    created_at: datetime
    name: str | None = None
    email: str | None = None
    avatar: str | None = None


class InviteSchema(CamelModel):
    user_id: str
    role: Literal["member", "admin"] = "member"


class InvitationSchema(CamelModel):
    id: str
    workspace_id: str
    workspace_name: str
    workspace_color: str
    role: str
    invited_by: str | None
    inviter_name: str | None
    inviter_avatar: str | None
    created_at: datetime


class InvitationResponseSchema(CamelModel):
    membership_id: str
    accept: bool | None = None
    action: Literal["accept", "reject"] | None = None

    @property
    def accepted(self) -> bool | None:
        if self.accept is not None:
            return self.accept
        if self.action is not None:
            return self.action == "accept"
        return None


class AssignableMemberSchema(CamelModel):
    user_id: str
    name: str | None
    email: str
    avatar: str | None
    is_owner: bool
