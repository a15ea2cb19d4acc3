from datetime import datetime

from tarely.schemas.common import CamelModel


class ProfileSchema(CamelModel):
    id: str
    email: str
    name: str | None
    avatar: str | None
    avatar_version: int
    has_seen_onboarding: bool
    is_admin: bool
    created_at: datetime


class ProfileUpdateSchema(CamelModel):
    name: str | None = None
    avatar: str | None = None


class AvatarUploadSchema(CamelModel):
    avatar: str
    version: int
    url: str


class PreferencesSchema(CamelModel):
    theme_mode: str
    accent_color: str


class PreferencesUpdateSchema(CamelModel):
    theme_mode: str | None = None
    accent_color: str | None = None


class UserSearchResultSchema(CamelModel):
    id: str
    name: str | None
    email: str
    avatar: str | None


class AdminStatsSchema(CamelModel):
    users: int
    workspaces: int
    tasks: int
    completed_tasks: int
    ai_tasks: int
    notes: int
