"""Profiles: first-sight upsert, avatar, preferences and account deletion."""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tarely.errors import NotFoundError, UpstreamError, ValidationError
from tarely.models.calendar import GoogleCalendarToken, TaskCalendarSync
from tarely.models.note import NoteTemplate
from tarely.models.profile import Profile
from tarely.models.task import TaskAssignee, TaskAttachment, TaskComment
from tarely.models.workspace import Workspace, WorkspaceMember
from tarely.services import task_service, validation, workspace_service
from tarely.services import storage as storage_module
from tarely.services.auth_provider import Identity
from tarely.services.storage import AVATARS, StorageError
from tarely.tasks.email_tasks import send_account_deleted_email

logger = logging.getLogger(__name__)

MAX_AVATAR_BYTES = 5 * 1024 * 1024
SEARCH_LIMIT = 10
THEME_MODES = ("dark", "light")
ACCENT_COLORS = ("none", "pink", "blue", "green", "orange", "cyan", "red")

_AVATAR_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


def ensure_profile(db: Session, identity: Identity) -> tuple[Profile, bool]:
    """Return the caller's profile, creating it on first sight."""
    profile = db.query(Profile).filter(Profile.id == identity.user_id).first()
    if profile is not None:
        return profile, False

    profile = Profile(
        id=identity.user_id,
        email=identity.email,
        name=identity.name or identity.email.split("@")[0],
    )
    db.add(profile)
    try:
        db.commit()
    except IntegrityError:
        # Two first requests raced; the other one won.
        db.rollback()
        profile = db.query(Profile).filter(Profile.id == identity.user_id).one()
        return profile, False
    db.refresh(profile)
    logger.info("ensure_profile: created profile %s", profile.id)
    return profile, True


def get_profile(db: Session, user_id: str) -> Profile:
    profile = db.query(Profile).filter(Profile.id == user_id).first()
    if profile is None:
        raise NotFoundError("Perfil no encontrado")
    return profile


def update_profile(db: Session, profile: Profile, changes: dict[str, Any]) -> Profile:
    if changes.get("name") is not None:
        profile.name = validation.require_text(changes["name"], "nombre", max_length=100)
    if changes.get("avatar") is not None:
        # Seed avatars ("avatar3.png") are stored verbatim.
        profile.avatar = validation.require_text(changes["avatar"], "avatar", max_length=500)
    db.commit()
    db.refresh(profile)
    return profile


def avatar_url(profile: Profile) -> str | None:
    """Signed URL for an uploaded avatar; seed avatars are returned as-is."""
    if not profile.avatar or "/" not in profile.avatar:
        return profile.avatar
    try:
        return storage_module.storage.create_signed_url(AVATARS, profile.avatar)
    except StorageError as exc:
        logger.warning("avatar_url: %s: %s", profile.id, exc)
        return None


def upload_avatar(db: Session, profile: Profile, *, mime_type: str, data: bytes) -> dict[str, Any]:
    extension = _AVATAR_EXTENSIONS.get(mime_type or "")
    if extension is None:
        raise ValidationError("Formato no permitido. Usa JPG, PNG o WebP")
    if not data:
        raise ValidationError("No se ha proporcionado ningún archivo")
    if len(data) > MAX_AVATAR_BYTES:
        raise ValidationError("La imagen es demasiado grande (máximo 5MB)")

    path = f"{profile.id}/avatar.{extension}"
    previous = profile.avatar
    try:
        storage_module.storage.upload(AVATARS, path, data, upsert=True)
        if previous and "/" in previous and previous != path:
            storage_module.storage.remove(AVATARS, [previous])
        url = storage_module.storage.create_signed_url(AVATARS, path)
    except StorageError as exc:
        logger.error("upload_avatar: %s: %s", profile.id, exc)
        raise UpstreamError("Error al subir el avatar") from exc

    profile.avatar = path
    profile.avatar_version = (profile.avatar_version or 0) + 1
    db.commit()
    db.refresh(profile)
    return {"avatar": path, "version": profile.avatar_version, "url": url}


def mark_onboarding_seen(db: Session, profile: Profile) -> bool:
    try:
        profile.has_seen_onboarding = True
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("mark_onboarding_seen: %s: %s", profile.id, exc)
        return False
    return True


# ── Preferences ───────────────────────────────────────────────────────────────


def get_preferences(profile: Profile) -> dict[str, str]:
    return {"theme_mode": profile.theme_mode, "accent_color": profile.accent_color}


def update_preferences(db: Session, profile: Profile, changes: dict[str, Any]) -> dict[str, str]:
    """Apply the recognised values; unknown ones are dropped."""
    valid: dict[str, str] = {}
    if changes.get("theme_mode") in THEME_MODES:
        valid["theme_mode"] = changes["theme_mode"]
    if changes.get("accent_color") in ACCENT_COLORS:
        valid["accent_color"] = changes["accent_color"]
    if not valid:
        raise ValidationError("No hay preferencias válidas para actualizar")
    for key, value in valid.items():
        setattr(profile, key, value)
    db.commit()
    db.refresh(profile)
    return get_preferences(profile)


# ── Lookup ────────────────────────────────────────────────────────────────────


def search_users(db: Session, caller_id: str, search: str | None) -> list[Profile]:
    term = (search or "").strip()
    if not term:
        return []
    pattern = f"%{term}%"
    return (
        db.query(Profile)
        .filter(
            Profile.id != caller_id,
            or_(Profile.name.ilike(pattern), Profile.email.ilike(pattern)),
        )
        .order_by(Profile.name.asc())
        .limit(SEARCH_LIMIT)
        .all()
    )


# ── Account deletion ──────────────────────────────────────────────────────────


def delete_account(db: Session, profile: Profile) -> None:
    """Delete the profile and everything it owns, then confirm by email."""
    user_id = profile.id
    email, name = profile.email, profile.name
    avatar = profile.avatar if profile.avatar and "/" in profile.avatar else None

    owned = [row[0] for row in db.query(Workspace.id).filter(Workspace.owner_id == user_id).all()]
    attachment_paths: list[str] = []
    for workspace_id in owned:
        attachment_paths.extend(workspace_service.purge_workspace(db, workspace_id))

    attachment_paths.extend(
        row[0]
        for row in db.query(TaskAttachment.storage_path).filter(TaskAttachment.user_id == user_id).all()
    )
    for model in (TaskAttachment, TaskComment, TaskAssignee, WorkspaceMember, TaskCalendarSync,
                  GoogleCalendarToken, NoteTemplate):
        db.query(model).filter(model.user_id == user_id).delete(synchronize_session=False)
    db.query(Profile).filter(Profile.id == user_id).delete(synchronize_session=False)
    db.commit()
    db.expire_all()

    task_service.remove_attachment_objects(attachment_paths)
    if avatar:
        try:
            storage_module.storage.remove(AVATARS, [avatar])
        except StorageError as exc:
            logger.warning("delete_account: avatar of %s left behind: %s", user_id, exc)

    send_account_deleted_email.delay(email, name)
    logger.info(
        "delete_account: deleted %s with %d workspaces and %d attachment objects",
        user_id, len(owned), len(attachment_paths),
    )
