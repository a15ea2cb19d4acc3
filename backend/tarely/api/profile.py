from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from tarely.api.deps import get_current_user
from tarely.database import get_db
from tarely.models.profile import Profile
from tarely.schemas.common import SuccessSchema
from tarely.schemas.profile import (
    AvatarUploadSchema,
    PreferencesSchema,
    PreferencesUpdateSchema,
    ProfileSchema,
    ProfileUpdateSchema,
)
from tarely.services import profile_service

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=ProfileSchema)
def get_profile(user: Profile = Depends(get_current_user)):
    return user


@router.patch("", response_model=ProfileSchema)
def update_profile(
    body: ProfileUpdateSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return profile_service.update_profile(db, user, body.model_dump(exclude_unset=True))


@router.delete("", response_model=SuccessSchema)
def delete_account(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    """Delete the account and everything it owns. Irreversible."""
    profile_service.delete_account(db, user)
    return SuccessSchema()


@router.post("/avatar", response_model=AvatarUploadSchema)
def upload_avatar(
    avatar: UploadFile = File(...),
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return profile_service.upload_avatar(
        db, user, mime_type=avatar.content_type or "", data=avatar.file.read()
    )


@router.post("/onboarding", response_model=SuccessSchema)
def mark_onboarding(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    return SuccessSchema(success=profile_service.mark_onboarding_seen(db, user))


@router.get("/preferences", response_model=PreferencesSchema)
def get_preferences(user: Profile = Depends(get_current_user)):
    return profile_service.get_preferences(user)


@router.patch("/preferences", response_model=PreferencesSchema)
def update_preferences(
    body: PreferencesUpdateSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return profile_service.update_preferences(db, user, body.model_dump(exclude_none=True))
