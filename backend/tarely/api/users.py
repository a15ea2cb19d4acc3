from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tarely.api.deps import get_current_user
from tarely.database import get_db
from tarely.models.profile import Profile
from tarely.schemas.profile import UserSearchResultSchema
from tarely.services import profile_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[UserSearchResultSchema])
def search_users(
    search: str = Query("", description="Name or email fragment"),
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Profile lookup for the invite dialog. Never returns the caller."""
    return profile_service.search_users(db, user.id, search)
