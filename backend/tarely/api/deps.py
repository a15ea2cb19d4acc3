import logging

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from tarely.database import get_db
from tarely.errors import ForbiddenError, UnauthorizedError
from tarely.models.profile import Profile
from tarely.services import profile_service
from tarely.services.auth_provider import auth_provider
from tarely.tasks.email_tasks import send_welcome_email

logger = logging.getLogger(__name__)


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def get_current_user(
    authorization: str | None = Header(None),
    db: Session = Depends(get_db),
) -> Profile:
    """Resolve the caller from the bearer token, creating the profile on first sight."""
    identity = auth_provider.get_user(_bearer_token(authorization))
    if identity is None:
        raise UnauthorizedError()

    profile, created = profile_service.ensure_profile(db, identity)
    if created:
        send_welcome_email.delay(profile.id)
        logger.info("get_current_user: enqueued welcome email for %s", profile.id)
    return profile


def require_admin(user: Profile = Depends(get_current_user)) -> Profile:
    if not user.is_admin:
        raise ForbiddenError("Acceso denegado")
    return user
