from __future__ import annotations

import dataclasses
import logging
from datetime import datetime, timedelta, timezone

import jwt

from tarely.config import settings

logger = logging.getLogger(__name__)

_ALGORITHM = "HS256"


@dataclasses.dataclass(frozen=True)
class Identity:
    user_id: str
    email: str
    name: str | None


class AuthProvider:
    """Verifies access tokens issued by the external identity provider."""

    def __init__(self, secret: str, audience: str) -> None:
        self._secret = secret
        self._audience = audience

    def get_user(self, token: str | None) -> Identity | None:
        if not token:
            return None
        try:
            claims = jwt.decode(
                token, self._secret, algorithms=[_ALGORITHM], audience=self._audience
            )
        except jwt.ExpiredSignatureError:
            logger.info("auth_provider: expired token")
            return None
        except jwt.InvalidTokenError as exc:
            logger.info("auth_provider: invalid token: %s", exc)
            return None

        user_id = claims.get("sub")
        email = claims.get("email")
        if not user_id or not email:
            return None
        metadata = claims.get("user_metadata") or {}
        return Identity(user_id=user_id, email=email, name=metadata.get("name"))

    def issue_token(self, user_id: str, email: str, name: str | None = None, expires_in: int = 3600) -> str:
        """Mint a token the way the provider does. Used by tooling and tests."""
        payload = {
            "sub": user_id,
            "email": email,
            "aud": self._audience,
            "user_metadata": {"name": name} if name else {},
            "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)


auth_provider = AuthProvider(settings.AUTH_JWT_SECRET, settings.AUTH_JWT_AUDIENCE)
