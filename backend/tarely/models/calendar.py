import uuid
from datetime import datetime, timezone

from cryptography.fernet import Fernet
from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tarely.config import settings
from tarely.database import Base

_fernet = Fernet(settings.ENCRYPTION_KEY.encode())


class GoogleCalendarToken(Base):
    __tablename__ = "google_calendar_tokens"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    encrypted_refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    token_expiry: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def set_refresh_token(self, plain_token: str) -> None:
        self.encrypted_refresh_token = _fernet.encrypt(plain_token.encode()).decode()

    def get_refresh_token(self) -> str | None:
        if self.encrypted_refresh_token is None:
            return None
        return _fernet.decrypt(self.encrypted_refresh_token.encode()).decode()


class TaskCalendarSync(Base):
    __tablename__ = "task_google_calendar_sync"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    task_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    google_event_id: Mapped[str] = mapped_column(String(255), nullable=False)
    google_calendar_id: Mapped[str] = mapped_column(String(255), nullable=False, default="primary")
    last_synced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("task_id", "user_id", name="uq_task_calendar_sync_task_user"),
    )
