from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from tarely.celery_app import celery_app
from tarely.database import SessionLocal
from tarely.models.profile import Profile
from tarely.models.workspace import Workspace, WorkspaceMember
from tarely.services import email_service
from tarely.services.email_service import EmailDeliveryError

logger = logging.getLogger(__name__)


def _deliver(task, to: str, subject: str, html_body: str) -> None:
    try:
        email_service.send_email(to, subject, html_body)
    except EmailDeliveryError as exc:
        if task.request.retries >= task.max_retries:
            logger.error("%s: giving up on %s after %d retries: %s", task.name, to, task.request.retries, exc)
            return
        logger.warning("%s: delivery to %s failed, retrying: %s", task.name, to, exc)
        raise task.retry(exc=exc)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    name="tarely.tasks.email_tasks.send_welcome_email",
)
def send_welcome_email(self, user_id: str) -> None:
    """Send the welcome email to a newly created profile."""
    db: Session = SessionLocal()
    try:
        profile = db.query(Profile).filter(Profile.id == user_id).first()
        if profile is None:
            logger.warning("send_welcome_email: profile %s not found", user_id)
            return
        subject, body = email_service.welcome_email(profile.name)
        _deliver(self, profile.email, subject, body)
    finally:
        db.close()


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    name="tarely.tasks.email_tasks.send_invitation_email",
)
def send_invitation_email(self, member_id: str) -> None:
    """Notify an invited user about a pending workspace membership."""
    db: Session = SessionLocal()
    try:
        member = db.query(WorkspaceMember).filter(WorkspaceMember.id == member_id).first()
        if member is None or member.status != "pending":
            logger.info("send_invitation_email: membership %s no longer pending", member_id)
            return
        invitee = db.query(Profile).filter(Profile.id == member.user_id).first()
        workspace = db.query(Workspace).filter(Workspace.id == member.workspace_id).first()
        inviter = (
            db.query(Profile).filter(Profile.id == member.invited_by).first()
            if member.invited_by else None
        )
        if invitee is None or workspace is None:
            return
        subject, body = email_service.invitation_email(
            inviter.name if inviter else None, workspace.name
        )
        _deliver(self, invitee.email, subject, body)
    finally:
        db.close()


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    name="tarely.tasks.email_tasks.send_account_deleted_email",
)
def send_account_deleted_email(self, email: str, name: str | None = None) -> None:
    """Confirm a completed account deletion. The profile row no longer exists."""
    subject, body = email_service.account_deleted_email(name)
    _deliver(self, email, subject, body)
