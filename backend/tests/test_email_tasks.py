"""Tests for tarely.tasks.email_tasks."""
from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from tarely.services import email_service
from tarely.services.email_service import EmailDeliveryError


def _profile(name="Ana", email="ana@example.com"):
    profile = MagicMock()
    profile.name = name
    profile.email = email
    return profile


def _db_returning(*rows):
    db = MagicMock()
    db.query.return_value.filter.return_value.first.side_effect = list(rows)
    return db


class TestSendWelcomeEmail:
    @patch("tarely.tasks.email_tasks.email_service.send_email")
    @patch("tarely.tasks.email_tasks.SessionLocal")
    def test_sends_to_profile(self, mock_session_local, mock_send):
        db = _db_returning(_profile())
        mock_session_local.return_value = db

        from tarely.tasks.email_tasks import send_welcome_email
        send_welcome_email("user-1")

        to, subject, body = mock_send.call_args.args
        assert to == "ana@example.com"
        assert subject == "Bienvenido a Tarely"
        assert "Ana" in body
        db.close.assert_called_once()

    @patch("tarely.tasks.email_tasks.email_service.send_email")
    @patch("tarely.tasks.email_tasks.SessionLocal")
    def test_missing_profile_sends_nothing(self, mock_session_local, mock_send):
        db = _db_returning(None)
        mock_session_local.return_value = db

        from tarely.tasks.email_tasks import send_welcome_email
        send_welcome_email("ghost")

        mock_send.assert_not_called()
        db.close.assert_called_once()

    @patch("tarely.tasks.email_tasks.email_service.send_email")
    @patch("tarely.tasks.email_tasks.SessionLocal")
    def test_delivery_failure_triggers_retry(self, mock_session_local, mock_send):
        db = _db_returning(_profile())
        mock_session_local.return_value = db
        mock_send.side_effect = EmailDeliveryError("smtp down")

        from tarely.tasks.email_tasks import send_welcome_email
        with patch.object(send_welcome_email, "retry", side_effect=Exception("retry triggered")):
            with pytest.raises(Exception, match="retry triggered"):
                send_welcome_email("user-1")

        db.close.assert_called_once()

    @patch("tarely.tasks.email_tasks.email_service.send_email")
    @patch("tarely.tasks.email_tasks.SessionLocal")
    def test_gives_up_when_retries_exhausted(self, mock_session_local, mock_send):
        mock_session_local.return_value = _db_returning(_profile())
        mock_send.side_effect = EmailDeliveryError("smtp down")

        from tarely.tasks.email_tasks import send_welcome_email
        with patch.object(send_welcome_email, "max_retries", 0):
            # Completes without raising
            send_welcome_email("user-1")


class TestSendInvitationEmail:
    @patch("tarely.tasks.email_tasks.email_service.send_email")
    @patch("tarely.tasks.email_tasks.SessionLocal")
    def test_sends_to_invitee(self, mock_session_local, mock_send):
        member = MagicMock(status="pending", invited_by="owner-1")
        workspace = MagicMock()
        workspace.name = "Proyecto"
        mock_session_local.return_value = _db_returning(
            member, _profile("Bea", "bea@example.com"), workspace, _profile("Owner")
        )

        from tarely.tasks.email_tasks import send_invitation_email
        send_invitation_email("member-1")

        to, subject, body = mock_send.call_args.args
        assert to == "bea@example.com"
        assert subject == "Invitación a Proyecto"
        assert "Owner te ha invitado" in body

    @patch("tarely.tasks.email_tasks.email_service.send_email")
    @patch("tarely.tasks.email_tasks.SessionLocal")
    def test_answered_invitation_is_skipped(self, mock_session_local, mock_send):
        mock_session_local.return_value = _db_returning(MagicMock(status="accepted"))

        from tarely.tasks.email_tasks import send_invitation_email
        send_invitation_email("member-1")

        mock_send.assert_not_called()


class TestSendAccountDeletedEmail:
    @patch("tarely.tasks.email_tasks.email_service.send_email")
    def test_sends_without_database(self, mock_send):
        from tarely.tasks.email_tasks import send_account_deleted_email
        send_account_deleted_email("gone@example.com", "Gone")

        to, subject, _ = mock_send.call_args.args
        assert to == "gone@example.com"
        assert subject == "Tu cuenta ha sido eliminada"


class TestTemplates:
    def test_names_are_escaped(self):
        _, body = email_service.welcome_email("<script>")
        assert "<script>" not in body
        assert "&lt;script&gt;" in body

    def test_invitation_without_inviter(self):
        _, body = email_service.invitation_email(None, "Proyecto")
        assert "Alguien te ha invitado" in body


class TestSendEmail:
    @patch("tarely.services.email_service.smtplib.SMTP")
    def test_smtp_failure_is_delivery_error(self, mock_smtp):
        mock_smtp.return_value.__enter__.return_value.send_message.side_effect = OSError("refused")

        with pytest.raises(EmailDeliveryError):
            email_service.send_email("a@example.com", "Hi", "<p>hi</p>")

    @patch("tarely.services.email_service.smtplib.SMTP")
    def test_sends_message(self, mock_smtp):
        server = mock_smtp.return_value.__enter__.return_value

        email_service.send_email("a@example.com", "Hi", "<p>hi</p>")

        message = server.send_message.call_args.args[0]
        assert message["To"] == "a@example.com"
        assert message["Subject"] == "Hi"
