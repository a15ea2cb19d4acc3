from __future__ import annotations

import html
import logging
import smtplib
from email.message import EmailMessage

from tarely.config import settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when the SMTP server rejects or cannot accept a message."""


def send_email(to: str, subject: str, html_body: str, text_body: str | None = None) -> None:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = settings.EMAIL_SENDER
    msg["To"] = to
    msg.set_content(text_body or "Abre este correo en un cliente compatible con HTML.")
    msg.add_alternative(html_body, subtype="html")

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
            server.starttls()
            if settings.SMTP_USER and settings.SMTP_PASSWORD:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        raise EmailDeliveryError(f"Failed to send {subject!r} to {to}: {exc}") from exc

    logger.info("email_service: sent %r to %s", subject, to)


# ── Templates ─────────────────────────────────────────────────────────────────


def _layout(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html><html><body style=\"font-family:sans-serif\">"
        f"<h2>{html.escape(title)}</h2>{body}"
        f"<p><a href=\"{settings.APP_URL}\">Abrir Tarely</a></p>"
        "</body></html>"
    )


def welcome_email(name: str | None) -> tuple[str, str]:
    greeting = html.escape(name) if name else "Hola"
    body = (
        f"<p>{greeting}, te damos la bienvenida a Tarely.</p>"
        "<p>Crea tu primer workspace y empieza a organizar tus tareas y notas.</p>"
    )
    return "Bienvenido a Tarely", _layout("Bienvenido a Tarely", body)


def invitation_email(inviter_name: str | None, workspace_name: str) -> tuple[str, str]:
    inviter = html.escape(inviter_name or "Alguien")
    workspace = html.escape(workspace_name)
    body = (
        f"<p>{inviter} te ha invitado a colaborar en <strong>{workspace}</strong>.</p>"
        "<p>Acepta o rechaza la invitación desde tu panel.</p>"
    )
    return f"Invitación a {workspace_name}", _layout("Nueva invitación", body)


def account_deleted_email(name: str | None) -> tuple[str, str]:
    greeting = html.escape(name) if name else "Hola"
    body = (
        f"<p>{greeting}, tu cuenta de Tarely y todos sus datos se han eliminado.</p>"
        "<p>Si no has sido tú, responde a este correo.</p>"
    )
    return "Tu cuenta ha sido eliminada", _layout("Cuenta eliminada", body)
