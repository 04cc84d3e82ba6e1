"""Transactional email delivery over SMTP with a Mailgun fallback."""
from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from urllib.parse import urlencode

import requests

from ..config import get_settings
from ..security.secrets import MissingSecretError, is_placeholder, require_secret

logger = logging.getLogger(__name__)


class EmailDeliveryError(RuntimeError):
    """Raised when no transport could deliver a message."""


def _smtp_enabled() -> bool:
    settings = get_settings()
    return bool(settings.email_host and settings.email_from_address)


def _mailgun_enabled() -> bool:
    settings = get_settings()
    if is_placeholder(settings.mailgun_api_key):
        return False
    return bool(settings.mailgun_domain and settings.email_from_address)


def email_delivery_configured() -> bool:
    return _smtp_enabled() or _mailgun_enabled()


def _send_via_smtp(to_address: str, subject: str, body: str) -> None:
    settings = get_settings()
    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = str(settings.email_from_address)
    message["To"] = to_address
    message.set_content(body)

    username = (settings.email_username or "").strip()
    try:
        with smtplib.SMTP(settings.email_host, settings.email_port, timeout=20) as smtp:
            if settings.email_use_tls:
                smtp.starttls()
            if username:
                smtp.login(username, require_secret("EMAIL_PASSWORD"))
            smtp.send_message(message)
    except MissingSecretError as exc:
        raise EmailDeliveryError(str(exc)) from exc
    except (smtplib.SMTPException, OSError) as exc:  # pragma: no cover - network interactions
        logger.exception("SMTP delivery failed for %s", to_address)
        raise EmailDeliveryError(str(exc)) from exc


def _send_via_mailgun(to_address: str, subject: str, body: str) -> None:
    settings = get_settings()
    try:
        api_key = require_secret("MAILGUN_API_KEY")
    except MissingSecretError as exc:
        raise EmailDeliveryError(str(exc)) from exc

    try:
        response = requests.post(
            f"https://api.mailgun.net/v3/{settings.mailgun_domain}/messages",
            auth=("api", api_key),
            data={
                "from": str(settings.email_from_address),
                "to": to_address,
                "subject": subject,
                "text": body,
            },
            timeout=20,
        )
    except requests.RequestException as exc:  # pragma: no cover - network interactions
        logger.exception("Mailgun request failed for %s", to_address)
        raise EmailDeliveryError(str(exc)) from exc

    if response.status_code >= 400:
        logger.error("Mailgun returned %s: %s", response.status_code, response.text)
        raise EmailDeliveryError(f"Mailgun delivery failed with status {response.status_code}")


def send_email(to_address: str, subject: str, body: str) -> None:
    """Send a plaintext email, trying SMTP first and Mailgun second."""

    if not to_address or not subject or not body:
        raise EmailDeliveryError("Email payload is incomplete")
    if not email_delivery_configured():
        raise EmailDeliveryError("Email delivery is not configured. Provide SMTP settings or Mailgun credentials.")

    if _smtp_enabled():
        try:
            _send_via_smtp(to_address, subject, body)
            return
        except EmailDeliveryError as exc:
            if not _mailgun_enabled():
                raise
            logger.warning("SMTP delivery failed, falling back to Mailgun: %s", exc)

    _send_via_mailgun(to_address, subject, body)


def build_confirmation_link(token: str) -> str:
    settings = get_settings()
    query = {"token": token}
    if settings.email_redirect_url:
        query["redirect_to"] = settings.email_redirect_url
    return f"{settings.public_base_url.rstrip('/')}/auth/confirm?{urlencode(query)}"


def send_confirmation_email(to_address: str, token: str) -> None:
    settings = get_settings()
    body = (
        f"Welcome to {settings.app_name}!\n\n"
        "Confirm your email address to start sharing wisdom and resources:\n"
        f"{build_confirmation_link(token)}\n\n"
        f"The link expires in {settings.email_confirmation_ttl_hours} hours. "
        "If you did not sign up, you can ignore this email."
    )
    send_email(to_address, f"Confirm your {settings.app_name} account", body)


__all__ = [
    "EmailDeliveryError",
    "build_confirmation_link",
    "email_delivery_configured",
    "send_confirmation_email",
    "send_email",
]
