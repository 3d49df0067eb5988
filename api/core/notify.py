"""
Outbound notifications: email over SMTP and SMS over an HTTP gateway.

Both channels degrade to logging when they are not configured, which keeps
local development usable without credentials.
"""

from __future__ import annotations

import asyncio
import logging
import re
import smtplib
from email.message import EmailMessage

import httpx

from . import settings

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")


class NotificationError(RuntimeError):
    pass


def smtp_configured() -> bool:
    return bool(settings.env_str("SMTP_HOST", ""))


def strip_html(html: str) -> str:
    text = _TAG_RE.sub("", html or "")
    return re.sub(r"\n\s*\n+", "\n\n", text).strip()


def _send_smtp(message: EmailMessage) -> None:
    host = settings.env_str("SMTP_HOST", "")
    port = settings.env_int("SMTP_PORT", 587)
    username = settings.env_str("SMTP_USERNAME", "")
    password = settings.env_str("SMTP_PASSWORD", "")

    with smtplib.SMTP(host, port, timeout=20) as server:
        if settings.env_bool("SMTP_USE_TLS", True):
            server.starttls()
        if username:
            server.login(username, password)
        server.send_message(message)


async def send_email(*, to: str, subject: str, html: str, text: str | None = None) -> bool:
    """
    Send an email. Returns False when SMTP is not configured (message is logged).
    """
    if not smtp_configured():
        logger.info("email_skipped to=%s subject=%r reason=smtp_not_configured", to, subject)
        return False

    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = settings.env_str("SMTP_FROM", settings.env_str("SMTP_USERNAME", "no-reply@localhost"))
    message["To"] = to
    message.set_content(text or strip_html(html))
    message.add_alternative(html, subtype="html")

    try:
        # smtplib blocks; keep it off the event loop.
        await asyncio.to_thread(_send_smtp, message)
    except (smtplib.SMTPException, OSError) as exc:
        raise NotificationError(f"Email delivery failed: {exc}") from exc

    logger.info("email_sent to=%s subject=%r", to, subject)
    return True


async def send_sms(*, phone: str, message: str, timeout_s: float = 15.0) -> bool:
    """
    Send an SMS through SMS_GATEWAY_URL. Returns False when no gateway is set.
    """
    gateway = settings.env_str("SMS_GATEWAY_URL", "").rstrip("/")
    if not gateway:
        logger.info("sms_skipped phone=%s reason=gateway_not_configured", phone)
        return False

    headers = {}
    token = settings.env_str("SMS_GATEWAY_TOKEN", "")
    if token:
        headers["Authorization"] = f"Bearer {token}"

    try:
        async with httpx.AsyncClient(timeout=timeout_s) as client:
            resp = await client.post(gateway, json={"to": phone, "message": message}, headers=headers)
    except httpx.HTTPError as exc:
        raise NotificationError(f"SMS gateway request failed: {exc}") from exc

    if resp.status_code >= 400:
        raise NotificationError(f"SMS gateway returned {resp.status_code}: {resp.text[:300]}")

    logger.info("sms_sent phone=%s", phone)
    return True
