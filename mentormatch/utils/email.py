from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from mentormatch.config import settings

logger = logging.getLogger(__name__)


def is_email_enabled() -> bool:
    """Email goes out only when switched on and a server and sender are set."""
    if not settings.EMAIL_NOTIFICATIONS_ENABLED:
        return False
    return bool(settings.SMTP_SERVER and settings.EMAIL_FROM)


def build_message(sender: str, to_email: str, subject: str, body_text: str, body_html: Optional[str] = None) -> MIMEMultipart:
    message = MIMEMultipart("alternative")
    message["From"] = sender
    message["To"] = to_email
    message["Subject"] = subject
    message.attach(MIMEText(body_text, "plain", "utf-8"))
    if body_html:
        message.attach(MIMEText(body_html, "html", "utf-8"))
    return message


def _connect() -> smtplib.SMTP:
    if settings.SMTP_USE_SSL:
        connection = smtplib.SMTP_SSL(settings.SMTP_SERVER, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT_SECONDS)
    else:
        connection = smtplib.SMTP(settings.SMTP_SERVER, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT_SECONDS)
    try:
        if settings.SMTP_USE_TLS and not settings.SMTP_USE_SSL:
            connection.starttls()
        if settings.EMAIL_PASSWORD:
            connection.login(settings.SMTP_USERNAME or settings.EMAIL_FROM, settings.EMAIL_PASSWORD)
    except (smtplib.SMTPException, OSError):
        connection.close()
        raise
    return connection


def send_email(
    *,
    to_email: str,
    subject: str,
    body_text: str,
    body_html: Optional[str] = None,
) -> bool:
    """Deliver one message over SMTP. SMTP errors are logged, not raised."""
    if not is_email_enabled():
        return False

    message = build_message(settings.EMAIL_FROM, to_email, subject, body_text, body_html)
    try:
        with _connect() as connection:
            connection.sendmail(settings.EMAIL_FROM, [to_email], message.as_string())
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning("SMTP delivery to %s failed: %s", to_email, exc)
        return False
    logger.debug("Sent '%s' to %s", subject, to_email)
    return True
