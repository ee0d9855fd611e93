"""Failure alerts by mail.

Notifications are fire-and-forget: a failed delivery is logged and never
changes the outcome of a recording.
"""

from __future__ import annotations

import smtplib
import ssl
from email.message import EmailMessage

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_SUBJECT = "IPTV recorder failure"


class NullNotifier:
    """Notifier used when mail alerts are disabled."""

    def notify(self, subject: str, body: str) -> None:
        logger.debug("notification suppressed", subject=subject)


class MailNotifier:
    """Sends plain-text alerts over SMTP-over-SSL."""

    def __init__(self, settings, timeout: float = 30.0) -> None:
        self.settings = settings
        self.timeout = timeout

    def build_message(self, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.settings.sent_from
        message["To"] = self.settings.send_to
        message["Subject"] = subject
        message.set_content(body)
        return message

    def notify(self, subject: str, body: str) -> None:
        message = self.build_message(subject, body)
        try:
            with smtplib.SMTP_SSL(self.settings.smtp_host, self.settings.smtp_port,
                                  context=ssl.create_default_context(),
                                  timeout=self.timeout) as smtp:
                smtp.login(self.settings.sent_from, self.settings.app_password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("failed to send notification mail", error=str(e), subject=subject)
            return
        logger.info("notification mail sent", to=self.settings.send_to, subject=subject)


def notifier_from_config(config):
    """A :class:`MailNotifier` when mail is enabled, else a :class:`NullNotifier`."""
    settings = config.mail
    if settings.send_mail and settings.smtp_host and settings.send_to:
        return MailNotifier(settings)
    return NullNotifier()
