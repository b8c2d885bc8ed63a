"""
SMTP Email Notification Channel.

============================================================
PURPOSE
============================================================
Send notifications over SMTP.

PRINCIPLES:
- Enabled only when an SMTP host is configured
- Blocking smtplib calls run in the default executor
- No recipients means nothing to deliver (not an error)

============================================================
"""

import asyncio
import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List

from ..config import EmailConfig
from ..exceptions import NotificationDeliveryError
from ..models import Notification
from .base import NotificationChannel, format_metadata, severity_color


logger = logging.getLogger(__name__)


class EmailFormatter:
    """Formats notifications as HTML email."""

    @classmethod
    def subject(cls, notification: Notification) -> str:
        return f"[{notification.severity.value.upper()}] {notification.title}"

    @classmethod
    def html_body(cls, notification: Notification) -> str:
        color = severity_color(notification.severity)
        message = html.escape(notification.message).replace("\n", "<br>")
        parts = [
            '<div style="font-family: Arial, sans-serif; max-width: 600px;">',
            f'<div style="background-color: {color}; color: white; padding: 12px;">',
            f'<h2 style="margin: 0;">{html.escape(notification.title)}</h2>',
            "</div>",
            f'<div style="padding: 12px;"><p>{message}</p>',
        ]

        details = format_metadata(notification.metadata)
        if details:
            parts.append(
                '<pre style="background-color: #f5f5f5; padding: 8px;">'
                f"{html.escape(details)}</pre>"
            )

        parts.append("</div></div>")
        return "\n".join(parts)

    @classmethod
    def plain_body(cls, notification: Notification) -> str:
        details = format_metadata(notification.metadata)
        if details:
            return f"{notification.message}\n\n{details}"
        return notification.message


class EmailChannel(NotificationChannel):
    """SMTP email channel."""

    name = "email"

    def __init__(self, config: EmailConfig, timeout_seconds: float = 10.0):
        """
        Initialize email channel.

        Args:
            config: SMTP credentials and default recipients
            timeout_seconds: SMTP socket timeout
        """
        self._config = config
        self._timeout = timeout_seconds
        self._formatter = EmailFormatter()

        if not config.enabled:
            logger.warning("EmailChannel NOT configured - check SMTP_HOST")

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    def _recipients(self, notification: Notification) -> List[str]:
        return list(notification.recipients or self._config.default_recipients)

    def build_message(self, notification: Notification, recipients: List[str]) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = self._formatter.subject(notification)
        msg["From"] = self._config.from_address
        msg["To"] = ", ".join(recipients)
        msg.attach(MIMEText(self._formatter.plain_body(notification), "plain"))
        msg.attach(MIMEText(self._formatter.html_body(notification), "html"))
        return msg

    async def send(self, notification: Notification) -> None:
        """Send a notification by email."""
        recipients = self._recipients(notification)
        if not recipients:
            logger.debug(f"No email recipients for {notification.title}; skipping")
            return

        msg = self.build_message(notification, recipients)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._send_sync, msg, recipients)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationDeliveryError(self.name, str(e)) from e

        logger.debug(f"Email notification sent to {len(recipients)} recipient(s): {notification.title}")

    def _open(self) -> smtplib.SMTP:
        server = smtplib.SMTP(self._config.host, self._config.port, timeout=self._timeout)
        if self._config.use_tls:
            server.starttls()
        if self._config.username and self._config.password:
            server.login(self._config.username, self._config.password)
        return server

    def _send_sync(self, msg: MIMEMultipart, recipients: List[str]) -> None:
        """Send email synchronously."""
        with self._open() as server:
            server.sendmail(self._config.from_address, recipients, msg.as_string())

    def _verify_sync(self) -> bool:
        with self._open() as server:
            status, _ = server.noop()
            return status == 250

    async def test_connection(self) -> bool:
        """Verify SMTP connectivity and credentials."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._verify_sync)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Email connection test failed: {e}")
            return False
