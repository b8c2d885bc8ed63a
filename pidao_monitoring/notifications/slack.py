"""
Slack Notification Channel.

============================================================
PURPOSE
============================================================
Send notifications through the Slack Web API
(chat.postMessage) using a bot token.

PRINCIPLES:
- Enabled only when a token is configured
- Notification.channel overrides the default channel
- Block Kit layout: header, body, metadata code block

============================================================
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from ..config import SlackConfig
from ..exceptions import NotificationDeliveryError
from ..models import Notification
from .base import NotificationChannel, format_metadata, severity_color, severity_emoji


logger = logging.getLogger(__name__)


# ============================================================
# SLACK MESSAGE FORMATTER
# ============================================================

class SlackFormatter:
    """Formats notifications as Slack blocks."""

    @classmethod
    def build_blocks(cls, notification: Notification) -> List[Dict[str, Any]]:
        emoji = severity_emoji(notification.severity)
        blocks: List[Dict[str, Any]] = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": f"{emoji} {notification.title}",
                    "emoji": True,
                },
            },
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": notification.message},
            },
        ]

        details = format_metadata(notification.metadata)
        if details:
            blocks.append({
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"```{details}```"},
            })

        blocks.append({
            "type": "context",
            "elements": [{
                "type": "mrkdwn",
                "text": f"Severity: *{notification.severity.value.upper()}*",
            }],
        })
        return blocks

    @classmethod
    def build_payload(cls, notification: Notification, channel: str) -> Dict[str, Any]:
        return {
            "channel": channel,
            "text": notification.title,
            "blocks": cls.build_blocks(notification),
            "attachments": [{"color": severity_color(notification.severity)}],
        }


# ============================================================
# SLACK CHANNEL
# ============================================================

class SlackChannel(NotificationChannel):
    """Slack Web API channel."""

    name = "slack"

    def __init__(
        self,
        config: SlackConfig,
        session: Optional[aiohttp.ClientSession] = None,
        timeout_seconds: float = 10.0,
    ):
        """
        Initialize Slack channel.

        Args:
            config: Slack credentials
            session: Optional shared HTTP session
            timeout_seconds: Per-request timeout
        """
        self._config = config
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._formatter = SlackFormatter()

        if not config.enabled:
            logger.warning("SlackChannel NOT configured - check SLACK_TOKEN")

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if owned."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def _api_call(self, method: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Call a Slack Web API method; raises on transport or API error."""
        session = await self._get_session()
        url = f"{self._config.api_base_url}/{method}"
        headers = {"Authorization": f"Bearer {self._config.token}"}

        try:
            async with session.post(url, json=payload or {}, headers=headers) as response:
                if response.status != 200:
                    body = await response.text()
                    raise NotificationDeliveryError(
                        self.name, f"HTTP {response.status}: {body[:200]}"
                    )
                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NotificationDeliveryError(self.name, str(e)) from e

        if not data.get("ok"):
            raise NotificationDeliveryError(self.name, data.get("error", "unknown error"))
        return data

    async def send(self, notification: Notification) -> None:
        """Post a notification to Slack."""
        channel = notification.channel or self._config.default_channel
        payload = self._formatter.build_payload(notification, channel)
        await self._api_call("chat.postMessage", payload)
        logger.debug(f"Slack notification sent to {channel}: {notification.title}")

    async def test_connection(self) -> bool:
        """Verify the token with auth.test."""
        try:
            await self._api_call("auth.test")
            return True
        except NotificationDeliveryError as e:
            logger.error(f"Slack connection test failed: {e}")
            return False
