"""
Notification Fan-out.

============================================================
PURPOSE
============================================================
Deliver one notification on every configured channel
concurrently.

PRINCIPLES:
- One channel's failure or timeout never affects the others
- send() never raises; it reports per-channel outcome
- Unconfigured channels are skipped

============================================================
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from ..models import Notification
from .base import NotificationChannel


logger = logging.getLogger(__name__)


class NotificationFanout:
    """
    Sends notifications to all channels.

    Usage:
        fanout = NotificationFanout([SlackChannel(cfg.slack), EmailChannel(cfg.email)])
        results = await fanout.send(Notification(title="...", message="..."))
        # {"slack": True, "email": False}
    """

    def __init__(
        self,
        channels: Optional[Iterable[NotificationChannel]] = None,
        timeout_seconds: float = 15.0,
    ):
        """
        Initialize fan-out.

        Args:
            channels: Notification channels
            timeout_seconds: Per-channel delivery timeout
        """
        self._channels: Dict[str, NotificationChannel] = {}
        self._timeout = timeout_seconds
        self.sent_count = 0
        self.failed_count = 0

        for channel in channels or []:
            self.add_channel(channel)

    def add_channel(self, channel: NotificationChannel) -> None:
        """Register a channel (replacing one with the same name)."""
        self._channels[channel.name] = channel

    def remove_channel(self, name: str) -> None:
        self._channels.pop(name, None)

    @property
    def channel_names(self) -> List[str]:
        return list(self._channels)

    def _select(self, names: Optional[Iterable[str]]) -> List[NotificationChannel]:
        if names is None:
            candidates = list(self._channels.values())
        else:
            candidates = []
            for name in names:
                channel = self._channels.get(name)
                if channel is None:
                    logger.warning(f"Unknown notification channel requested: {name}")
                    continue
                candidates.append(channel)
        return [channel for channel in candidates if channel.enabled]

    async def _deliver(self, channel: NotificationChannel, notification: Notification) -> bool:
        try:
            await asyncio.wait_for(channel.send(notification), timeout=self._timeout)
            return True
        except asyncio.TimeoutError:
            logger.error(
                f"Notification channel {channel.name} timed out after {self._timeout}s: "
                f"{notification.title}"
            )
        except Exception as e:
            logger.error(f"Notification channel {channel.name} failed: {e}")
        return False

    async def send(
        self,
        notification: Notification,
        channels: Optional[Iterable[str]] = None,
    ) -> Dict[str, bool]:
        """
        Deliver a notification.

        Args:
            notification: Notification to deliver
            channels: Restrict delivery to these channel names

        Returns:
            Mapping of channel name to delivery success
        """
        selected = self._select(channels)
        if not selected:
            logger.warning(f"No notification channel available for: {notification.title}")
            return {}

        outcomes = await asyncio.gather(
            *(self._deliver(channel, notification) for channel in selected),
            return_exceptions=True,
        )

        results: Dict[str, bool] = {}
        for channel, outcome in zip(selected, outcomes):
            ok = outcome is True
            if isinstance(outcome, BaseException):
                logger.error(f"Notification channel {channel.name} failed: {outcome}")
            results[channel.name] = ok
            if ok:
                self.sent_count += 1
            else:
                self.failed_count += 1

        logger.info(
            f"Notification [{notification.severity.value}] {notification.title}: "
            f"{sum(results.values())}/{len(results)} channel(s) delivered"
        )
        return results

    async def test_connections(self) -> Dict[str, bool]:
        """Verify every configured channel independently."""
        names = list(self._channels)
        outcomes = await asyncio.gather(
            *(self._test(self._channels[name]) for name in names),
            return_exceptions=True,
        )
        return {
            name: outcome is True
            for name, outcome in zip(names, outcomes)
        }

    async def _test(self, channel: NotificationChannel) -> bool:
        if not channel.enabled:
            return False
        try:
            return await asyncio.wait_for(channel.test_connection(), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.error(f"Notification channel {channel.name} connection test timed out")
        except Exception as e:
            logger.error(f"Notification channel {channel.name} connection test failed: {e}")
        return False

    async def close(self) -> None:
        """Close every channel."""
        for channel in self._channels.values():
            try:
                await channel.close()
            except Exception as e:
                logger.error(f"Error closing notification channel {channel.name}: {e}")
