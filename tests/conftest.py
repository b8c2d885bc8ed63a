"""
Shared fixtures for the monitoring test suite.

============================================================
PURPOSE
============================================================
- A frozen MockClock so cooldowns, schedules and TTLs are
  deterministic
- An in-memory TTL store bound to that clock
- A recording notification channel standing in for Slack/email

============================================================
"""

import asyncio
from datetime import datetime, timezone
from typing import List

import pytest

from pidao_monitoring.clock import MockClock
from pidao_monitoring.exceptions import NotificationDeliveryError
from pidao_monitoring.models import Notification
from pidao_monitoring.notifications import NotificationChannel, NotificationFanout
from pidao_monitoring.store import MemoryTTLStore


START_TIME = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class RecordingChannel(NotificationChannel):
    """Notification channel that records what it is asked to send."""

    def __init__(
        self,
        name: str = "slack",
        enabled: bool = True,
        fail: bool = False,
        delay_seconds: float = 0.0,
    ):
        self.name = name
        self._enabled = enabled
        self.fail = fail
        self.delay_seconds = delay_seconds
        self.sent: List[Notification] = []
        self.closed = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def send(self, notification: Notification) -> None:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.fail:
            raise NotificationDeliveryError(self.name, "simulated outage")
        self.sent.append(notification)

    async def test_connection(self) -> bool:
        return not self.fail

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock():
    """Mock clock frozen at a fixed UTC instant."""
    return MockClock(START_TIME)


@pytest.fixture
def store(clock):
    """In-memory TTL store driven by the mock clock."""
    return MemoryTTLStore(clock=clock)


@pytest.fixture
def channel_factory():
    """Build extra recording channels."""
    return RecordingChannel


@pytest.fixture
def channel():
    """Recording channel registered as "slack"."""
    return RecordingChannel("slack")


@pytest.fixture
def fanout(channel):
    """Fan-out with a single recording channel."""
    return NotificationFanout([channel], timeout_seconds=1.0)
