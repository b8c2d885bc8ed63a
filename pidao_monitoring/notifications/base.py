"""
Notification Channel Interface.

============================================================
PURPOSE
============================================================
Common interface and presentation helpers for notification
channels (Slack, email).

PRINCIPLES:
- Channels raise NotificationDeliveryError on failure;
  the fan-out isolates them
- Severity maps to an accent colour and an emoji marker
- Metadata is rendered as a JSON detail block

============================================================
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..models import Notification, Severity


# ============================================================
# SEVERITY PRESENTATION
# ============================================================

SEVERITY_STYLES: Dict[Severity, Dict[str, str]] = {
    Severity.INFO: {"color": "#2196F3", "emoji": ":information_source:"},
    Severity.WARNING: {"color": "#FFC107", "emoji": ":warning:"},
    Severity.ERROR: {"color": "#F44336", "emoji": ":x:"},
    Severity.CRITICAL: {"color": "#D32F2F", "emoji": ":rotating_light:"},
}


def severity_color(severity: Severity) -> str:
    return SEVERITY_STYLES.get(severity, SEVERITY_STYLES[Severity.INFO])["color"]


def severity_emoji(severity: Severity) -> str:
    return SEVERITY_STYLES.get(severity, SEVERITY_STYLES[Severity.INFO])["emoji"]


def format_metadata(metadata: Optional[Dict[str, Any]]) -> Optional[str]:
    """Serialize metadata as pretty JSON (None if empty)."""
    if not metadata:
        return None
    return json.dumps(metadata, indent=2, sort_keys=True, default=str)


def format_value(value: Any) -> str:
    """Render numbers compactly ("400" rather than "400.0")."""
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return f"{value:.6g}"
    return str(value)


# ============================================================
# CHANNEL INTERFACE
# ============================================================

class NotificationChannel(ABC):
    """Abstract notification channel."""

    name: str = "channel"

    @property
    @abstractmethod
    def enabled(self) -> bool:
        """True when the channel is configured."""
        pass

    @abstractmethod
    async def send(self, notification: Notification) -> None:
        """
        Deliver a notification.

        Raises:
            NotificationDeliveryError: If delivery fails
        """
        pass

    @abstractmethod
    async def test_connection(self) -> bool:
        """Verify channel reachability."""
        pass

    async def close(self) -> None:
        """Release channel resources."""
        pass
