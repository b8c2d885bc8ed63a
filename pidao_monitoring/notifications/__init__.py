"""
Notification channels and fan-out.
"""

from .base import (
    NotificationChannel,
    SEVERITY_STYLES,
    format_metadata,
    format_value,
    severity_color,
    severity_emoji,
)
from .slack import SlackChannel, SlackFormatter
from .smtp import EmailChannel, EmailFormatter
from .fanout import NotificationFanout


__all__ = [
    "NotificationChannel",
    "SEVERITY_STYLES",
    "format_metadata",
    "format_value",
    "severity_color",
    "severity_emoji",
    "SlackChannel",
    "SlackFormatter",
    "EmailChannel",
    "EmailFormatter",
    "NotificationFanout",
]
