"""
Alert rules and rule engine.
"""

from .rules import (
    build_alert_notification,
    default_alert_rules,
    evaluate_condition,
    format_alert_message,
)
from .engine import AlertRuleEngine


__all__ = [
    "build_alert_notification",
    "default_alert_rules",
    "evaluate_condition",
    "format_alert_message",
    "AlertRuleEngine",
]
