"""
Alert Rule Engine.

============================================================
PURPOSE
============================================================
Holds user-configurable threshold rules and evaluates each
new metrics snapshot against them.

PRINCIPLES:
- Cooldown is the only de-duplication mechanism
- last_triggered is mutated under the rule's own lock
- A failing rule never prevents evaluation of the others
- Every firing is audited and notified exactly once

============================================================
"""

import asyncio
from dataclasses import fields
import logging
from typing import Any, Dict, List, Optional

from ..audit import AuditLog
from ..clock import ClockProtocol, get_clock
from ..exceptions import RuleConfigurationError, RuleNotFoundError
from ..models import (
    AlertEvent,
    AlertRule,
    AuditLogType,
    AuditStatus,
    MetricsSnapshot,
    split_metric_path,
)
from ..notifications import NotificationFanout
from ..scheduler import KeyedLock
from .rules import build_alert_notification, evaluate_condition


logger = logging.getLogger(__name__)

_IMMUTABLE_FIELDS = {"id", "last_triggered"}
_RULE_FIELDS = {f.name for f in fields(AlertRule)}


class AlertRuleEngine:
    """
    Evaluates alert rules against metrics snapshots.

    Usage:
        engine = AlertRuleEngine(audit, fanout)
        engine.add_rule(AlertRule(...))
        events = await engine.evaluate(snapshot)
    """

    def __init__(
        self,
        audit: AuditLog,
        fanout: NotificationFanout,
        clock: Optional[ClockProtocol] = None,
        rules: Optional[List[AlertRule]] = None,
    ):
        """Initialize rule engine."""
        self._audit = audit
        self._fanout = fanout
        self._clock = clock or get_clock()
        self._rules: Dict[str, AlertRule] = {}
        self._locks = KeyedLock()
        self.fired_count = 0

        for rule in rules or []:
            self.add_rule(rule)

    # --------------------------------------------------------
    # RULE CRUD
    # --------------------------------------------------------

    @staticmethod
    def _validate(rule: AlertRule) -> None:
        if not rule.id:
            raise RuleConfigurationError("<empty>", "rule id is required")
        if split_metric_path(rule.metric) is None:
            raise RuleConfigurationError(
                rule.id, f"metric must be a dotted 'group.field' path, got {rule.metric!r}"
            )
        if rule.cooldown_minutes < 0:
            raise RuleConfigurationError(rule.id, "cooldown_minutes must be >= 0")

    def add_rule(self, rule: AlertRule) -> AlertRule:
        """
        Register a rule.

        Raises:
            RuleConfigurationError: Duplicate id or malformed metric path
        """
        self._validate(rule)
        if rule.id in self._rules:
            raise RuleConfigurationError(rule.id, "a rule with this id already exists")
        self._rules[rule.id] = rule
        logger.info(f"Alert rule added: {rule.id} ({rule.metric} {rule.operator.value} {rule.threshold})")
        return rule

    async def update_rule(self, rule_id: str, **changes: Any) -> AlertRule:
        """
        Update fields of a rule.

        id and last_triggered cannot be changed.

        Raises:
            RuleNotFoundError: Unknown rule id
            RuleConfigurationError: Invalid field or value
        """
        rule = self.get_rule(rule_id)

        forbidden = _IMMUTABLE_FIELDS.intersection(changes)
        if forbidden:
            raise RuleConfigurationError(rule_id, f"cannot change {', '.join(sorted(forbidden))}")
        unknown = [name for name in changes if name not in _RULE_FIELDS]
        if unknown:
            raise RuleConfigurationError(rule_id, f"unknown field(s): {', '.join(unknown)}")

        async with self._locks.acquire(rule_id):
            merged = AlertRule.from_dict({**rule.to_dict(), **self._serializable(changes)})
            self._validate(merged)
            for name in changes:
                setattr(rule, name, getattr(merged, name))

        logger.info(f"Alert rule updated: {rule_id} ({', '.join(sorted(changes))})")
        return rule

    @staticmethod
    def _serializable(changes: Dict[str, Any]) -> Dict[str, Any]:
        return {
            name: value.value if hasattr(value, "value") else value
            for name, value in changes.items()
        }

    def delete_rule(self, rule_id: str) -> None:
        """
        Remove a rule.

        Raises:
            RuleNotFoundError: Unknown rule id
        """
        if rule_id not in self._rules:
            raise RuleNotFoundError(rule_id)
        del self._rules[rule_id]
        self._locks.discard(rule_id)
        logger.info(f"Alert rule deleted: {rule_id}")

    def get_rule(self, rule_id: str) -> AlertRule:
        """
        Get a rule by id.

        Raises:
            RuleNotFoundError: Unknown rule id
        """
        rule = self._rules.get(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        return rule

    def list_rules(self) -> List[AlertRule]:
        return list(self._rules.values())

    # --------------------------------------------------------
    # EVALUATION
    # --------------------------------------------------------

    async def evaluate(self, snapshot: MetricsSnapshot) -> List[AlertEvent]:
        """
        Evaluate every enabled rule against a snapshot.

        Returns:
            Events for the rules that fired
        """
        rules = [rule for rule in self._rules.values() if rule.enabled]
        results = await asyncio.gather(
            *(self._evaluate_rule(rule, snapshot) for rule in rules),
            return_exceptions=True,
        )

        events: List[AlertEvent] = []
        for rule, result in zip(rules, results):
            if isinstance(result, Exception):
                logger.error(f"Error evaluating rule {rule.id}: {result}")
            elif result is not None:
                events.append(result)
        return events

    async def __call__(self, snapshot: MetricsSnapshot) -> List[AlertEvent]:
        """Snapshot listener entry point."""
        return await self.evaluate(snapshot)

    async def _evaluate_rule(self, rule: AlertRule, snapshot: MetricsSnapshot) -> Optional[AlertEvent]:
        value = evaluate_condition(rule, snapshot)
        if value is None:
            return None

        async with self._locks.acquire(rule.id):
            now = self._clock.now()
            if not rule.check_cooldown(now):
                logger.debug(f"Rule {rule.id} breached but in cooldown")
                return None
            rule.last_triggered = now

        event = AlertEvent(
            rule_id=rule.id,
            rule_name=rule.name,
            metric=rule.metric,
            value=value,
            threshold=rule.threshold,
            severity=rule.severity,
            timestamp=now,
        )
        self.fired_count += 1
        logger.info(
            f"Alert fired: {rule.id} ({rule.metric}={value} {rule.operator.value} {rule.threshold})"
        )

        await self._audit.append(
            AuditLogType.SECURITY,
            "ALERT_TRIGGERED",
            user_id="system",
            details={
                "rule_id": rule.id,
                "timestamp": event.timestamp.isoformat(),
                "value": value,
                "threshold": rule.threshold,
                "severity": rule.severity.value,
            },
            status=AuditStatus.SUCCESS,
            notify=False,
        )
        await self._fanout.send(
            build_alert_notification(rule, value),
            channels=rule.notification_channels,
        )
        return event
