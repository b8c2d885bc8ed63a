"""
PiDAO Monitoring - Audit Log.

============================================================
PURPOSE
============================================================
Append-only audit trail of security-relevant and governance
events, retained for 90 days in the TTL store.

PRINCIPLES:
- Entries are write-once; the timestamp is assigned on append
- Security, emergency and failed entries notify operators
- Queries enumerate keys and filter client-side (retention
  bounds the result size)

KEY LAYOUT:
    audit:{type}:{epoch_ms}:{suffix}

============================================================
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from .clock import ClockProtocol, get_clock
from .models import AuditLogEntry, AuditLogType, AuditStatus, Notification, Severity
from .notifications import NotificationFanout
from .store import TTLStore


logger = logging.getLogger(__name__)

AUDIT_KEY_PREFIX = "audit"
AUDIT_TTL_SECONDS = 90 * 24 * 60 * 60

_ALERTING_TYPES = {AuditLogType.SECURITY, AuditLogType.EMERGENCY_ACTION}


class AuditLog:
    """
    Audit trail backed by the TTL store.

    Usage:
        audit = AuditLog(store, fanout)
        await audit.append(AuditLogType.VOTE, "CAST_VOTE", user_id="u1", details={...})
        entries = await audit.list(type=AuditLogType.VOTE)
    """

    def __init__(
        self,
        store: TTLStore,
        fanout: Optional[NotificationFanout] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        """Initialize audit log."""
        self._store = store
        self._fanout = fanout
        self._clock = clock or get_clock()

    # --------------------------------------------------------
    # WRITE
    # --------------------------------------------------------

    async def append(
        self,
        type: AuditLogType,
        action: str,
        user_id: str,
        details: Optional[Dict[str, Any]] = None,
        status: AuditStatus = AuditStatus.SUCCESS,
        error_message: Optional[str] = None,
        ip_address: Optional[str] = None,
        notify: bool = True,
    ) -> AuditLogEntry:
        """
        Append an audit entry.

        Args:
            type: Entry type
            action: Action name (e.g. "ALERT_TRIGGERED")
            user_id: Acting user ("system" for monitor-originated entries)
            details: Arbitrary JSON-serializable payload
            status: Outcome
            error_message: Optional error text
            ip_address: Optional origin address
            notify: Send the synthesized operator notification when the
                entry qualifies; callers that notify on their own pass False

        Returns:
            The persisted entry
        """
        entry = AuditLogEntry(
            type=AuditLogType(type),
            action=action,
            user_id=user_id,
            timestamp=self._clock.now(),
            status=AuditStatus(status),
            details=dict(details or {}),
            error_message=error_message,
            ip_address=ip_address,
        )

        key = self._make_key(entry)
        stored = await self._store.set(key, entry.to_dict(), AUDIT_TTL_SECONDS)
        if not stored:
            logger.error(f"Audit entry not persisted: {entry.type.value}/{entry.action}")

        logger.info(
            f"Audit [{entry.type.value}] {entry.action} by {entry.user_id}: {entry.status.value}"
        )

        if notify and self.requires_notification(entry):
            await self._notify(entry)

        return entry

    def _make_key(self, entry: AuditLogEntry) -> str:
        ms = self._clock.epoch_ms(entry.timestamp)
        return f"{AUDIT_KEY_PREFIX}:{entry.type.value}:{ms}:{uuid.uuid4().hex[:8]}"

    @staticmethod
    def requires_notification(entry: AuditLogEntry) -> bool:
        """Security/emergency entries and failures notify operators."""
        return entry.type in _ALERTING_TYPES or entry.is_failure

    @staticmethod
    def notification_severity(entry: AuditLogEntry) -> Severity:
        """Escalate emergencies and failed security events to critical."""
        if entry.type == AuditLogType.EMERGENCY_ACTION:
            return Severity.CRITICAL
        if entry.type == AuditLogType.SECURITY and entry.is_failure:
            return Severity.CRITICAL
        return Severity.ERROR

    async def _notify(self, entry: AuditLogEntry) -> None:
        if self._fanout is None:
            return

        type_label = entry.type.value.replace("_", " ").title()
        message = f"Action {entry.action} by {entry.user_id} finished with status {entry.status.value}"
        if entry.error_message:
            message += f"\nError: {entry.error_message}"

        await self._fanout.send(Notification(
            title=f"Audit Alert: {type_label}",
            message=message,
            severity=self.notification_severity(entry),
            metadata=entry.to_dict(),
        ))

    # --------------------------------------------------------
    # QUERY
    # --------------------------------------------------------

    async def list(
        self,
        type: Optional[AuditLogType] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        user_id: Optional[str] = None,
    ) -> List[AuditLogEntry]:
        """
        List audit entries, newest first.

        Args:
            type: Restrict to one entry type
            start: Inclusive lower bound on timestamp
            end: Inclusive upper bound on timestamp
            user_id: Restrict to one user
        """
        if type is not None:
            pattern = f"{AUDIT_KEY_PREFIX}:{AuditLogType(type).value}:*"
        else:
            pattern = f"{AUDIT_KEY_PREFIX}:*"

        keys = await self._store.keys(pattern)
        values = await self._store.get_many(keys)

        entries: List[AuditLogEntry] = []
        for key, data in values.items():
            try:
                entry = AuditLogEntry.from_dict(data)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed audit entry {key}: {e}")
                continue

            if start and entry.timestamp < start:
                continue
            if end and entry.timestamp > end:
                continue
            if user_id and entry.user_id != user_id:
                continue
            entries.append(entry)

        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries

    async def security_events(self, window_hours: float = 24) -> List[AuditLogEntry]:
        """Security entries from the last `window_hours` hours."""
        start = self._clock.now() - timedelta(hours=window_hours)
        return await self.list(type=AuditLogType.SECURITY, start=start)

    async def user_activity(self, user_id: str, window_days: float = 30) -> List[AuditLogEntry]:
        """One user's entries from the last `window_days` days."""
        start = self._clock.now() - timedelta(days=window_days)
        return await self.list(start=start, user_id=user_id)
