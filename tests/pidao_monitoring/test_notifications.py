"""
Tests for notification channels and fan-out.

============================================================
TEST PRINCIPLES:
- One channel's failure never affects another
- Fan-out reports per-channel outcome and never raises
- Formatting is deterministic
============================================================
"""

import smtplib
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from pidao_monitoring.config import EmailConfig, SlackConfig
from pidao_monitoring.exceptions import NotificationDeliveryError
from pidao_monitoring.models import Notification, Severity
from pidao_monitoring.notifications import (
    EmailChannel,
    EmailFormatter,
    NotificationFanout,
    SlackChannel,
    SlackFormatter,
    format_metadata,
    format_value,
    severity_color,
)


def _notification(**overrides):
    data = {
        "title": "Alert: Low Network TPS",
        "message": "Throughput dropped",
        "severity": Severity.CRITICAL,
        "metadata": {"rule_id": "network-tps", "value": 400.0},
    }
    data.update(overrides)
    return Notification(**data)


# ============================================================
# FORMATTING
# ============================================================

class TestFormatting:
    """Tests for shared formatting helpers."""

    def test_format_value(self):
        assert format_value(400.0) == "400"
        assert format_value(0.05) == "0.05"
        assert format_value(1_000_000.0) == "1000000"
        assert format_value(7) == "7"

    def test_format_metadata(self):
        assert format_metadata(None) is None
        assert format_metadata({}) is None
        assert format_metadata({"b": 1, "a": 2}) == '{\n  "a": 2,\n  "b": 1\n}'

    def test_severity_color(self):
        assert severity_color(Severity.CRITICAL) == "#D32F2F"
        assert severity_color(Severity.INFO) == "#2196F3"


class TestSlackFormatter:
    """Tests for SlackFormatter."""

    def test_payload(self):
        payload = SlackFormatter.build_payload(_notification(), "#ops")

        assert payload["channel"] == "#ops"
        assert payload["text"] == "Alert: Low Network TPS"
        assert payload["attachments"] == [{"color": "#D32F2F"}]

        blocks = payload["blocks"]
        assert blocks[0]["type"] == "header"
        assert blocks[0]["text"]["text"] == ":rotating_light: Alert: Low Network TPS"
        assert blocks[1]["text"]["text"] == "Throughput dropped"
        assert "network-tps" in blocks[2]["text"]["text"]
        assert "CRITICAL" in blocks[-1]["elements"][0]["text"]

    def test_no_metadata_block_without_metadata(self):
        blocks = SlackFormatter.build_blocks(_notification(metadata=None))
        assert [b["type"] for b in blocks] == ["header", "section", "context"]


class TestEmailFormatter:
    """Tests for EmailFormatter."""

    def test_subject(self):
        assert EmailFormatter.subject(_notification()) == "[CRITICAL] Alert: Low Network TPS"

    def test_html_is_escaped(self):
        body = EmailFormatter.html_body(_notification(message="<b>x</b>\nnext"))

        assert "&lt;b&gt;x&lt;/b&gt;<br>next" in body
        assert "#D32F2F" in body

    def test_plain_body_includes_metadata(self):
        body = EmailFormatter.plain_body(_notification())
        assert body.startswith("Throughput dropped\n\n")
        assert '"rule_id": "network-tps"' in body


# ============================================================
# CHANNELS
# ============================================================

class TestSlackChannel:
    """Tests for SlackChannel."""

    def test_disabled_without_token(self):
        assert not SlackChannel(SlackConfig()).enabled
        assert SlackChannel(SlackConfig(token="xoxb-1")).enabled

    @pytest.mark.asyncio
    async def test_send_posts_to_default_channel(self):
        channel = SlackChannel(SlackConfig(token="xoxb-1", default_channel="#monitoring"))

        with patch.object(channel, "_api_call", AsyncMock(return_value={"ok": True})) as api:
            await channel.send(_notification())

        method, payload = api.await_args.args
        assert method == "chat.postMessage"
        assert payload["channel"] == "#monitoring"

    @pytest.mark.asyncio
    async def test_send_honours_channel_override(self):
        channel = SlackChannel(SlackConfig(token="xoxb-1"))

        with patch.object(channel, "_api_call", AsyncMock(return_value={"ok": True})) as api:
            await channel.send(_notification(channel="#incidents"))

        assert api.await_args.args[1]["channel"] == "#incidents"

    @pytest.mark.asyncio
    async def test_connection_test_failure_returns_false(self):
        channel = SlackChannel(SlackConfig(token="bad"))

        with patch.object(
            channel, "_api_call",
            AsyncMock(side_effect=NotificationDeliveryError("slack", "invalid_auth")),
        ):
            assert await channel.test_connection() is False


class TestEmailChannel:
    """Tests for EmailChannel."""

    def _config(self, **overrides):
        data = {
            "host": "smtp.example.com",
            "from_address": "monitor@example.com",
            "default_recipients": ["ops@example.com"],
        }
        data.update(overrides)
        return EmailConfig(**data)

    @pytest.mark.asyncio
    async def test_send_uses_default_recipients(self):
        channel = EmailChannel(self._config())
        channel._send_sync = MagicMock()

        await channel.send(_notification())

        msg, recipients = channel._send_sync.call_args.args
        assert recipients == ["ops@example.com"]
        assert msg["Subject"] == "[CRITICAL] Alert: Low Network TPS"
        assert msg["From"] == "monitor@example.com"

    @pytest.mark.asyncio
    async def test_explicit_recipients_win(self):
        channel = EmailChannel(self._config())
        channel._send_sync = MagicMock()

        await channel.send(_notification(recipients=["cto@example.com"]))

        assert channel._send_sync.call_args.args[1] == ["cto@example.com"]

    @pytest.mark.asyncio
    async def test_no_recipients_is_skipped(self):
        channel = EmailChannel(self._config(default_recipients=[]))
        channel._send_sync = MagicMock()

        await channel.send(_notification())

        channel._send_sync.assert_not_called()

    @pytest.mark.asyncio
    async def test_smtp_error_raises_delivery_error(self):
        channel = EmailChannel(self._config())
        channel._send_sync = MagicMock(side_effect=smtplib.SMTPException("relay denied"))

        with pytest.raises(NotificationDeliveryError):
            await channel.send(_notification())


# ============================================================
# FAN-OUT
# ============================================================

class TestNotificationFanout:
    """Tests for NotificationFanout."""

    @pytest.mark.asyncio
    async def test_partial_failure_is_isolated(self, channel_factory):
        slack = channel_factory("slack")
        email = channel_factory("email", fail=True)
        fanout = NotificationFanout([slack, email])

        results = await fanout.send(_notification())

        assert results == {"slack": True, "email": False}
        assert len(slack.sent) == 1
        assert fanout.sent_count == 1
        assert fanout.failed_count == 1

    @pytest.mark.asyncio
    async def test_disabled_channels_are_skipped(self, channel_factory):
        slack = channel_factory("slack")
        email = channel_factory("email", enabled=False)
        fanout = NotificationFanout([slack, email])

        assert await fanout.send(_notification()) == {"slack": True}
        assert email.sent == []

    @pytest.mark.asyncio
    async def test_no_available_channel(self, channel_factory):
        fanout = NotificationFanout([channel_factory("slack", enabled=False)])
        assert await fanout.send(_notification()) == {}

    @pytest.mark.asyncio
    async def test_slow_channel_times_out(self, channel_factory):
        slow = channel_factory("email", delay_seconds=1.0)
        fast = channel_factory("slack")
        fanout = NotificationFanout([slow, fast], timeout_seconds=0.05)

        results = await fanout.send(_notification())

        assert results == {"email": False, "slack": True}
        assert slow.sent == []

    @pytest.mark.asyncio
    async def test_channel_selection(self, channel_factory):
        slack = channel_factory("slack")
        email = channel_factory("email")
        fanout = NotificationFanout([slack, email])

        results = await fanout.send(_notification(), channels=["email", "pager"])

        assert results == {"email": True}
        assert slack.sent == []

    @pytest.mark.asyncio
    async def test_connection_tests(self, channel_factory):
        fanout = NotificationFanout([
            channel_factory("slack"),
            channel_factory("email", fail=True),
            channel_factory("sms", enabled=False),
        ])

        assert await fanout.test_connections() == {"slack": True, "email": False, "sms": False}

    @pytest.mark.asyncio
    async def test_close_closes_every_channel(self, channel_factory):
        channels = [channel_factory("slack"), channel_factory("email")]
        fanout = NotificationFanout(channels)

        await fanout.close()

        assert all(c.closed for c in channels)
