"""Tests for notification channels — HTTP mocking, SMTP, syslog argv, secrets."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest
from pydantic import SecretStr

from pvehealth.alerts.channels import (
    DiscordChannel,
    EmailChannel,
    SyslogChannel,
    WebhookChannel,
    deliver_with_retry,
    resolve_secret,
)
from pvehealth.alerts.types import AlertMessage
from pvehealth.core.config import (
    DiscordChannelConfig,
    EmailChannelConfig,
    SyslogChannelConfig,
    WebhookChannelConfig,
)
from pvehealth.core.exceptions import CommandNotFoundError, DeliveryError
from pvehealth.core.types import Severity, Topic


# ── Helpers ─────────────────────────────────────────────────────


def _msg(**kw: object) -> AlertMessage:
    defaults: dict[str, object] = {
        "severity": Severity.WARNING,
        "key": "disk-root",
        "title": "Disk root (/) usage high: 85%",
        "body": "",
        "topic": Topic.DISK,
        "hostname": "pve1",
        "fields": {"mount": "/"},
        "timestamp": 1_768_478_400.0,
    }
    defaults.update(kw)
    return AlertMessage(**defaults)  # type: ignore[arg-type]


def _mock_response(status: int = 204, text: str = "") -> AsyncMock:
    resp = AsyncMock()
    resp.status = status
    resp.text = AsyncMock(return_value=text)
    resp.__aenter__ = AsyncMock(return_value=resp)
    resp.__aexit__ = AsyncMock(return_value=False)
    return resp


def _session(resp: AsyncMock | None = None, exc: Exception | None = None) -> MagicMock:
    session = MagicMock()
    if exc is not None:
        session.post = MagicMock(side_effect=exc)
    else:
        session.post = MagicMock(return_value=resp or _mock_response())
    session.closed = False
    return session


# ── Discord ────────────────────────────────────────────────────


class TestDiscordChannel:
    def _channel(self, **kw: object) -> DiscordChannel:
        defaults: dict[str, object] = {
            "enabled": True,
            "webhook_url": SecretStr("https://discord.com/api/webhooks/fake"),
        }
        defaults.update(kw)
        return DiscordChannel(DiscordChannelConfig(**defaults))  # type: ignore[arg-type]

    async def test_send_success(self) -> None:
        ch = self._channel()
        ch._session = _session()
        await ch.send(_msg())
        url = ch._session.post.call_args[0][0]
        payload = ch._session.post.call_args[1]["json"]
        assert url == "https://discord.com/api/webhooks/fake"
        embed = payload["embeds"][0]
        assert "WARNING" in embed["title"]
        assert embed["color"] == 0xF39C12
        assert embed["footer"]["text"] == "pve1 · disk-root"
        assert embed["fields"] == [{"name": "mount", "value": "/", "inline": True}]

    async def test_http_error_raises(self) -> None:
        ch = self._channel()
        ch._session = _session(_mock_response(400, "bad request"))
        with pytest.raises(DeliveryError, match="HTTP 400"):
            await ch.send(_msg())

    async def test_client_error_raises(self) -> None:
        ch = self._channel()
        ch._session = _session(exc=aiohttp.ClientConnectionError("refused"))
        with pytest.raises(DeliveryError):
            await ch.send(_msg())

    async def test_no_url(self) -> None:
        ch = self._channel(webhook_url=SecretStr(""))
        with pytest.raises(DeliveryError, match="no URL"):
            await ch.send(_msg())

    async def test_secret_file_wins(self, tmp_path: Path) -> None:
        secret = tmp_path / "discord.url"
        secret.write_text("https://discord.com/api/webhooks/from-file\n")
        ch = self._channel(secret_file=secret)
        ch._session = _session()
        await ch.send(_msg())
        assert ch._session.post.call_args[0][0].endswith("from-file")

    async def test_close(self) -> None:
        ch = self._channel()
        session = _session()
        session.close = AsyncMock()
        ch._session = session
        await ch.close()
        session.close.assert_awaited_once()
        assert ch._session is None


# ── Webhook ────────────────────────────────────────────────────


class TestWebhookChannel:
    async def test_payload_and_headers(self) -> None:
        ch = WebhookChannel(WebhookChannelConfig(
            enabled=True,
            url=SecretStr("https://hooks.example/pve"),
            headers={"Authorization": "Bearer x"},
        ))
        ch._session = _session(_mock_response(200))
        await ch.send(_msg())
        kwargs = ch._session.post.call_args[1]
        assert kwargs["headers"] == {"Authorization": "Bearer x"}
        assert kwargs["json"]["severity"] == "warning"
        assert kwargs["json"]["topic"] == "disk"
        assert kwargs["json"]["key"] == "disk-root"

    def test_build_payload_text(self) -> None:
        payload = WebhookChannel.build_payload(_msg())
        assert payload["text"].endswith("Disk root (/) usage high: 85%")
        assert "[pve1]" in payload["text"]


# ── Email ──────────────────────────────────────────────────────


class TestEmailChannel:
    def _config(self, **kw: object) -> EmailChannelConfig:
        defaults: dict[str, object] = {
            "enabled": True,
            "smtp_host": "mail.example",
            "recipients": ["ops@example.com", "oncall@example.com"],
            "sender": "pve1@example.com",
        }
        defaults.update(kw)
        return EmailChannelConfig(**defaults)  # type: ignore[arg-type]

    def test_build_message(self) -> None:
        email = EmailChannel(self._config()).build_message(_msg())
        assert email["To"] == "ops@example.com, oncall@example.com"
        assert email["Subject"].startswith("[Proxmox Alert]")
        assert "pve1" in email["Subject"]
        assert "Disk root (/) usage high: 85%" in email.get_content()

    async def test_send_uses_smtp(self) -> None:
        ch = EmailChannel(self._config(use_tls=True, username="u", password=SecretStr("p")))
        with patch("pvehealth.alerts.channels.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            await ch.send(_msg())
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("u", "p")
        server.send_message.assert_called_once()

    async def test_smtp_failure_raises(self) -> None:
        ch = EmailChannel(self._config())
        with patch("pvehealth.alerts.channels.smtplib.SMTP", side_effect=OSError("refused")):
            with pytest.raises(DeliveryError):
                await ch.send(_msg())

    async def test_missing_recipients(self) -> None:
        ch = EmailChannel(self._config(recipients=[]))
        with pytest.raises(DeliveryError):
            await ch.send(_msg())


# ── Syslog ─────────────────────────────────────────────────────


class TestSyslogChannel:
    def test_argv(self, executor) -> None:
        ch = SyslogChannel(SyslogChannelConfig(tag="pvehealth", facility="daemon"), executor)
        argv = ch.build_argv(_msg(severity=Severity.CRITICAL))
        assert argv == [
            "logger", "-t", "pvehealth", "-p", "daemon.err",
            "disk-root: Disk root (/) usage high: 85%",
        ]

    async def test_send_runs_logger(self, executor) -> None:
        ch = SyslogChannel(SyslogChannelConfig(), executor)
        await ch.send(_msg())
        assert executor.calls[0][:2] == ["logger", "-t"]

    async def test_logger_failure(self, executor) -> None:
        executor.on("logger", returncode=1)
        ch = SyslogChannel(SyslogChannelConfig(), executor)
        with pytest.raises(DeliveryError):
            await ch.send(_msg())

    async def test_logger_missing(self, executor) -> None:
        executor.raise_on("logger", exc=CommandNotFoundError("logger"))
        ch = SyslogChannel(SyslogChannelConfig(), executor)
        with pytest.raises(DeliveryError):
            await ch.send(_msg())


# ── Retry helper ───────────────────────────────────────────────


class TestDeliverWithRetry:
    async def test_attempt_count(self, make_channel, sleep) -> None:
        ch = make_channel("flaky", failures=1)
        assert await deliver_with_retry(ch, _msg(), attempts=3, delay_secs=2, sleep=sleep)
        assert ch.attempts == 2
        assert sleep.calls == [2]

    async def test_no_sleep_after_last_attempt(self, make_channel, sleep) -> None:
        ch = make_channel("dead", failures=10)
        assert not await deliver_with_retry(ch, _msg(), attempts=2, delay_secs=1, sleep=sleep)
        assert sleep.calls == [1]


class TestResolveSecret:
    def test_inline(self) -> None:
        assert resolve_secret(SecretStr("abc"), None) == "abc"

    def test_missing_file_falls_back(self, tmp_path: Path) -> None:
        assert resolve_secret(SecretStr("abc"), tmp_path / "nope") == "abc"

    def test_empty_file_falls_back(self, tmp_path: Path) -> None:
        path = tmp_path / "empty"
        path.write_text("\n")
        assert resolve_secret(SecretStr("abc"), path) == "abc"
