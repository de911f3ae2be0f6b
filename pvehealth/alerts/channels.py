"""Notification channels — Discord, JSON webhook, email and syslog delivery."""

from __future__ import annotations

import abc
import asyncio
import smtplib
from collections.abc import Awaitable, Callable
from email.message import EmailMessage
from email.utils import formatdate
from pathlib import Path

import aiohttp
import structlog
from pydantic import SecretStr

from pvehealth.alerts.formatters import SYSLOG_PRIORITY, render_line, render_text
from pvehealth.alerts.types import AlertMessage
from pvehealth.core.config import (
    DiscordChannelConfig,
    EmailChannelConfig,
    SyslogChannelConfig,
    WebhookChannelConfig,
)
from pvehealth.core.exceptions import CommandError, DeliveryError
from pvehealth.core.executor import CommandExecutor
from pvehealth.core.types import Severity

logger = structlog.get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]

# Discord embed colours keyed by severity.
_DISCORD_COLORS: dict[Severity, int] = {
    Severity.OK: 0x2ECC71,        # green
    Severity.INFO: 0x3498DB,      # blue
    Severity.WARNING: 0xF39C12,   # orange
    Severity.CRITICAL: 0xE74C3C,  # red
}


def resolve_secret(value: SecretStr, secret_file: Path | None) -> str:
    """Prefer a non-empty secret file over the inline value."""
    if secret_file is not None:
        try:
            content = secret_file.read_text().strip()
        except OSError as exc:
            logger.warning("secret_file_unreadable", path=str(secret_file), error=str(exc))
        else:
            if content:
                return content
    return value.get_secret_value()


class NotificationChannel(abc.ABC):
    """Base class for alert delivery channels."""

    name: str = "channel"

    @abc.abstractmethod
    async def send(self, msg: AlertMessage) -> None:
        """Deliver one message.

        Raises:
            DeliveryError: The channel could not deliver the message.
        """

    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""


async def deliver_with_retry(
    channel: NotificationChannel,
    msg: AlertMessage,
    attempts: int = 3,
    delay_secs: float = 5.0,
    sleep: SleepFn = asyncio.sleep,
) -> bool:
    """Try ``channel.send`` up to ``attempts`` times with a fixed delay.

    Returns True on success. A final failure is logged and dropped.
    """
    for attempt in range(1, attempts + 1):
        try:
            await channel.send(msg)
            return True
        except DeliveryError as exc:
            logger.warning(
                "channel_delivery_failed",
                channel=channel.name,
                key=msg.key,
                attempt=attempt,
                attempts=attempts,
                error=str(exc),
            )
        if attempt < attempts:
            await sleep(delay_secs)
    logger.error("channel_delivery_dropped", channel=channel.name, key=msg.key)
    return False


class _HttpChannel(NotificationChannel):
    """Shared aiohttp session handling for webhook-style channels."""

    def __init__(self, timeout_secs: float) -> None:
        self._timeout = aiohttp.ClientTimeout(total=timeout_secs)
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def _post(self, url: str, payload: dict, headers: dict[str, str] | None = None) -> None:
        if not url:
            raise DeliveryError(f"{self.name}: no URL configured")
        try:
            session = self._get_session()
            async with session.post(url, json=payload, headers=headers) as resp:
                if 200 <= resp.status < 300:
                    return
                body = await resp.text()
                raise DeliveryError(f"{self.name}: HTTP {resp.status}: {body[:200]}")
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise DeliveryError(f"{self.name}: {exc!r}") from exc

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None


class DiscordChannel(_HttpChannel):
    """Delivers alerts via a Discord webhook with colour-coded embeds."""

    name = "discord"

    def __init__(self, config: DiscordChannelConfig) -> None:
        super().__init__(config.timeout_secs)
        self._config = config

    def build_payload(self, msg: AlertMessage) -> dict:
        embed_fields = [
            {"name": k, "value": v, "inline": True}
            for k, v in msg.fields.items()
        ]
        embed: dict = {
            "title": f"[{msg.severity.label}] {msg.title}",
            "color": _DISCORD_COLORS.get(msg.severity, 0x95A5A6),
            "footer": {"text": f"{msg.hostname} · {msg.key}" if msg.hostname else msg.key},
        }
        if msg.body:
            embed["description"] = msg.body
        if embed_fields:
            embed["fields"] = embed_fields
        return {"username": self._config.username, "embeds": [embed]}

    async def send(self, msg: AlertMessage) -> None:
        url = resolve_secret(self._config.webhook_url, self._config.secret_file)
        await self._post(url, self.build_payload(msg))


class WebhookChannel(_HttpChannel):
    """Posts a flat JSON document to an arbitrary HTTP endpoint."""

    name = "webhook"

    def __init__(self, config: WebhookChannelConfig) -> None:
        super().__init__(config.timeout_secs)
        self._config = config

    @staticmethod
    def build_payload(msg: AlertMessage) -> dict:
        return {
            "key": msg.key,
            "topic": msg.topic.value,
            "severity": msg.severity.name.lower(),
            "host": msg.hostname,
            "title": msg.title,
            "body": msg.body,
            "text": render_line(msg),
            "fields": msg.fields,
            "timestamp": msg.timestamp,
        }

    async def send(self, msg: AlertMessage) -> None:
        url = resolve_secret(self._config.url, self._config.secret_file)
        await self._post(url, self.build_payload(msg), headers=self._config.headers or None)


class EmailChannel(NotificationChannel):
    """Sends plain-text mail over SMTP; the blocking client runs in a thread."""

    name = "email"

    def __init__(self, config: EmailChannelConfig) -> None:
        self._config = config

    def build_message(self, msg: AlertMessage) -> EmailMessage:
        email = EmailMessage()
        email["From"] = self._config.sender
        email["To"] = ", ".join(self._config.recipients)
        email["Subject"] = f"[Proxmox Alert] {msg.severity.label} - {msg.hostname or msg.key}"
        email["Date"] = formatdate(msg.timestamp, localtime=True)
        email.set_content(render_text(msg) + "\n\n--\npvehealth\n")
        return email

    def _send_sync(self, email: EmailMessage) -> None:
        cfg = self._config
        with smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=cfg.timeout_secs) as server:
            if cfg.use_tls:
                server.starttls()
            password = cfg.password.get_secret_value()
            if cfg.username and password:
                server.login(cfg.username, password)
            server.send_message(email)

    async def send(self, msg: AlertMessage) -> None:
        if not self._config.smtp_host or not self._config.recipients:
            raise DeliveryError("email: smtp_host and recipients are required")
        email = self.build_message(msg)
        try:
            await asyncio.to_thread(self._send_sync, email)
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"email: {exc!r}") from exc


class SyslogChannel(NotificationChannel):
    """Writes to the local system log with the ``logger`` command."""

    name = "syslog"

    def __init__(self, config: SyslogChannelConfig, executor: CommandExecutor) -> None:
        self._config = config
        self._executor = executor

    def build_argv(self, msg: AlertMessage) -> list[str]:
        priority = SYSLOG_PRIORITY.get(msg.severity, "info")
        text = f"{msg.key}: {msg.title}"
        return ["logger", "-t", self._config.tag, "-p", f"{self._config.facility}.{priority}", text]

    async def send(self, msg: AlertMessage) -> None:
        try:
            result = await self._executor.run(self.build_argv(msg), timeout=10)
        except CommandError as exc:
            raise DeliveryError(f"syslog: {exc}") from exc
        if not result.ok:
            raise DeliveryError(f"syslog: logger exited {result.returncode}")
