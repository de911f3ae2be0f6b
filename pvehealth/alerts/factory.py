"""Convenience factory for wiring the alerting stack."""

from __future__ import annotations

import asyncio
import socket

from pvehealth.alerts.channels import (
    DiscordChannel,
    EmailChannel,
    NotificationChannel,
    SleepFn,
    SyslogChannel,
    WebhookChannel,
)
from pvehealth.alerts.dispatcher import AlertDispatcher
from pvehealth.alerts.maintenance import MaintenanceGate
from pvehealth.core.config import Settings
from pvehealth.core.executor import CommandExecutor
from pvehealth.state.base import AlertStateStore, Clock
from pvehealth.state.files import JsonAlertStateStore, JsonMaintenanceStore


def create_channels(settings: Settings) -> list[NotificationChannel]:
    """External channels enabled in configuration (syslog excluded)."""
    cfg = settings.channels
    channels: list[NotificationChannel] = []

    if cfg.discord.enabled:
        channels.append(DiscordChannel(cfg.discord))

    if cfg.webhook.enabled:
        channels.append(WebhookChannel(cfg.webhook))

    if cfg.email.enabled:
        channels.append(EmailChannel(cfg.email))

    return channels


def create_alert_stack(
    settings: Settings,
    executor: CommandExecutor,
    alert_store: AlertStateStore | None = None,
    gate: MaintenanceGate | None = None,
    clock: Clock | None = None,
    sleep: SleepFn = asyncio.sleep,
) -> AlertDispatcher:
    """Build a dispatcher from config, creating file-backed state if needed."""
    state_dir = settings.paths.state_dir
    if alert_store is None:
        alert_store = JsonAlertStateStore(
            state_dir,
            cooldown_minutes=settings.notify.cooldown_minutes,
            clock=clock,
        )
    if gate is None:
        gate = MaintenanceGate(JsonMaintenanceStore(state_dir), clock=clock)

    audit: NotificationChannel | None = None
    if settings.channels.syslog.enabled:
        audit = SyslogChannel(settings.channels.syslog, executor)

    return AlertDispatcher(
        store=alert_store,
        gate=gate,
        config=settings.notify,
        channels=create_channels(settings),
        audit_channel=audit,
        hostname=settings.notify.hostname or socket.gethostname(),
        clock=clock,
        sleep=sleep,
    )
