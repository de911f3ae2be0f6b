"""Synchronous entry points used by the scripts and by cron/systemd units.

Each wrapper loads settings, configures logging, wires the runtime and drives
the async core with ``asyncio.run``. The ``async_*`` cores take a prebuilt
:class:`Runtime` so they can be exercised with in-memory stores and fakes.

Usage::

    from pvehealth import agent

    issues = agent.run_all_health_checks()
    agent.enable_maintenance("2h", "kernel upgrade")
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from pvehealth.alerts.dispatcher import AlertDispatcher
from pvehealth.alerts.factory import create_alert_stack
from pvehealth.alerts.maintenance import MaintenanceGate, parse_duration
from pvehealth.alerts.summary import send_alert_summary as _send_alert_summary
from pvehealth.alerts.types import Decision
from pvehealth.automation.engine import AutomationEngine
from pvehealth.checks.base import CheckContext
from pvehealth.checks.engine import CheckEngine
from pvehealth.checks.probe import HostProbe
from pvehealth.core.config import Settings, load_settings
from pvehealth.core.exceptions import ConfigurationError, PveHealthError
from pvehealth.core.executor import CommandExecutor, SubprocessExecutor
from pvehealth.core.logging import setup_logging
from pvehealth.core.types import AutomationTaskResult, Severity, Topic
from pvehealth.state.base import AlertStateStore, BaselineStore, Clock
from pvehealth.state.files import JsonBaselineStore
from pvehealth.state.lock import RunLock

logger = structlog.get_logger(__name__)

EX_CONFIG = 78
MAINTENANCE_KEY = "maintenance"
MANUAL_KEY = "manual"


@dataclass
class Runtime:
    """The wired object graph for one invocation."""

    settings: Settings
    dispatcher: AlertDispatcher
    executor: CommandExecutor
    probe: HostProbe
    baselines: BaselineStore

    @property
    def gate(self) -> MaintenanceGate:
        return self.dispatcher.gate

    def check_engine(self, use_lock: bool = True) -> CheckEngine:
        ctx = CheckContext(
            settings=self.settings,
            dispatcher=self.dispatcher,
            executor=self.executor,
            probe=self.probe,
            baselines=self.baselines,
        )
        lock = RunLock(self.settings.paths.lock_file) if use_lock else None
        return CheckEngine(ctx, lock=lock)

    def automation_engine(self) -> AutomationEngine:
        return AutomationEngine(
            self.settings,
            self.dispatcher,
            self.executor,
            probe=self.probe,
        )

    async def close(self) -> None:
        await self.dispatcher.close()


def build_runtime(
    settings: Settings,
    executor: CommandExecutor | None = None,
    probe: HostProbe | None = None,
    alert_store: AlertStateStore | None = None,
    baselines: BaselineStore | None = None,
    gate: MaintenanceGate | None = None,
    clock: Clock | None = None,
) -> Runtime:
    executor = executor or SubprocessExecutor()
    dispatcher = create_alert_stack(
        settings, executor, alert_store=alert_store, gate=gate, clock=clock
    )
    return Runtime(
        settings=settings,
        dispatcher=dispatcher,
        executor=executor,
        probe=probe or HostProbe(),
        baselines=baselines or JsonBaselineStore(settings.paths.state_dir, clock=clock),
    )


def bootstrap(config_path: str | Path | None = None) -> Settings:
    """Load settings and configure logging from them."""
    settings = load_settings(config_path)
    setup_logging(settings.logging, log_dir=settings.paths.log_dir)
    return settings


def report_configuration_error(exc: ConfigurationError) -> int:
    """Log a fatal config error, try to reach syslog, return EX_CONFIG."""
    setup_logging()
    logger.critical("configuration_error", error=str(exc))
    argv = ["logger", "-t", "pvehealth", "-p", "user.crit", f"configuration error: {exc}"]
    try:
        asyncio.run(SubprocessExecutor().run(argv, timeout=5))
    except (PveHealthError, OSError) as syslog_exc:
        logger.warning("syslog_unavailable", error=str(syslog_exc))
    return EX_CONFIG


# ── Async cores ──────────────────────────────────────────────────


async def async_run_all_health_checks(runtime: Runtime, use_lock: bool = True) -> int:
    try:
        return await runtime.check_engine(use_lock=use_lock).run_all_health_checks()
    finally:
        await runtime.close()


async def async_run_automation_task(
    runtime: Runtime,
    task_name: str,
    dry_run: bool = False,
    params: Mapping[str, Any] | None = None,
) -> AutomationTaskResult:
    try:
        return await runtime.automation_engine().run_task(task_name, dry_run=dry_run, params=params)
    finally:
        await runtime.close()


async def async_enable_maintenance(runtime: Runtime, duration: str, reason: str) -> float | None:
    """Announce then open the window; returns its expiry (None = indefinite)."""
    try:
        until = "until disabled" if parse_duration(duration) is None else f"for {duration}"
        # announce first, the window would suppress its own notification
        await runtime.dispatcher.notify(
            MAINTENANCE_KEY, Severity.INFO, f"Maintenance mode enabled {until}: {reason}"
        )
        window = runtime.gate.enable(duration, reason)
        return window.expires_at
    finally:
        await runtime.close()


async def async_disable_maintenance(runtime: Runtime) -> bool:
    try:
        existed = runtime.gate.disable()
        if existed:
            await runtime.dispatcher.notify(MAINTENANCE_KEY, Severity.INFO, "Maintenance mode disabled")
        return existed
    finally:
        await runtime.close()


async def async_send_manual_notification(
    runtime: Runtime,
    message: str,
    severity: Severity | str = Severity.INFO,
    topic: Topic | str | None = None,
) -> Decision:
    try:
        return await runtime.dispatcher.notify(
            MANUAL_KEY, severity, message, topic=topic or Topic.GENERAL
        )
    finally:
        await runtime.close()


async def async_send_alert_summary(runtime: Runtime) -> Decision:
    try:
        return await _send_alert_summary(runtime.dispatcher)
    finally:
        await runtime.close()


# ── Sync wrappers ────────────────────────────────────────────────


def run_all_health_checks(config_path: str | Path | None = None) -> int:
    """Run every enabled check once; returns the number of checks with issues."""
    runtime = build_runtime(bootstrap(config_path))
    return asyncio.run(async_run_all_health_checks(runtime))


def run_automation_task(
    task_name: str,
    dry_run: bool = False,
    params: Mapping[str, Any] | None = None,
    config_path: str | Path | None = None,
) -> AutomationTaskResult:
    runtime = build_runtime(bootstrap(config_path))
    return asyncio.run(async_run_automation_task(runtime, task_name, dry_run, params))


def enable_maintenance(
    duration: str = "1h",
    reason: str = "Scheduled maintenance",
    config_path: str | Path | None = None,
) -> float | None:
    runtime = build_runtime(bootstrap(config_path))
    return asyncio.run(async_enable_maintenance(runtime, duration, reason))


def disable_maintenance(config_path: str | Path | None = None) -> bool:
    runtime = build_runtime(bootstrap(config_path))
    return asyncio.run(async_disable_maintenance(runtime))


def is_maintenance_active(config_path: str | Path | None = None) -> bool:
    settings = bootstrap(config_path)
    runtime = build_runtime(settings)
    return runtime.gate.is_active()


def send_manual_notification(
    message: str,
    severity: Severity | str = Severity.INFO,
    topic: Topic | str | None = None,
    config_path: str | Path | None = None,
) -> Decision:
    runtime = build_runtime(bootstrap(config_path))
    return asyncio.run(async_send_manual_notification(runtime, message, severity, topic))


def send_alert_summary(config_path: str | Path | None = None) -> Decision:
    runtime = build_runtime(bootstrap(config_path))
    return asyncio.run(async_send_alert_summary(runtime))
