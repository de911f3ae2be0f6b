"""Central alert dispatcher — dedup, cooldown and gated delivery."""

from __future__ import annotations

import asyncio
import datetime
import time

import structlog

from pvehealth.alerts.channels import (
    NotificationChannel,
    SleepFn,
    deliver_with_retry,
)
from pvehealth.alerts.formatters import format_alert
from pvehealth.alerts.maintenance import MaintenanceGate
from pvehealth.alerts.topics import topic_for_key
from pvehealth.alerts.types import AlertMessage, Decision
from pvehealth.core.config import NotifyConfig
from pvehealth.core.types import AlertStatus, Severity, Topic
from pvehealth.state.base import AlertStateStore, Clock

# Dedicated structured logger for decision records.
decision_logger = structlog.get_logger("decision_log")

logger = structlog.get_logger(__name__)


class AlertDispatcher:
    """Turns check results into at most one notification per transition.

    Per key the state machine is ``UNKNOWN → ALERTED → UNKNOWN``:

    - A failure on an unknown key marks it alerted and notifies.
    - A failure on an alerted key is silent while its cooldown runs; once
      the cooldown has expired it refreshes the cooldown and notifies again.
    - A success on an alerted key clears it and sends a recovery.
    - A success on an unknown key does nothing.

    State is updated before delivery gating, so maintenance mode and topic
    or severity filters never desynchronise the store. The gates, in order:
    maintenance (nothing leaves the process), per-topic toggle, quiet hours
    (raises the floor to CRITICAL), minimum severity. The syslog audit
    channel sees everything that passes the maintenance gate.
    """

    def __init__(
        self,
        store: AlertStateStore,
        gate: MaintenanceGate,
        config: NotifyConfig | None = None,
        channels: list[NotificationChannel] | None = None,
        audit_channel: NotificationChannel | None = None,
        hostname: str = "",
        clock: Clock | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._store = store
        self._gate = gate
        self._config = config or NotifyConfig()
        self._channels: list[NotificationChannel] = channels or []
        self._audit_channel = audit_channel
        self._hostname = hostname
        self._clock = clock or time.time
        self._sleep = sleep

    @property
    def store(self) -> AlertStateStore:
        return self._store

    @property
    def gate(self) -> MaintenanceGate:
        return self._gate

    @property
    def hostname(self) -> str:
        return self._hostname

    # ── State machine ───────────────────────────────────────────

    async def alert_once(
        self,
        key: str,
        severity: Severity | str,
        fail_message: str,
        recovery_message: str = "restored",
    ) -> Decision:
        """Record one check result for ``key`` and notify on transitions."""
        tier = Severity.parse(severity)
        state = self._store.get(key)

        if tier.is_failure:
            now = self._clock()
            if state.status is AlertStatus.ALERTED and state.cooldown_active(now):
                self._log_decision(key, tier, fail_message, Decision.COOLDOWN)
                return Decision.COOLDOWN
            self._store.set_alerted(key)
            return await self._deliver(format_alert(
                key, tier, fail_message, hostname=self._hostname, timestamp=now,
            ))

        if state.status is AlertStatus.ALERTED:
            self._store.clear(key)
            return await self._deliver(format_alert(
                key, Severity.OK, recovery_message,
                hostname=self._hostname, timestamp=self._clock(),
            ))

        self._log_decision(key, Severity.OK, recovery_message, Decision.NOOP)
        return Decision.NOOP

    async def alert_clear(self, key: str, message: str = "OK") -> Decision:
        """Recovery half of :meth:`alert_once`."""
        return await self.alert_once(key, Severity.OK, message, message)

    # ── Stateless gated delivery ────────────────────────────────

    async def notify(
        self,
        key: str,
        severity: Severity | str,
        message: str,
        topic: Topic | str | None = None,
        fields: dict[str, str] | None = None,
    ) -> Decision:
        """Deliver an ad-hoc message through the same gates, without state."""
        msg = format_alert(
            key,
            Severity.parse(severity),
            message,
            hostname=self._hostname,
            topic=Topic(topic) if topic is not None else None,
            fields=fields,
            timestamp=self._clock(),
        )
        return await self._deliver(msg)

    async def send(self, msg: AlertMessage) -> Decision:
        """Dispatch a pre-built AlertMessage through the gates."""
        return await self._deliver(msg)

    # ── Internal routing ────────────────────────────────────────

    def _effective_floor(self, msg: AlertMessage) -> Severity:
        floor = self._config.min_level
        if msg.severity is not Severity.CRITICAL:
            local_now = datetime.datetime.fromtimestamp(msg.timestamp).time()
            if self._config.quiet_hours.is_quiet(local_now):
                floor = Severity.CRITICAL
        return floor

    async def _deliver(self, msg: AlertMessage) -> Decision:
        if self._gate.is_active():
            return self._log_message(msg, Decision.SUPPRESSED_MAINTENANCE)

        if not self._config.topic_enabled(msg.topic):
            decision = Decision.SUPPRESSED_TOPIC
        elif msg.severity.rank < self._effective_floor(msg).rank:
            decision = Decision.SUPPRESSED_SEVERITY
        else:
            decision = await self._dispatch_to_channels(msg)

        self._log_message(msg, decision)
        await self._audit(msg)
        return decision

    async def _dispatch_to_channels(self, msg: AlertMessage) -> Decision:
        if not self._channels:
            return Decision.DELIVERED
        delivered = 0
        for ch in self._channels:
            try:
                ok = await deliver_with_retry(
                    ch,
                    msg,
                    attempts=self._config.max_attempts,
                    delay_secs=self._config.retry_delay_secs,
                    sleep=self._sleep,
                )
            except Exception:
                logger.exception("channel_dispatch_error", channel=ch.name, key=msg.key)
                ok = False
            if ok:
                delivered += 1
        return Decision.DELIVERED if delivered else Decision.DELIVERY_FAILED

    async def _audit(self, msg: AlertMessage) -> None:
        if self._audit_channel is None:
            return
        try:
            await self._audit_channel.send(msg)
        except Exception as exc:
            logger.warning("audit_log_failed", key=msg.key, error=str(exc))

    def _log_message(self, msg: AlertMessage, decision: Decision) -> Decision:
        self._log_decision(msg.key, msg.severity, msg.title, decision, topic=msg.topic)
        return decision

    def _log_decision(
        self,
        key: str,
        severity: Severity,
        text: str,
        decision: Decision,
        topic: Topic | None = None,
    ) -> None:
        decision_logger.info(
            "decision",
            key=key,
            topic=(topic or topic_for_key(key)).value,
            severity=severity.name,
            decision=decision.value,
            text=text,
        )

    # ── Lifecycle ───────────────────────────────────────────────

    async def close(self) -> None:
        channels = list(self._channels)
        if self._audit_channel is not None:
            channels.append(self._audit_channel)
        for ch in channels:
            try:
                await ch.close()
            except Exception:
                logger.exception("channel_close_error", channel=ch.name)
