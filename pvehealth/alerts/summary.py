"""Daily summary of currently alerted keys."""

from __future__ import annotations

import time

import structlog

from pvehealth.alerts.dispatcher import AlertDispatcher
from pvehealth.alerts.formatters import format_timestamp
from pvehealth.alerts.topics import topic_for_key
from pvehealth.alerts.types import Decision
from pvehealth.core.types import Severity, Topic
from pvehealth.state.base import AlertStateStore

logger = structlog.get_logger(__name__)

SUMMARY_KEY = "summary"


def build_alert_summary(
    store: AlertStateStore,
    hostname: str = "",
    now: float | None = None,
) -> str:
    """Render the active-alert summary as plain text."""
    now = time.time() if now is None else now
    alerted = store.alerted_keys()

    lines = [
        "Daily Alert Summary",
        f"Generated: {format_timestamp(now)}",
    ]
    if hostname:
        lines.append(f"Host: {hostname}")
    lines.append(f"Active Alerts: {len(alerted)}")

    if alerted:
        lines.append("")
        for state in alerted:
            since = format_timestamp(state.updated_at)
            lines.append(f"- {state.key} [{topic_for_key(state.key).value}] since {since}")
    else:
        lines.append("No active alerts")

    return "\n".join(lines)


async def send_alert_summary(dispatcher: AlertDispatcher) -> Decision:
    """Build and dispatch the summary at INFO under the ``summary`` key."""
    text = build_alert_summary(
        dispatcher.store,
        hostname=dispatcher.hostname,
        now=dispatcher.store.now(),
    )
    decision = await dispatcher.notify(SUMMARY_KEY, Severity.INFO, text, topic=Topic.GENERAL)
    logger.info("alert_summary_sent", decision=decision.value)
    return decision
