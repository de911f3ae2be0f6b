"""Pure functions that turn alert inputs into AlertMessage objects and text."""

from __future__ import annotations

import datetime

from pvehealth.alerts.topics import topic_for_key
from pvehealth.alerts.types import AlertMessage
from pvehealth.core.types import AutomationTaskResult, Severity, Topic

# Syslog priorities keyed by severity.
SYSLOG_PRIORITY: dict[Severity, str] = {
    Severity.OK: "info",
    Severity.INFO: "info",
    Severity.WARNING: "warning",
    Severity.CRITICAL: "err",
}


def format_alert(
    key: str,
    severity: Severity,
    text: str,
    hostname: str = "",
    topic: Topic | None = None,
    fields: dict[str, str] | None = None,
    timestamp: float | None = None,
) -> AlertMessage:
    """Build the message for one alert key.

    The first line of ``text`` becomes the title; the rest is the body.
    """
    title, _, body = text.partition("\n")
    msg = AlertMessage(
        severity=severity,
        key=key,
        title=title.strip() or key,
        body=body.strip(),
        topic=topic or topic_for_key(key),
        hostname=hostname,
        fields=dict(fields or {}),
    )
    if timestamp is not None:
        msg = msg.model_copy(update={"timestamp": timestamp})
    return msg


def format_timestamp(ts: float) -> str:
    return datetime.datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


def render_line(msg: AlertMessage) -> str:
    """Single-line rendering: ``[LEVEL] [host] [time] title``."""
    parts = [f"[{msg.severity.label}]"]
    if msg.hostname:
        parts.append(f"[{msg.hostname}]")
    parts.append(f"[{format_timestamp(msg.timestamp)}]")
    parts.append(msg.title)
    return " ".join(parts)


def render_text(msg: AlertMessage) -> str:
    """Multi-line plain-text rendering used by email and webhook bodies."""
    lines = [
        "Proxmox Health Alert",
        "====================",
        f"Host: {msg.hostname or '-'}",
        f"Time: {format_timestamp(msg.timestamp)}",
        f"Level: {msg.severity.label}",
        f"Key: {msg.key} ({msg.topic.value})",
        "",
        f"Message: {msg.title}",
    ]
    if msg.body:
        lines += ["", msg.body]
    if msg.fields:
        lines.append("")
        lines += [f"  {k}: {v}" for k, v in msg.fields.items()]
    return "\n".join(lines)


def format_metric(value: float, unit: str) -> str:
    text = f"{value:.0f}" if float(value).is_integer() else f"{value:.1f}"
    return f"{text}{unit}" if unit == "%" else f"{text} {unit}".rstrip()


def format_automation_result(result: AutomationTaskResult) -> str:
    """Completion text for an automation task run."""
    lines = [f"Automation {result.task_name} completed"]
    if not result.action_needed:
        lines[0] += ": no action needed"
    elif not result.succeeded:
        lines[0] += " with errors"
    if result.dry_run:
        lines[0] += " [DRY RUN]"
    lines.append(
        f"Metric: {format_metric(result.before_metric, result.unit)}"
        f" → {format_metric(result.after_metric, result.unit)}"
    )
    lines.append(f"Items affected: {result.items_affected}")
    for name, value in result.details.items():
        lines.append(f"{name}: {value}")
    for error in result.errors:
        lines.append(f"Error: {error}")
    return "\n".join(lines)
