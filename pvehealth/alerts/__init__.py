"""Alerts module — state machine, maintenance gate, channels, summary."""

from pvehealth.alerts.channels import (
    DiscordChannel,
    EmailChannel,
    NotificationChannel,
    SyslogChannel,
    WebhookChannel,
    deliver_with_retry,
)
from pvehealth.alerts.dispatcher import AlertDispatcher
from pvehealth.alerts.factory import create_alert_stack, create_channels
from pvehealth.alerts.formatters import format_alert, format_automation_result
from pvehealth.alerts.maintenance import MaintenanceGate, parse_duration
from pvehealth.alerts.summary import build_alert_summary, send_alert_summary
from pvehealth.alerts.topics import topic_for_key
from pvehealth.alerts.types import AlertMessage, Decision
from pvehealth.core.thresholds import ThresholdPair, classify
from pvehealth.core.types import Severity, Topic

__all__ = [
    "AlertDispatcher",
    "AlertMessage",
    "Decision",
    "DiscordChannel",
    "EmailChannel",
    "MaintenanceGate",
    "NotificationChannel",
    "Severity",
    "SyslogChannel",
    "ThresholdPair",
    "Topic",
    "WebhookChannel",
    "build_alert_summary",
    "classify",
    "create_alert_stack",
    "create_channels",
    "deliver_with_retry",
    "format_alert",
    "format_automation_result",
    "parse_duration",
    "send_alert_summary",
    "topic_for_key",
]
