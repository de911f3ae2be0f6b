"""Domain types for the alerting subsystem."""

from __future__ import annotations

import time
from enum import StrEnum

from pydantic import BaseModel, Field

from pvehealth.core.types import Severity, Topic


class AlertMessage(BaseModel):
    """Normalised alert ready for dispatch to channels."""

    severity: Severity
    key: str
    title: str
    body: str = ""
    topic: Topic = Topic.GENERAL
    hostname: str = ""
    fields: dict[str, str] = Field(default_factory=dict)
    timestamp: float = Field(default_factory=time.time)


class Decision(StrEnum):
    """What the dispatcher did with one alert/notify call."""

    DELIVERED = "delivered"
    DELIVERY_FAILED = "delivery_failed"
    SUPPRESSED_MAINTENANCE = "suppressed_maintenance"
    SUPPRESSED_TOPIC = "suppressed_topic"
    SUPPRESSED_SEVERITY = "suppressed_severity"
    COOLDOWN = "cooldown"
    NOOP = "noop"

    @property
    def delivered(self) -> bool:
        return self is Decision.DELIVERED
