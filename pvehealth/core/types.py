"""Domain types shared across checks, alerts, state and automation."""

from __future__ import annotations

from enum import IntEnum, StrEnum

from pydantic import BaseModel, Field


class Severity(IntEnum):
    """Alert severity — ordered so comparisons work naturally.

    ``OK`` is the synthetic tier used for recoveries and clean samples.
    """

    OK = 0
    INFO = 1
    WARNING = 2
    CRITICAL = 3

    @property
    def is_failure(self) -> bool:
        """Whether this tier opens (or keeps open) an alert."""
        return self is not Severity.OK

    @property
    def rank(self) -> int:
        """Rank used for minimum-severity filtering; recoveries rank as INFO."""
        return max(int(self), int(Severity.INFO))

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def parse(cls, value: str | int | Severity) -> Severity:
        """Parse ``"warning"``, ``"CRITICAL"``, ``2`` etc. into a Severity."""
        if isinstance(value, Severity):
            return value
        if isinstance(value, int):
            return cls(value)
        name = value.strip().upper()
        if name == "FAIL":
            return cls.CRITICAL
        try:
            return cls[name]
        except KeyError:
            raise ValueError(f"unknown severity: {value!r}") from None


_LABELS: dict[Severity, str] = {
    Severity.OK: "🟢 OK",
    Severity.INFO: "🔵 INFO",
    Severity.WARNING: "🟡 WARNING",
    Severity.CRITICAL: "🔴 CRITICAL",
}


class Topic(StrEnum):
    """Coarse notification category derived from an alert key."""

    SERVICES = "services"
    DISK = "disk"
    ZFS = "zfs"
    MEMORY = "memory"
    LOAD = "load"
    IOWAIT = "iowait"
    NETWORK = "network"
    INTERFACE_ERRORS = "interface_errors"
    SSH = "ssh"
    SYSTEM_EVENTS = "system_events"
    TEMPS = "temps"
    BACKUPS = "backups"
    UPDATES = "updates"
    VMS = "vms"
    AUTOMATION = "automation"
    GENERAL = "general"


class AlertStatus(StrEnum):
    """Per-key alert status. ``CLEARED`` is stored as absence (``UNKNOWN``)."""

    UNKNOWN = "unknown"
    ALERTED = "alerted"
    CLEARED = "cleared"


class AlertState(BaseModel):
    """Persisted state of one alert key."""

    key: str
    status: AlertStatus = AlertStatus.UNKNOWN
    cooldown_until: float | None = None
    updated_at: float = 0.0

    def cooldown_active(self, now: float) -> bool:
        return self.cooldown_until is not None and self.cooldown_until > now


class MaintenanceWindow(BaseModel):
    """Active maintenance window. ``expires_at=None`` means indefinite."""

    reason: str
    started_at: float
    expires_at: float | None = None

    def expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class CommandResult(BaseModel):
    """Outcome of one external command."""

    argv: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class AutomationTaskResult(BaseModel):
    """Outcome of one automation task invocation (never persisted)."""

    task_name: str
    dry_run: bool
    before_metric: float
    after_metric: float
    items_affected: int = 0
    succeeded: bool = True
    action_needed: bool = True
    unit: str = ""
    errors: list[str] = Field(default_factory=list)
    details: dict[str, str] = Field(default_factory=dict)

    @property
    def improved(self) -> bool:
        """Whether the post-action metric is lower than the pre-action one."""
        return self.after_metric < self.before_metric

    @property
    def delta(self) -> float:
        return self.after_metric - self.before_metric
