"""Core module — config, types, logging, command execution."""

from pvehealth.core.config import Settings, load_settings
from pvehealth.core.exceptions import (
    CommandError,
    CommandNotFoundError,
    CommandTimeoutError,
    ConfigurationError,
    DeliveryError,
    LockHeldError,
    PveHealthError,
    SamplingError,
    UnknownTaskError,
)
from pvehealth.core.executor import CommandExecutor, SubprocessExecutor
from pvehealth.core.logging import setup_logging
from pvehealth.core.thresholds import ThresholdPair, classify
from pvehealth.core.types import (
    AlertState,
    AlertStatus,
    AutomationTaskResult,
    CommandResult,
    MaintenanceWindow,
    Severity,
    Topic,
)

__all__ = [
    "AlertState",
    "AlertStatus",
    "AutomationTaskResult",
    "CommandError",
    "CommandExecutor",
    "CommandNotFoundError",
    "CommandResult",
    "CommandTimeoutError",
    "ConfigurationError",
    "DeliveryError",
    "LockHeldError",
    "MaintenanceWindow",
    "PveHealthError",
    "SamplingError",
    "Settings",
    "Severity",
    "SubprocessExecutor",
    "ThresholdPair",
    "Topic",
    "UnknownTaskError",
    "classify",
    "load_settings",
    "setup_logging",
]
