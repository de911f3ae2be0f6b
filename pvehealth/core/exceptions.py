"""Exception hierarchy for the health agent."""

from __future__ import annotations


class PveHealthError(Exception):
    """Base exception for all agent errors."""


class ConfigurationError(PveHealthError):
    """Configuration could not be loaded or failed validation."""


class SamplingError(PveHealthError):
    """A check could not obtain the metric it needs."""


class CommandError(PveHealthError):
    """An external command could not be run."""


class CommandNotFoundError(CommandError):
    """The command binary is not installed."""


class CommandTimeoutError(CommandError):
    """The command exceeded its timeout and was killed."""


class DeliveryError(PveHealthError):
    """A notification channel failed to deliver a message."""


class LockHeldError(PveHealthError):
    """Another invocation holds the run lock."""


class UnknownTaskError(PveHealthError):
    """The requested automation task is not in the catalog."""
