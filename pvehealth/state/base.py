"""Repository interfaces for cross-invocation state."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from pvehealth.core.types import AlertState, MaintenanceWindow

Clock = Callable[[], float]

SECONDS_PER_DAY = 86400.0
DEFAULT_COOLDOWN_MINUTES = 30.0


class AlertStateStore(ABC):
    """Per-key alert status plus cooldown expiry.

    Absence of a record is the ``UNKNOWN`` state; ``clear`` removes the
    record rather than writing a ``CLEARED`` marker.
    """

    def __init__(
        self,
        cooldown_minutes: float = DEFAULT_COOLDOWN_MINUTES,
        clock: Clock | None = None,
    ) -> None:
        self._cooldown_secs = cooldown_minutes * 60.0
        self._clock = clock or time.time

    @property
    def cooldown_secs(self) -> float:
        return self._cooldown_secs

    def now(self) -> float:
        return self._clock()

    @abstractmethod
    def get(self, key: str) -> AlertState:
        """Return the state for ``key``; ``UNKNOWN`` if absent."""

    @abstractmethod
    def set_alerted(self, key: str) -> AlertState:
        """Mark ``key`` alerted with ``cooldown_until = now + cooldown``."""

    @abstractmethod
    def clear(self, key: str) -> None:
        """Remove all state for ``key``. Idempotent."""

    @abstractmethod
    def alerted_keys(self) -> list[AlertState]:
        """All keys currently in the ``ALERTED`` state, sorted by key."""

    @abstractmethod
    def sweep(self, retention_days: float) -> int:
        """Drop records not updated within ``retention_days``; return count."""

    def is_cooldown_active(self, key: str) -> bool:
        return self.get(key).cooldown_active(self.now())


class BaselineStore(ABC):
    """Named JSON-able baselines for delta-based checks."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or time.time

    @abstractmethod
    def load(self, name: str) -> Any | None:
        """Return the stored baseline, or None on first run."""

    @abstractmethod
    def save(self, name: str, value: Any) -> None:
        """Replace the baseline for ``name``."""

    @abstractmethod
    def updated_at(self, name: str) -> float | None:
        """When ``name`` was last saved, or None if never."""

    @abstractmethod
    def sweep(self, retention_days: float) -> int:
        """Drop baselines not saved within ``retention_days``; return count."""


class MaintenanceStore(ABC):
    """Single maintenance-window record. Missing means inactive."""

    @abstractmethod
    def read(self) -> MaintenanceWindow | None:
        """Return the current window, or None."""

    @abstractmethod
    def write(self, window: MaintenanceWindow) -> None:
        """Persist ``window``, replacing any existing one."""

    @abstractmethod
    def delete(self) -> bool:
        """Remove the window; return whether one existed."""
