"""In-memory stores, used by tests and dry runs."""

from __future__ import annotations

import copy
from typing import Any

from pvehealth.core.types import AlertState, AlertStatus, MaintenanceWindow
from pvehealth.state.base import (
    DEFAULT_COOLDOWN_MINUTES,
    SECONDS_PER_DAY,
    AlertStateStore,
    BaselineStore,
    Clock,
    MaintenanceStore,
)


class MemoryAlertStateStore(AlertStateStore):
    def __init__(
        self,
        cooldown_minutes: float = DEFAULT_COOLDOWN_MINUTES,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(cooldown_minutes=cooldown_minutes, clock=clock)
        self._states: dict[str, AlertState] = {}

    def get(self, key: str) -> AlertState:
        state = self._states.get(key)
        return state.model_copy() if state else AlertState(key=key)

    def set_alerted(self, key: str) -> AlertState:
        now = self.now()
        state = AlertState(
            key=key,
            status=AlertStatus.ALERTED,
            cooldown_until=now + self.cooldown_secs,
            updated_at=now,
        )
        self._states[key] = state
        return state.model_copy()

    def clear(self, key: str) -> None:
        self._states.pop(key, None)

    def alerted_keys(self) -> list[AlertState]:
        return [
            s.model_copy()
            for _, s in sorted(self._states.items())
            if s.status is AlertStatus.ALERTED
        ]

    def sweep(self, retention_days: float) -> int:
        cutoff = self.now() - retention_days * SECONDS_PER_DAY
        stale = [k for k, s in self._states.items() if s.updated_at < cutoff]
        for key in stale:
            del self._states[key]
        return len(stale)


class MemoryBaselineStore(BaselineStore):
    def __init__(self, clock: Clock | None = None) -> None:
        super().__init__(clock=clock)
        self._values: dict[str, tuple[Any, float]] = {}

    def load(self, name: str) -> Any | None:
        entry = self._values.get(name)
        return copy.deepcopy(entry[0]) if entry else None

    def save(self, name: str, value: Any) -> None:
        self._values[name] = (copy.deepcopy(value), self._clock())

    def updated_at(self, name: str) -> float | None:
        entry = self._values.get(name)
        return entry[1] if entry else None

    def sweep(self, retention_days: float) -> int:
        cutoff = self._clock() - retention_days * SECONDS_PER_DAY
        stale = [k for k, (_, ts) in self._values.items() if ts < cutoff]
        for name in stale:
            del self._values[name]
        return len(stale)


class MemoryMaintenanceStore(MaintenanceStore):
    def __init__(self) -> None:
        self._window: MaintenanceWindow | None = None

    def read(self) -> MaintenanceWindow | None:
        return self._window

    def write(self, window: MaintenanceWindow) -> None:
        self._window = window

    def delete(self) -> bool:
        existed = self._window is not None
        self._window = None
        return existed
