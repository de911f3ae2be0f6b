"""JSON-file backed stores under the state directory.

Every record is its own file, written to a temporary sibling and moved into
place with ``os.replace`` so an interrupted run never leaves a truncated
record behind.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from pvehealth.core.types import AlertState, AlertStatus, MaintenanceWindow
from pvehealth.state.base import (
    DEFAULT_COOLDOWN_MINUTES,
    SECONDS_PER_DAY,
    AlertStateStore,
    BaselineStore,
    Clock,
    MaintenanceStore,
)

logger = structlog.get_logger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]")


def safe_name(key: str) -> str:
    """Map an arbitrary key onto a filesystem-safe file stem."""
    cleaned = _UNSAFE.sub("_", key).lstrip(".")
    return cleaned or "_"


def atomic_write_json(path: Path, payload: Any) -> None:
    """Write ``payload`` as JSON to ``path`` via temp file + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(payload, f, sort_keys=True)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def _read_json(path: Path) -> Any | None:
    try:
        with open(path) as f:
            return json.load(f)
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as exc:
        logger.warning("state_record_unreadable", path=str(path), error=str(exc))
        return None


def _record_stamp(entry: Path) -> float | None:
    raw = _read_json(entry)
    if isinstance(raw, dict) and isinstance(raw.get("updated_at"), int | float):
        return float(raw["updated_at"])
    try:
        return entry.stat().st_mtime
    except FileNotFoundError:
        return None


def _sweep_dir(directory: Path, cutoff: float) -> int:
    """Remove records whose ``updated_at`` (or mtime) predates ``cutoff``."""
    removed = 0
    if not directory.is_dir():
        return 0
    for entry in directory.glob("*.json"):
        stamp = _record_stamp(entry)
        if stamp is not None and stamp < cutoff:
            entry.unlink(missing_ok=True)
            removed += 1
    return removed


class JsonAlertStateStore(AlertStateStore):
    """One JSON record per alert key under ``<state_dir>/alerts``."""

    def __init__(
        self,
        state_dir: str | Path,
        cooldown_minutes: float = DEFAULT_COOLDOWN_MINUTES,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(cooldown_minutes=cooldown_minutes, clock=clock)
        self._dir = Path(state_dir) / "alerts"

    def _path(self, key: str) -> Path:
        return self._dir / f"{safe_name(key)}.json"

    def get(self, key: str) -> AlertState:
        raw = _read_json(self._path(key))
        if raw is None:
            return AlertState(key=key)
        try:
            return AlertState.model_validate(raw)
        except ValidationError:
            logger.warning("alert_state_invalid", key=key)
            return AlertState(key=key)

    def set_alerted(self, key: str) -> AlertState:
        now = self.now()
        state = AlertState(
            key=key,
            status=AlertStatus.ALERTED,
            cooldown_until=now + self.cooldown_secs,
            updated_at=now,
        )
        atomic_write_json(self._path(key), state.model_dump(mode="json"))
        return state

    def clear(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def alerted_keys(self) -> list[AlertState]:
        if not self._dir.is_dir():
            return []
        states: list[AlertState] = []
        for entry in sorted(self._dir.glob("*.json")):
            raw = _read_json(entry)
            if raw is None:
                continue
            try:
                state = AlertState.model_validate(raw)
            except ValidationError:
                continue
            if state.status is AlertStatus.ALERTED:
                states.append(state)
        return sorted(states, key=lambda s: s.key)

    def sweep(self, retention_days: float) -> int:
        cutoff = self.now() - retention_days * SECONDS_PER_DAY
        return _sweep_dir(self._dir, cutoff)


class JsonBaselineStore(BaselineStore):
    """One JSON document per baseline under ``<state_dir>/baselines``."""

    def __init__(self, state_dir: str | Path, clock: Clock | None = None) -> None:
        super().__init__(clock=clock)
        self._dir = Path(state_dir) / "baselines"

    def _path(self, name: str) -> Path:
        return self._dir / f"{safe_name(name)}.json"

    def load(self, name: str) -> Any | None:
        raw = _read_json(self._path(name))
        if not isinstance(raw, dict) or "value" not in raw:
            return None
        return raw["value"]

    def save(self, name: str, value: Any) -> None:
        atomic_write_json(self._path(name), {"value": value, "updated_at": self._clock()})

    def updated_at(self, name: str) -> float | None:
        raw = _read_json(self._path(name))
        if not isinstance(raw, dict):
            return None
        stamp = raw.get("updated_at")
        return float(stamp) if isinstance(stamp, int | float) else None

    def sweep(self, retention_days: float) -> int:
        cutoff = self._clock() - retention_days * SECONDS_PER_DAY
        return _sweep_dir(self._dir, cutoff)


class JsonMaintenanceStore(MaintenanceStore):
    """The maintenance window as ``<state_dir>/maintenance.json``."""

    def __init__(self, state_dir: str | Path) -> None:
        self._path = Path(state_dir) / "maintenance.json"

    def read(self) -> MaintenanceWindow | None:
        raw = _read_json(self._path)
        if raw is None:
            return None
        try:
            return MaintenanceWindow.model_validate(raw)
        except ValidationError:
            logger.warning("maintenance_record_invalid", path=str(self._path))
            return None

    def write(self, window: MaintenanceWindow) -> None:
        atomic_write_json(self._path, window.model_dump(mode="json"))

    def delete(self) -> bool:
        try:
            self._path.unlink()
        except FileNotFoundError:
            return False
        return True
