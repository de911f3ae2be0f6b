"""MaintenanceGate — time-bounded global suppression of notifications."""

from __future__ import annotations

import re
import time
from datetime import timedelta

import structlog

from pvehealth.core.types import MaintenanceWindow
from pvehealth.state.base import Clock, MaintenanceStore

logger = structlog.get_logger(__name__)

_UNIT_SECS: dict[str, int] = {
    "w": 7 * 86400,
    "d": 86400,
    "h": 3600,
    "m": 60,
    "s": 1,
}
_COMPOUND = re.compile(r"(\d+)\s*([wdhms])")
_COMPOUND_FULL = re.compile(r"(?:\d+\s*[wdhms]\s*)+")

DEFAULT_REASON = "scheduled maintenance"


def parse_duration(value: str | int | float | timedelta) -> float | None:
    """Parse a maintenance duration into seconds.

    ``0`` means indefinite and returns None. Strings may be compound
    (``"1w2d3h30m15s"``, ``"90m"``) or a bare number, which is read as
    minutes.

    Raises:
        ValueError: Negative or unparseable duration.
    """
    if isinstance(value, timedelta):
        secs = value.total_seconds()
    elif isinstance(value, int | float):
        secs = float(value) * 60
    else:
        text = value.strip().lower()
        if not text:
            raise ValueError("empty duration")
        if re.fullmatch(r"\d+(\.\d+)?", text):
            secs = float(text) * 60
        elif _COMPOUND_FULL.fullmatch(text):
            secs = float(
                sum(int(n) * _UNIT_SECS[unit] for n, unit in _COMPOUND.findall(text))
            )
        else:
            raise ValueError(f"invalid duration: {value!r}")
    if secs < 0:
        raise ValueError(f"negative duration: {value!r}")
    return None if secs == 0 else secs


class MaintenanceGate:
    """Reads and writes the maintenance window.

    Expiry is detected on read: an expired window is deleted and the gate
    reports inactive, so readers never need a separate cleanup step.
    """

    def __init__(self, store: MaintenanceStore, clock: Clock | None = None) -> None:
        self._store = store
        self._clock = clock or time.time

    # ── Queries ──────────────────────────────────────────────────

    def window(self) -> MaintenanceWindow | None:
        """The active window, or None (expired windows are cleared)."""
        current = self._store.read()
        if current is None:
            return None
        if current.expired(self._clock()):
            self._store.delete()
            logger.info("maintenance_expired", reason=current.reason)
            return None
        return current

    def is_active(self) -> bool:
        return self.window() is not None

    def expire_if_due(self) -> MaintenanceWindow | None:
        """Clear an expired window and return it; None if nothing expired."""
        current = self._store.read()
        if current is None or not current.expired(self._clock()):
            return None
        self._store.delete()
        logger.info("maintenance_expired", reason=current.reason)
        return current

    # ── State mutation ───────────────────────────────────────────

    def enable(
        self,
        duration: str | int | float | timedelta = "1h",
        reason: str = DEFAULT_REASON,
    ) -> MaintenanceWindow:
        """Start (or replace) a maintenance window."""
        secs = parse_duration(duration)
        now = self._clock()
        window = MaintenanceWindow(
            reason=reason or DEFAULT_REASON,
            started_at=now,
            expires_at=None if secs is None else now + secs,
        )
        self._store.write(window)
        logger.info(
            "maintenance_enabled",
            reason=window.reason,
            expires_at=window.expires_at,
        )
        return window

    def disable(self) -> bool:
        """End the window; returns whether one was active."""
        existed = self._store.delete()
        if existed:
            logger.info("maintenance_disabled")
        return existed
