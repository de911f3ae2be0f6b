"""Tests for RunLock — exclusive, non-blocking, released on exit."""

from __future__ import annotations

from pathlib import Path

import pytest

from pvehealth.core.exceptions import LockHeldError
from pvehealth.state.lock import RunLock


class TestRunLock:
    def test_acquire_writes_pid(self, tmp_path: Path) -> None:
        path = tmp_path / "run" / "health.lock"
        with RunLock(path) as lock:
            assert lock.held
            assert path.read_text().strip().isdigit()
        assert not lock.held

    def test_second_holder_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "health.lock"
        with RunLock(path):
            with pytest.raises(LockHeldError):
                RunLock(path).acquire()

    def test_reacquire_after_release(self, tmp_path: Path) -> None:
        path = tmp_path / "health.lock"
        first = RunLock(path)
        first.acquire()
        first.release()
        second = RunLock(path)
        second.acquire()
        assert second.held
        second.release()

    def test_release_is_idempotent(self, tmp_path: Path) -> None:
        lock = RunLock(tmp_path / "health.lock")
        lock.release()
        lock.acquire()
        lock.release()
        lock.release()
        assert not lock.held
