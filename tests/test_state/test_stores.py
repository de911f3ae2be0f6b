"""Tests for alert/baseline/maintenance stores — JSON files and in-memory."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from pvehealth.core.types import AlertStatus, MaintenanceWindow
from pvehealth.state.base import SECONDS_PER_DAY, AlertStateStore, BaselineStore, MaintenanceStore
from pvehealth.state.files import (
    JsonAlertStateStore,
    JsonBaselineStore,
    JsonMaintenanceStore,
    atomic_write_json,
    safe_name,
)
from pvehealth.state.memory import (
    MemoryAlertStateStore,
    MemoryBaselineStore,
    MemoryMaintenanceStore,
)


@pytest.fixture(params=["json", "memory"])
def alert_store(request: pytest.FixtureRequest, tmp_path: Path, clock) -> AlertStateStore:
    if request.param == "json":
        return JsonAlertStateStore(tmp_path, cooldown_minutes=30, clock=clock)
    return MemoryAlertStateStore(cooldown_minutes=30, clock=clock)


@pytest.fixture(params=["json", "memory"])
def baseline_store(request: pytest.FixtureRequest, tmp_path: Path, clock) -> BaselineStore:
    if request.param == "json":
        return JsonBaselineStore(tmp_path, clock=clock)
    return MemoryBaselineStore(clock=clock)


@pytest.fixture(params=["json", "memory"])
def maintenance_store(request: pytest.FixtureRequest, tmp_path: Path) -> MaintenanceStore:
    if request.param == "json":
        return JsonMaintenanceStore(tmp_path)
    return MemoryMaintenanceStore()


class TestAlertStateStore:
    def test_unknown_by_default(self, alert_store: AlertStateStore) -> None:
        state = alert_store.get("disk-root")
        assert state.status is AlertStatus.UNKNOWN
        assert state.cooldown_until is None

    def test_set_alerted_sets_cooldown(self, alert_store: AlertStateStore, clock) -> None:
        state = alert_store.set_alerted("disk-root")
        assert state.status is AlertStatus.ALERTED
        assert state.cooldown_until == clock.now + 1800
        assert alert_store.get("disk-root").status is AlertStatus.ALERTED
        assert alert_store.is_cooldown_active("disk-root")

    def test_cooldown_expires(self, alert_store: AlertStateStore, clock) -> None:
        alert_store.set_alerted("disk-root")
        clock.advance(1801)
        assert not alert_store.is_cooldown_active("disk-root")
        assert alert_store.get("disk-root").status is AlertStatus.ALERTED

    def test_clear_is_idempotent(self, alert_store: AlertStateStore) -> None:
        alert_store.set_alerted("mem")
        alert_store.clear("mem")
        alert_store.clear("mem")
        assert alert_store.get("mem").status is AlertStatus.UNKNOWN

    def test_alerted_keys_sorted(self, alert_store: AlertStateStore) -> None:
        for key in ("swap", "disk-root", "mem"):
            alert_store.set_alerted(key)
        alert_store.clear("mem")
        assert [s.key for s in alert_store.alerted_keys()] == ["disk-root", "swap"]

    def test_sweep_drops_stale(self, alert_store: AlertStateStore, clock) -> None:
        alert_store.set_alerted("old")
        clock.advance(31 * SECONDS_PER_DAY)
        alert_store.set_alerted("fresh")
        assert alert_store.sweep(30) == 1
        assert [s.key for s in alert_store.alerted_keys()] == ["fresh"]


class TestJsonAlertFiles:
    def test_one_file_per_key(self, tmp_path: Path, clock) -> None:
        store = JsonAlertStateStore(tmp_path, clock=clock)
        store.set_alerted("svc-pveproxy")
        path = tmp_path / "alerts" / "svc-pveproxy.json"
        assert json.loads(path.read_text())["status"] == "alerted"

    def test_corrupt_record_reads_unknown(self, tmp_path: Path, clock) -> None:
        store = JsonAlertStateStore(tmp_path, clock=clock)
        (tmp_path / "alerts").mkdir()
        (tmp_path / "alerts" / "mem.json").write_text("{not json")
        assert store.get("mem").status is AlertStatus.UNKNOWN

    def test_state_survives_new_instance(self, tmp_path: Path, clock) -> None:
        JsonAlertStateStore(tmp_path, clock=clock).set_alerted("load")
        again = JsonAlertStateStore(tmp_path, clock=clock)
        assert again.get("load").status is AlertStatus.ALERTED


class TestBaselineStore:
    def test_first_run_is_none(self, baseline_store: BaselineStore) -> None:
        assert baseline_store.load("iface-errors") is None
        assert baseline_store.updated_at("iface-errors") is None

    def test_save_and_load(self, baseline_store: BaselineStore, clock) -> None:
        baseline_store.save("iface-errors", {"eno1": {"rx": 5, "tx": 0}})
        assert baseline_store.load("iface-errors") == {"eno1": {"rx": 5, "tx": 0}}
        assert baseline_store.updated_at("iface-errors") == clock.now

    def test_loaded_value_is_a_copy(self, baseline_store: BaselineStore) -> None:
        baseline_store.save("guests-vm", {"100": "running"})
        loaded = baseline_store.load("guests-vm")
        loaded["100"] = "stopped"
        assert baseline_store.load("guests-vm") == {"100": "running"}

    def test_sweep(self, baseline_store: BaselineStore, clock) -> None:
        baseline_store.save("a", 1)
        clock.advance(40 * SECONDS_PER_DAY)
        baseline_store.save("b", 2)
        assert baseline_store.sweep(30) == 1
        assert baseline_store.load("a") is None
        assert baseline_store.load("b") == 2


class TestMaintenanceStore:
    def test_roundtrip(self, maintenance_store: MaintenanceStore) -> None:
        assert maintenance_store.read() is None
        window = MaintenanceWindow(reason="upgrade", started_at=100.0, expires_at=None)
        maintenance_store.write(window)
        assert maintenance_store.read() == window
        assert maintenance_store.delete() is True
        assert maintenance_store.delete() is False
        assert maintenance_store.read() is None


class TestFileHelpers:
    def test_safe_name(self) -> None:
        assert safe_name("disk-root") == "disk-root"
        assert safe_name("../etc/passwd") == "_etc_passwd"
        assert safe_name("") == "_"

    def test_atomic_write_leaves_no_temp(self, tmp_path: Path) -> None:
        target = tmp_path / "sub" / "record.json"
        atomic_write_json(target, {"a": 1})
        atomic_write_json(target, {"a": 2})
        assert json.loads(target.read_text()) == {"a": 2}
        assert [p.name for p in target.parent.iterdir()] == ["record.json"]
