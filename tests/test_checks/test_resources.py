"""Tests for disk, memory, load and I/O-wait checks."""

from __future__ import annotations

from pvehealth.checks.probe import CpuTicks
from pvehealth.checks.resources import check_iowait, check_load_average, check_memory, load_thresholds
from pvehealth.checks.storage import check_disk_space
from pvehealth.core.thresholds import ThresholdPair
from pvehealth.core.types import AlertStatus, Severity


class TestDiskSpace:
    async def test_healthy(self, make_ctx, probe, channel) -> None:
        probe.set_disk("/", 50)
        assert await check_disk_space(make_ctx())
        assert channel.sent == []

    async def test_warning_then_silent_then_recovery(self, make_ctx, probe, channel, clock) -> None:
        ctx = make_ctx()
        probe.set_disk("/", 82)
        assert not await check_disk_space(ctx)
        clock.advance(300)
        assert not await check_disk_space(ctx)
        assert len(channel.sent) == 1
        assert channel.sent[0].key == "disk-root"
        assert channel.sent[0].severity is Severity.WARNING

        probe.set_disk("/", 50)
        assert await check_disk_space(ctx)
        assert channel.sent[-1].severity is Severity.OK
        assert ctx.dispatcher.store.get("disk-root").status is AlertStatus.UNKNOWN

    async def test_each_mount_has_its_own_key(self, make_ctx, probe, channel) -> None:
        probe.set_disk("/", 40)
        probe.set_disk("/srv", 93)
        ctx = make_ctx(checks={"disk": {"mounts": {"root": "/", "data": "/srv"}}})
        assert not await check_disk_space(ctx)
        assert channel.keys == ["disk-data"]
        assert channel.sent[0].severity is Severity.CRITICAL


class TestMemory:
    async def test_memory_and_swap_keys(self, make_ctx, probe, channel) -> None:
        probe.memory = 96
        probe.swap = 60
        assert not await check_memory(make_ctx())
        assert {m.key: m.severity for m in channel.sent} == {
            "mem": Severity.CRITICAL,
            "swap": Severity.WARNING,
        }

    async def test_healthy(self, make_ctx, probe, channel) -> None:
        assert await check_memory(make_ctx())
        assert channel.sent == []


class TestLoad:
    def test_auto_thresholds(self) -> None:
        pair = load_thresholds(True, ThresholdPair(warning=4, critical=8), cores=16)
        assert (pair.warning, pair.critical) == (16, 32)

    def test_configured_thresholds(self) -> None:
        configured = ThresholdPair(warning=4, critical=8)
        assert load_thresholds(False, configured, cores=16) is configured

    async def test_auto_detected_warning(self, make_ctx, probe, channel) -> None:
        probe.cores = 4
        probe.load = 5.0
        assert not await check_load_average(make_ctx())
        assert channel.sent[0].key == "load"
        assert channel.sent[0].severity is Severity.WARNING
        assert "cores: 4" in channel.sent[0].title


class TestIowait:
    async def test_uses_tick_deltas(self, make_ctx, probe, channel, sleep) -> None:
        # 300 of 1000 elapsed ticks were iowait → 30%
        probe.ticks = [CpuTicks(total=10_000, iowait=5_000), CpuTicks(total=11_000, iowait=5_300)]
        assert not await check_iowait(make_ctx())
        assert sleep.calls == [2.0]
        assert channel.sent[0].key == "iowait"
        assert channel.sent[0].severity is Severity.WARNING
        assert "30%" in channel.sent[0].title

    async def test_idle_host(self, make_ctx, probe, channel) -> None:
        # cumulative iowait is huge but did not move in the window
        probe.ticks = [CpuTicks(total=10_000, iowait=9_000), CpuTicks(total=11_000, iowait=9_000)]
        assert await check_iowait(make_ctx())
        assert channel.sent == []

    async def test_no_elapsed_ticks(self, make_ctx, probe) -> None:
        probe.ticks = [CpuTicks(total=10_000, iowait=10)]
        assert await check_iowait(make_ctx())
