"""Tests for the interval-gated updates check."""

from __future__ import annotations

from pvehealth.checks.updates import (
    STAMP_BASELINE,
    check_system_updates,
    count_important_upgradable,
    count_simulated_installs,
)
from pvehealth.core.types import Severity

SIMULATED = """\
Reading package lists...
Inst libssl3 [3.0.11-1] (3.0.13-1 Debian-Security:12/stable-security [amd64])
Inst proxmox-kernel-6.8 [6.8.4-2] (6.8.8-1 Proxmox:8.2/stable [amd64])
Conf libssl3 (3.0.13-1 Debian-Security:12/stable-security [amd64])
"""

UPGRADABLE = """\
Listing...
libssl3/stable-security 3.0.13-1 amd64 [upgradable from: 3.0.11-1]
proxmox-kernel-6.8/stable 6.8.8-1 amd64 [upgradable from: 6.8.4-2]
vim/stable 2:9.0.1378-2 amd64 [upgradable from: 2:9.0.1378-1]
"""


class TestCounting:
    def test_simulated(self) -> None:
        assert count_simulated_installs(SIMULATED) == 2

    def test_important(self) -> None:
        assert count_important_upgradable(UPGRADABLE) == 2


class TestUpdatesCheck:
    async def test_readonly_simulation(self, make_ctx, executor, channel) -> None:
        executor.tools.add("apt-get")
        executor.on("apt-get", "-s", stdout=SIMULATED)
        ctx = make_ctx()
        assert await check_system_updates(ctx)
        assert executor.calls == [["apt-get", "-s", "-o", "Debug::NoLocking=1", "upgrade"]]
        assert channel.keys == ["updates"]
        assert channel.sent[0].severity is Severity.INFO
        assert channel.sent[0].title == "Package updates available: 2"
        assert ctx.baselines.updated_at(STAMP_BASELINE) is not None

    async def test_runs_once_per_interval(self, make_ctx, executor, clock) -> None:
        executor.tools.add("apt-get")
        ctx = make_ctx()
        await check_system_updates(ctx)
        clock.advance(3600)
        await check_system_updates(ctx)
        assert len(executor.calls) == 1
        clock.advance(24 * 3600)
        await check_system_updates(ctx)
        assert len(executor.calls) == 2

    async def test_refresh_mode(self, make_ctx, executor, channel) -> None:
        executor.tools.add("apt-get")
        executor.on("apt", "list", stdout=UPGRADABLE)
        assert await check_system_updates(make_ctx(checks={"updates": {"readonly": False}}))
        assert executor.ran("apt-get", "update")
        assert channel.sent[0].title == "Security/kernel updates available: 2"

    async def test_nothing_pending(self, make_ctx, executor, channel) -> None:
        executor.tools.add("apt-get")
        assert await check_system_updates(make_ctx())
        assert channel.sent == []

    async def test_without_apt(self, make_ctx, executor) -> None:
        assert await check_system_updates(make_ctx())
        assert executor.calls == []
