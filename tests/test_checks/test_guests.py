"""Tests for container/VM running → stopped transitions."""

from __future__ import annotations

from pvehealth.checks.guests import check_guests, parse_guest_list
from pvehealth.core.types import Severity

PCT_RUNNING = """\
VMID       Status     Lock         Name
101        running                 web
102        stopped                 db
"""
PCT_STOPPED = """\
VMID       Status     Lock         Name
101        stopped                 web
102        stopped                 db
"""
QM = """\
      VMID NAME                 STATUS     MEM(MB)    BOOTDISK(GB) PID
       100 win                  running    4096              64.00 1234
"""


class TestParseGuestList:
    def test_pct(self) -> None:
        assert parse_guest_list(PCT_RUNNING, 1) == {"101": "running", "102": "stopped"}

    def test_qm(self) -> None:
        assert parse_guest_list(QM, 2) == {"100": "running"}

    def test_header_only(self) -> None:
        assert parse_guest_list("VMID Status Lock Name\n", 1) == {}


class TestGuests:
    async def test_first_run_is_baseline(self, make_ctx, executor, channel) -> None:
        executor.tools.add("pct")
        executor.on("pct", "list", stdout=PCT_STOPPED)
        assert await check_guests(make_ctx())
        assert channel.sent == []

    async def test_stop_then_restore(self, make_ctx, executor, channel) -> None:
        executor.tools.add("pct")
        ctx = make_ctx()
        executor.on("pct", "list", stdout=PCT_RUNNING)
        assert await check_guests(ctx)

        executor.on("pct", "list", stdout=PCT_STOPPED)
        assert not await check_guests(ctx)
        assert channel.keys == ["ct-101"]
        assert channel.sent[0].title == "Container 101 stopped (was running)"

        # still stopped: no transition, no repeat
        assert await check_guests(ctx)
        assert len(channel.sent) == 1

        executor.on("pct", "list", stdout=PCT_RUNNING)
        assert await check_guests(ctx)
        assert [(m.key, m.severity) for m in channel.sent] == [
            ("ct-101", Severity.WARNING),
            ("ct-101", Severity.OK),
        ]

    async def test_vm_disappears(self, make_ctx, executor, channel) -> None:
        executor.tools.add("qm")
        ctx = make_ctx()
        executor.on("qm", "list", stdout=QM)
        await check_guests(ctx)
        executor.on("qm", "list", stdout="      VMID NAME STATUS MEM(MB) BOOTDISK(GB) PID\n")
        assert not await check_guests(ctx)
        assert channel.keys == ["vm-100"]
