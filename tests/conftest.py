"""Shared fakes: recording executor, scripted host probe, manual clock."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any

import pytest

from pvehealth.alerts.channels import NotificationChannel
from pvehealth.alerts.dispatcher import AlertDispatcher
from pvehealth.alerts.maintenance import MaintenanceGate
from pvehealth.alerts.types import AlertMessage
from pvehealth.checks.base import CheckContext
from pvehealth.checks.probe import CpuTicks, DiskUsage, HostProbe, InterfaceErrors
from pvehealth.core.config import NotifyConfig, Settings
from pvehealth.core.exceptions import DeliveryError
from pvehealth.core.executor import CommandExecutor
from pvehealth.core.types import CommandResult
from pvehealth.state.memory import (
    MemoryAlertStateStore,
    MemoryBaselineStore,
    MemoryMaintenanceStore,
)

# 2026-01-15 12:00:00 UTC
T0 = 1_768_478_400.0


class FakeClock:
    def __init__(self, start: float = T0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, secs: float) -> None:
        self.now += secs


class FakeSleep:
    """Awaitable no-op that records requested delays."""

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.calls: list[float] = []
        self._clock = clock

    async def __call__(self, secs: float) -> None:
        self.calls.append(secs)
        if self._clock is not None:
            self._clock.advance(secs)


class FakeExecutor(CommandExecutor):
    """Records every argv; replies from a table keyed by argv prefix.

    Unscripted commands succeed with empty output.
    """

    def __init__(self, tools: Sequence[str] = ()) -> None:
        self.tools = set(tools)
        self.calls: list[list[str]] = []
        self.envs: list[Mapping[str, str] | None] = []
        self._replies: list[tuple[tuple[str, ...], Any]] = []
        self._once: list[tuple[tuple[str, ...], Any]] = []

    def on(self, *prefix: str, stdout: str = "", stderr: str = "", returncode: int = 0) -> None:
        self._replies.append((prefix, (stdout, stderr, returncode)))

    def raise_on(self, *prefix: str, exc: Exception) -> None:
        self._replies.append((prefix, exc))

    def once(self, *prefix: str, stdout: str = "", stderr: str = "", returncode: int = 0) -> None:
        """Reply for the next matching call only; takes precedence over ``on``."""
        self._once.append((prefix, (stdout, stderr, returncode)))

    def ran(self, *prefix: str) -> bool:
        return any(tuple(call[: len(prefix)]) == prefix for call in self.calls)

    async def run(
        self,
        argv: Sequence[str],
        timeout: float = 30.0,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        args = list(argv)
        self.calls.append(args)
        self.envs.append(env)
        for i, (prefix, reply) in enumerate(self._once):
            if tuple(args[: len(prefix)]) == prefix:
                del self._once[i]
                return self._reply(args, reply)
        best: tuple[tuple[str, ...], Any] | None = None
        for prefix, reply in self._replies:
            if tuple(args[: len(prefix)]) == prefix and (best is None or len(prefix) >= len(best[0])):
                best = (prefix, reply)
        if best is None:
            return CommandResult(argv=args, returncode=0)
        return self._reply(args, best[1])

    @staticmethod
    def _reply(args: list[str], reply: Any) -> CommandResult:
        if isinstance(reply, Exception):
            raise reply
        stdout, stderr, returncode = reply
        return CommandResult(argv=args, returncode=returncode, stdout=stdout, stderr=stderr)

    def which(self, name: str) -> str | None:
        return f"/usr/bin/{name}" if name in self.tools else None


class FakeProbe(HostProbe):
    """Host metrics as plain attributes."""

    def __init__(self) -> None:
        self.disks: dict[str, DiskUsage] = {"/": DiskUsage(total=100 * 1024**3, free=60 * 1024**3, percent=40.0)}
        self.memory = 40.0
        self.swap = 0.0
        self.load = 0.5
        self.cores = 4
        self.ticks: list[CpuTicks] = [CpuTicks(total=1000.0, iowait=10.0)]
        self.up: dict[str, bool] = {"lo": True, "eno1": True, "vmbr0": True}
        self.errors: dict[str, InterfaceErrors] = {}

    def set_disk(self, path: str, percent: float, total: int = 100 * 1024**3) -> None:
        free = int(total * (100 - percent) / 100)
        self.disks[path] = DiskUsage(total=total, free=free, percent=percent)

    def disk_usage(self, path: str) -> DiskUsage:
        return self.disks[path]

    def memory_percent(self) -> float:
        return self.memory

    def swap_percent(self) -> float:
        return self.swap

    def load_average(self) -> float:
        return self.load

    def cpu_count(self) -> int:
        return self.cores

    def cpu_ticks(self) -> CpuTicks:
        return self.ticks.pop(0) if len(self.ticks) > 1 else self.ticks[0]

    def interfaces_up(self) -> dict[str, bool]:
        return dict(self.up)

    def interface_errors(self) -> dict[str, InterfaceErrors]:
        return dict(self.errors)


class RecordingChannel(NotificationChannel):
    """In-memory channel; fails the first ``failures`` sends."""

    def __init__(self, name: str = "recording", failures: int = 0) -> None:
        self.name = name
        self.sent: list[AlertMessage] = []
        self.attempts = 0
        self._failures = failures
        self.closed = False

    async def send(self, msg: AlertMessage) -> None:
        self.attempts += 1
        if self.attempts <= self._failures:
            raise DeliveryError(f"{self.name}: simulated failure")
        self.sent.append(msg)

    async def close(self) -> None:
        self.closed = True

    @property
    def keys(self) -> list[str]:
        return [m.key for m in self.sent]


# ── Fixtures ─────────────────────────────────────────────────────


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def make_channel() -> Callable[..., RecordingChannel]:
    return RecordingChannel


@pytest.fixture
def make_dispatcher(
    clock: FakeClock, sleep: FakeSleep, channel: RecordingChannel
) -> Callable[..., AlertDispatcher]:
    """Dispatcher over in-memory state, delivering to ``channel``."""

    def _make(
        config: NotifyConfig | None = None,
        channels: list[NotificationChannel] | None = None,
        audit_channel: NotificationChannel | None = None,
        cooldown_minutes: float = 30.0,
    ) -> AlertDispatcher:
        return AlertDispatcher(
            store=MemoryAlertStateStore(cooldown_minutes=cooldown_minutes, clock=clock),
            gate=MaintenanceGate(MemoryMaintenanceStore(), clock=clock),
            config=config or NotifyConfig(),
            channels=[channel] if channels is None else channels,
            audit_channel=audit_channel,
            hostname="pve1",
            clock=clock,
            sleep=sleep,
        )

    return _make


@pytest.fixture
def make_ctx(
    make_dispatcher: Callable[..., AlertDispatcher],
    executor: FakeExecutor,
    probe: FakeProbe,
    clock: FakeClock,
    sleep: FakeSleep,
) -> Callable[..., CheckContext]:
    """CheckContext with fakes; ``checks`` overrides merge into defaults."""

    def _make(checks: dict[str, Any] | None = None, **settings: Any) -> CheckContext:
        data: dict[str, Any] = dict(settings)
        if checks:
            data["checks"] = checks
        return CheckContext(
            settings=Settings.model_validate(data),
            dispatcher=make_dispatcher(),
            executor=executor,
            probe=probe,
            baselines=MemoryBaselineStore(clock=clock),
            clock=clock,
            sleep=sleep,
        )

    return _make
