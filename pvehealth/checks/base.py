"""Check plumbing — shared context, tiered reporting and the retry wrapper."""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Awaitable, Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

import structlog

from pvehealth.alerts.channels import SleepFn
from pvehealth.alerts.dispatcher import AlertDispatcher
from pvehealth.checks.probe import HostProbe
from pvehealth.core.config import ChecksConfig, Settings
from pvehealth.core.exceptions import CommandError, SamplingError
from pvehealth.core.executor import CommandExecutor
from pvehealth.core.types import CommandResult, Severity
from pvehealth.state.base import BaselineStore, Clock

logger = structlog.get_logger(__name__)


@dataclass
class CheckContext:
    """Everything a check may touch. Checks hold no state of their own."""

    settings: Settings
    dispatcher: AlertDispatcher
    executor: CommandExecutor
    probe: HostProbe
    baselines: BaselineStore
    clock: Clock = time.time
    sleep: SleepFn = field(default=asyncio.sleep)
    _pinned: dict[str, Any] | None = field(default=None, init=False, repr=False)

    @property
    def config(self) -> ChecksConfig:
        return self.settings.checks

    def load_baseline(self, name: str) -> Any:
        """Load a baseline, pinned to its first value while a check is retried."""
        if self._pinned is None:
            return self.baselines.load(name)
        if name not in self._pinned:
            self._pinned[name] = self.baselines.load(name)
        return self._pinned[name]

    @contextmanager
    def pinned_baselines(self) -> Iterator[None]:
        self._pinned = {}
        try:
            yield
        finally:
            self._pinned = None

    def has(self, tool: str) -> bool:
        return self.executor.has(tool)

    async def run(self, argv: Sequence[str], timeout: float | None = None) -> CommandResult:
        """Run a sampling command with the configured timeout."""
        return await self.executor.run(
            argv,
            timeout=timeout if timeout is not None else self.config.command_timeout_secs,
        )

    async def report(
        self,
        key: str,
        severity: Severity,
        subject: str,
        value: str,
    ) -> bool:
        """Dispatch a tiered result for ``key``; True when the tier is OK."""
        if severity is Severity.CRITICAL:
            text = f"{subject} critically high: {value}"
        elif severity is Severity.WARNING:
            text = f"{subject} high: {value}"
        else:
            text = f"{subject} normal: {value}"
        await self.dispatcher.alert_once(key, severity, text, f"{subject} normal: {value}")
        return not severity.is_failure


CheckFn = Callable[[CheckContext], Awaitable[bool]]


@dataclass(frozen=True)
class CheckSpec:
    """One catalog entry; ``name`` is also its section in ``ChecksConfig``."""

    name: str
    fn: CheckFn

    def enabled(self, config: ChecksConfig) -> bool:
        section = getattr(config, self.name, None)
        return bool(getattr(section, "enabled", False))


async def _attempt(name: str, fn: CheckFn, ctx: CheckContext) -> bool:
    try:
        return await fn(ctx)
    except (SamplingError, CommandError) as exc:
        logger.warning("check_sampling_failed", check=name, error=str(exc))
        return False


async def run_with_retry(
    name: str,
    fn: CheckFn,
    ctx: CheckContext,
    jitter: tuple[float, float] | None = None,
    rng: Callable[[float, float], float] = random.uniform,
) -> bool:
    """Run a check; on failure sleep a random jitter and try exactly once more.

    Returns True if either attempt came back clean. Baselines read during the
    first attempt are pinned so the retry measures against the same values.
    """
    with ctx.pinned_baselines():
        if await _attempt(name, fn, ctx):
            return True
        lo, hi = jitter or (ctx.config.retry_jitter_min_secs, ctx.config.retry_jitter_max_secs)
        delay = rng(lo, hi) if hi > lo else lo
        logger.info("check_retrying", check=name, delay=round(delay, 2))
        if delay > 0:
            await ctx.sleep(delay)
        ok = await _attempt(name, fn, ctx)
        if not ok:
            logger.warning("check_failed", check=name)
        return ok
