"""Automation plumbing — task base class and the dry-run-guarded context."""

from __future__ import annotations

import abc
import asyncio
import os
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar

import structlog
from pydantic import BaseModel

from pvehealth.alerts.channels import SleepFn
from pvehealth.checks.probe import HostProbe
from pvehealth.core.exceptions import CommandError
from pvehealth.core.executor import CommandExecutor
from pvehealth.core.types import AutomationTaskResult, CommandResult
from pvehealth.state.base import SECONDS_PER_DAY, Clock

logger = structlog.get_logger(__name__)


@dataclass
class TaskContext:
    """Capabilities handed to a task for one invocation.

    Every mutation goes through :meth:`mutate` or :meth:`remove_file`,
    which are no-ops under dry-run; read-only sampling uses :meth:`run`.
    """

    executor: CommandExecutor
    probe: HostProbe
    dry_run: bool
    command_timeout: float = 900.0
    clock: Clock = time.time
    sleep: SleepFn = field(default=asyncio.sleep)
    errors: list[str] = field(default_factory=list)

    def has(self, tool: str) -> bool:
        return self.executor.has(tool)

    def record_error(self, step: str, message: str) -> None:
        logger.error("automation_step_failed", step=step, error=message)
        self.errors.append(f"{step}: {message}")

    async def run(
        self,
        argv: Sequence[str],
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Run a read-only command (listing, simulation)."""
        return await self.executor.run(argv, timeout=timeout or self.command_timeout, env=env)

    async def mutate(
        self,
        step: str,
        argv: Sequence[str],
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
    ) -> bool:
        """Run a mutating command unless dry-running; True on success.

        Failures are recorded and reported, never raised, so the task can
        carry on with its remaining sub-steps.
        """
        if self.dry_run:
            logger.info("dry_run_skip", step=step, argv=list(argv))
            return True
        try:
            result = await self.executor.run(
                argv, timeout=timeout or self.command_timeout, env=env
            )
        except CommandError as exc:
            self.record_error(step, str(exc))
            return False
        if not result.ok:
            detail = (result.stderr or result.stdout).strip().splitlines()
            self.record_error(
                step, f"exit {result.returncode}" + (f": {detail[-1]}" if detail else "")
            )
            return False
        return True

    def remove_file(self, path: Path) -> bool:
        """Delete ``path`` unless dry-running; True if (it would be) removed."""
        if self.dry_run:
            return True
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            self.record_error("remove", f"{path}: {exc}")
            return False
        return True


def find_old_files(directory: Path, age_days: float, now: float) -> list[tuple[Path, int]]:
    """Regular files under ``directory`` older than ``age_days`` with sizes."""
    cutoff = now - age_days * SECONDS_PER_DAY
    found: list[tuple[Path, int]] = []
    if not directory.is_dir():
        return found
    for root, _dirs, files in os.walk(directory):
        for name in files:
            path = Path(root) / name
            try:
                st = path.lstat()
            except OSError:
                continue
            if path.is_symlink() or not path.is_file():
                continue
            if st.st_mtime < cutoff:
                found.append((path, st.st_size))
    return found


def dir_size_bytes(directory: Path) -> int:
    total = 0
    if not directory.is_dir():
        return 0
    for root, _dirs, files in os.walk(directory):
        for name in files:
            try:
                total += (Path(root) / name).lstat().st_size
            except OSError:
                continue
    return total


class AutomationTask(abc.ABC):
    """One catalog entry. Subclasses set ``name``, ``unit`` and ``config_model``."""

    name: ClassVar[str]
    unit: ClassVar[str] = ""
    config_model: ClassVar[type[BaseModel]]

    def __init__(self, config: BaseModel) -> None:
        self.config: Any = config

    def result(self, ctx: TaskContext, before: float, after: float, **kwargs: Any) -> AutomationTaskResult:
        return AutomationTaskResult(
            task_name=self.name,
            dry_run=ctx.dry_run,
            before_metric=before,
            after_metric=after,
            unit=self.unit,
            errors=list(ctx.errors),
            succeeded=not ctx.errors,
            **kwargs,
        )

    @abc.abstractmethod
    async def execute(self, ctx: TaskContext) -> AutomationTaskResult:
        """Measure, act (guarded by ``ctx``), re-measure."""
