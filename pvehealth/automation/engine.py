"""AutomationEngine — validated, notified, single-shot task runs."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from typing import Any

import structlog
from pydantic import ValidationError

from pvehealth.alerts.channels import SleepFn
from pvehealth.alerts.dispatcher import AlertDispatcher
from pvehealth.alerts.formatters import format_automation_result
from pvehealth.automation.auto_update import AutoUpdateTask
from pvehealth.automation.base import AutomationTask, TaskContext
from pvehealth.automation.disk_cleanup import DiskCleanupTask
from pvehealth.automation.memory_relief import MemoryReliefTask
from pvehealth.automation.system_refresh import SystemRefreshTask
from pvehealth.automation.zfs_cleanup import ZfsCleanupTask
from pvehealth.checks.probe import HostProbe
from pvehealth.core.config import Settings
from pvehealth.core.exceptions import ConfigurationError, PveHealthError, UnknownTaskError
from pvehealth.core.executor import CommandExecutor
from pvehealth.core.types import AutomationTaskResult, Severity, Topic
from pvehealth.state.base import Clock

logger = structlog.get_logger(__name__)

TASKS: dict[str, type[AutomationTask]] = {
    task.name: task
    for task in (
        DiskCleanupTask,
        MemoryReliefTask,
        ZfsCleanupTask,
        SystemRefreshTask,
        AutoUpdateTask,
    )
}


def completion_severity(result: AutomationTaskResult) -> Severity:
    """WARNING when a step failed or a real relief run did not improve things."""
    if result.errors or not result.succeeded:
        return Severity.WARNING
    if result.dry_run or not result.action_needed:
        return Severity.INFO
    if result.before_metric > 0 and not result.improved:
        return Severity.WARNING
    return Severity.INFO


class AutomationEngine:
    """Runs one catalog task at a time with start/completion notifications."""

    def __init__(
        self,
        settings: Settings,
        dispatcher: AlertDispatcher,
        executor: CommandExecutor,
        probe: HostProbe | None = None,
        clock: Clock | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._dispatcher = dispatcher
        self._executor = executor
        self._probe = probe or HostProbe()
        self._clock = clock or time.time
        self._sleep = sleep

    @staticmethod
    def task_names() -> list[str]:
        return sorted(TASKS)

    def _task_config(self, name: str, params: Mapping[str, Any] | None) -> Any:
        task_cls = TASKS[name]
        section = getattr(self._settings.automation, name.replace("-", "_"))
        if not params:
            return section
        unknown = sorted(set(params) - set(task_cls.config_model.model_fields))
        if unknown:
            raise ConfigurationError(f"Unknown parameters for {name}: {', '.join(unknown)}")
        merged = {**section.model_dump(), **params}
        try:
            return task_cls.config_model.model_validate(merged)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid parameters for {name}: {exc}") from exc

    async def run_task(
        self,
        name: str,
        dry_run: bool = False,
        params: Mapping[str, Any] | None = None,
    ) -> AutomationTaskResult:
        """Run ``name`` once and report it.

        Raises:
            UnknownTaskError: ``name`` is not in the catalog.
            ConfigurationError: ``params`` do not validate against the task config.
        """
        if name not in TASKS:
            raise UnknownTaskError(f"Unknown automation task: {name} (known: {', '.join(self.task_names())})")

        config = self._task_config(name, params)
        if not self._settings.automation.enabled or not config.enabled:
            logger.warning("automation_task_disabled", task=name)
            return AutomationTaskResult(
                task_name=name,
                dry_run=dry_run,
                before_metric=0,
                after_metric=0,
                succeeded=False,
                action_needed=False,
                errors=["automation disabled"],
            )

        key = f"automation-{name}"
        tag = " [DRY RUN]" if dry_run else ""
        await self._dispatcher.notify(
            key, Severity.INFO, f"Automation {name} started{tag}", topic=Topic.AUTOMATION
        )

        ctx = TaskContext(
            executor=self._executor,
            probe=self._probe,
            dry_run=dry_run,
            command_timeout=self._settings.automation.command_timeout_secs,
            clock=self._clock,
            sleep=self._sleep,
        )
        task = TASKS[name](config)
        start = time.monotonic()
        try:
            result = await task.execute(ctx)
        except PveHealthError as exc:
            logger.exception("automation_task_failed", task=name)
            ctx.record_error("execute", str(exc))
            result = task.result(ctx, 0, 0)

        severity = completion_severity(result)
        logger.info(
            "automation_task_completed",
            task=name,
            dry_run=dry_run,
            severity=severity.name,
            before=result.before_metric,
            after=result.after_metric,
            items=result.items_affected,
            errors=len(result.errors),
            duration_secs=round(time.monotonic() - start, 2),
        )
        await self._dispatcher.notify(
            key, severity, format_automation_result(result), topic=Topic.AUTOMATION
        )
        return result
