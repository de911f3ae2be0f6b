"""System refresh — temp files, package cache, journal vacuum, service restarts."""

from __future__ import annotations

from pathlib import Path

import structlog

from pvehealth.automation.base import AutomationTask, TaskContext, dir_size_bytes, find_old_files
from pvehealth.core.config import SystemRefreshConfig
from pvehealth.core.types import AutomationTaskResult

logger = structlog.get_logger(__name__)


class SystemRefreshTask(AutomationTask):
    """Reclaims cache space; the metric is reclaimable KB before and after."""

    name = "system-refresh"
    unit = "KB"
    config_model = SystemRefreshConfig
    config: SystemRefreshConfig

    def _temp_files(self, now: float) -> list[tuple[Path, int]]:
        files: list[tuple[Path, int]] = []
        for directory in self.config.directories:
            files.extend(find_old_files(Path(directory), self.config.age_days, now))
        return files

    def _reclaimable(self, now: float) -> tuple[int, int, int]:
        temp = sum(size for _, size in self._temp_files(now))
        apt = dir_size_bytes(Path(self.config.apt_cache_dir))
        journal = dir_size_bytes(Path(self.config.journal_dir))
        return temp, apt, journal

    async def _restart_services(self, ctx: TaskContext) -> int:
        restarted = 0
        for unit in self.config.restart_services:
            probe = await ctx.run(["systemctl", "is-active", "--quiet", unit], timeout=30)
            if not probe.ok:
                logger.debug("service_not_active", unit=unit)
                continue
            if await ctx.mutate(f"restart-{unit}", ["systemctl", "restart", unit], timeout=60):
                restarted += 1
        return restarted

    async def execute(self, ctx: TaskContext) -> AutomationTaskResult:
        cfg = self.config
        temp, apt, journal = self._reclaimable(ctx.clock())
        before = (temp + apt + journal) // 1024

        removed = 0
        for path, _size in self._temp_files(ctx.clock()):
            if ctx.remove_file(path):
                removed += 1

        if ctx.has("apt-get"):
            await ctx.mutate("apt-clean", ["apt-get", "clean"])
        if ctx.has("journalctl"):
            await ctx.mutate("journal-vacuum", ["journalctl", f"--vacuum-time={cfg.age_days}d"])

        restarted = await self._restart_services(ctx) if ctx.has("systemctl") else 0

        if ctx.dry_run:
            # vacuum only drops entries past the age window, so the journal is not projected
            after = journal // 1024
        else:
            t, a, j = self._reclaimable(ctx.clock())
            after = (t + a + j) // 1024

        logger.info(
            "system_refresh_done",
            dry_run=ctx.dry_run,
            files=removed,
            services=restarted,
            before_kb=before,
            after_kb=after,
        )
        return self.result(
            ctx,
            float(before),
            float(after),
            items_affected=removed,
            details={
                "Temp files": str(removed),
                "APT cache": f"{apt // 1024} KB",
                "Journal": f"{journal // 1024} KB",
                "Services restarted": str(restarted),
            },
        )
