"""Disk cleanup — age-based deletion when the root filesystem fills up."""

from __future__ import annotations

import stat
from pathlib import Path

import structlog

from pvehealth.automation.base import AutomationTask, TaskContext, dir_size_bytes, find_old_files
from pvehealth.core.config import DiskCleanupConfig
from pvehealth.core.types import AutomationTaskResult

logger = structlog.get_logger(__name__)

_GB = 1024**3


class DiskCleanupTask(AutomationTask):
    name = "disk-cleanup"
    unit = "%"
    config_model = DiskCleanupConfig
    config: DiskCleanupConfig

    def _candidates(self, now: float) -> list[tuple[Path, int]]:
        seen: set[Path] = set()
        candidates: list[tuple[Path, int]] = []
        for directory, days in self.config.directories.items():
            for path, size in find_old_files(Path(directory), days, now):
                if path not in seen:
                    seen.add(path)
                    candidates.append((path, size))

        log_dir = Path(self.config.rotated_log_dir)
        if log_dir.is_dir():
            for pattern in self.config.rotated_log_patterns:
                for path in log_dir.rglob(pattern):
                    if path in seen:
                        continue
                    try:
                        st = path.lstat()
                    except OSError:
                        continue
                    if not stat.S_ISREG(st.st_mode):
                        continue
                    seen.add(path)
                    candidates.append((path, st.st_size))
        return candidates

    async def execute(self, ctx: TaskContext) -> AutomationTaskResult:
        cfg = self.config
        usage = ctx.probe.disk_usage(cfg.mount)
        before = usage.percent
        free_gb = usage.free / _GB

        if before < cfg.threshold_pct and free_gb >= cfg.min_free_gb:
            logger.info("disk_cleanup_not_needed", usage=before, free_gb=round(free_gb, 1))
            return self.result(ctx, before, before, action_needed=False)

        candidates = self._candidates(ctx.clock())
        removed = 0
        freed = 0
        for path, size in candidates:
            if ctx.remove_file(path):
                removed += 1
                freed += size

        apt_dir = Path(cfg.apt_cache_dir)
        apt_before = dir_size_bytes(apt_dir)
        apt_freed = 0
        if ctx.has("apt-get"):
            if await ctx.mutate("apt-clean", ["apt-get", "clean"]):
                apt_freed = apt_before if ctx.dry_run else max(0, apt_before - dir_size_bytes(apt_dir))
        freed += apt_freed

        if ctx.dry_run:
            projected = before - (freed / usage.total * 100 if usage.total else 0.0)
            after = max(0.0, projected)
        else:
            after = ctx.probe.disk_percent(cfg.mount)

        logger.info(
            "disk_cleanup_done",
            dry_run=ctx.dry_run,
            files=removed,
            freed_bytes=freed,
            before=before,
            after=round(after, 1),
        )
        return self.result(
            ctx,
            before,
            after,
            items_affected=removed,
            details={
                "Files removed" if not ctx.dry_run else "Files to remove": str(removed),
                "Space freed": f"{freed // 1024} KB",
                "Free before": f"{free_gb:.1f} GB",
            },
        )
