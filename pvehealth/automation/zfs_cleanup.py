"""ZFS snapshot pruning — destroy dated auto-snapshots past retention."""

from __future__ import annotations

import datetime
import re

import structlog

from pvehealth.automation.base import AutomationTask, TaskContext
from pvehealth.core.config import ZfsCleanupConfig
from pvehealth.core.types import AutomationTaskResult

logger = structlog.get_logger(__name__)


def expired_snapshots(
    names: list[str],
    pattern: str,
    retention_days: int,
    today: datetime.date,
) -> list[str]:
    """Snapshots whose embedded date is older than the retention window.

    ``pattern`` must capture the ``YYYY-MM-DD`` date as its first group.
    """
    regex = re.compile(pattern)
    cutoff = today - datetime.timedelta(days=retention_days)
    expired = []
    for name in names:
        match = regex.search(name)
        if not match:
            continue
        try:
            taken = datetime.date.fromisoformat(match.group(1))
        except ValueError:
            continue
        if taken < cutoff:
            expired.append(name)
    return expired


class ZfsCleanupTask(AutomationTask):
    name = "zfs-cleanup"
    unit = "snapshots"
    config_model = ZfsCleanupConfig
    config: ZfsCleanupConfig

    async def execute(self, ctx: TaskContext) -> AutomationTaskResult:
        cfg = self.config
        if not ctx.has("zfs"):
            ctx.record_error("zfs-list", "zfs utilities not found")
            return self.result(ctx, 0, 0, action_needed=False)

        listing = await ctx.run(["zfs", "list", "-H", "-t", "snapshot", "-o", "name"])
        if not listing.ok:
            ctx.record_error("zfs-list", f"exit {listing.returncode}")
            return self.result(ctx, 0, 0, action_needed=False)

        names = [line.strip() for line in listing.stdout.splitlines() if line.strip()]
        today = datetime.date.fromtimestamp(ctx.clock())
        expired = expired_snapshots(names, cfg.pattern, cfg.retention_days, today)
        if not expired:
            logger.info("zfs_cleanup_not_needed", considered=len(names))
            return self.result(ctx, 0, 0, action_needed=False)

        removed = 0
        for snapshot in expired:
            if await ctx.mutate("zfs-destroy", ["zfs", "destroy", snapshot]):
                removed += 1

        before = float(len(expired))
        return self.result(
            ctx,
            before,
            before - removed,
            items_affected=removed,
            details={
                "Snapshots considered": str(len(names)),
                "Retention": f"{cfg.retention_days} days",
            },
        )
