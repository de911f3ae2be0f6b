"""Memory relief — drop page/dentry/inode caches under memory pressure."""

from __future__ import annotations

import structlog

from pvehealth.automation.base import AutomationTask, TaskContext
from pvehealth.core.config import MemoryReliefConfig
from pvehealth.core.types import AutomationTaskResult

logger = structlog.get_logger(__name__)


class MemoryReliefTask(AutomationTask):
    name = "memory-relief"
    unit = "%"
    config_model = MemoryReliefConfig
    config: MemoryReliefConfig

    async def execute(self, ctx: TaskContext) -> AutomationTaskResult:
        cfg = self.config
        before = ctx.probe.memory_percent()
        swap = ctx.probe.swap_percent()

        if before < cfg.threshold_pct:
            logger.info("memory_relief_not_needed", usage=before, threshold=cfg.threshold_pct)
            return self.result(
                ctx, before, before, action_needed=False, details={"Swap": f"{swap:.0f}%"}
            )

        dropped = False
        if await ctx.mutate("sync", ["sync"]):
            dropped = await ctx.mutate(
                "drop-caches", ["sysctl", "-w", f"vm.drop_caches={cfg.cache_level}"]
            )

        if ctx.dry_run:
            after = before
        else:
            if dropped:
                await ctx.sleep(cfg.settle_secs)
            after = ctx.probe.memory_percent()

        return self.result(
            ctx,
            before,
            after,
            items_affected=1 if dropped else 0,
            details={
                "Cache level": str(cfg.cache_level),
                "Swap": f"{swap:.0f}% → {ctx.probe.swap_percent():.0f}%",
            },
        )
