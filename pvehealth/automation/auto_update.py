"""Auto-update — refresh the package index, count then apply upgrades."""

from __future__ import annotations

import re

import structlog

from pvehealth.automation.base import AutomationTask, TaskContext
from pvehealth.core.config import AutoUpdateConfig
from pvehealth.core.types import AutomationTaskResult

logger = structlog.get_logger(__name__)

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive", "LC_ALL": "C"}

_SECURITY = re.compile("security", re.IGNORECASE)


def parse_pending(simulation: str, security_only: bool) -> list[str]:
    """Package names from ``apt-get -s`` ``Inst`` lines."""
    packages = []
    for line in simulation.splitlines():
        if not line.startswith("Inst "):
            continue
        if security_only and not _SECURITY.search(line):
            continue
        parts = line.split()
        if len(parts) >= 2:
            packages.append(parts[1])
    return packages


def chunked(items: list[str], size: int) -> list[list[str]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class AutoUpdateTask(AutomationTask):
    name = "auto-update"
    unit = "packages"
    config_model = AutoUpdateConfig
    config: AutoUpdateConfig

    async def _pending(self, ctx: TaskContext) -> list[str] | None:
        sim = await ctx.run(["apt-get", "-s", "dist-upgrade"], env=APT_ENV)
        if not sim.ok:
            ctx.record_error("simulate", f"apt-get -s dist-upgrade exit {sim.returncode}")
            return None
        return parse_pending(sim.stdout, self.config.security_only)

    async def execute(self, ctx: TaskContext) -> AutomationTaskResult:
        cfg = self.config
        if not ctx.has("apt-get"):
            ctx.record_error("apt", "no supported package manager found")
            return self.result(ctx, 0, 0, action_needed=False)

        await ctx.mutate("apt-update", ["apt-get", "-o", "Acquire::Retries=3", "update"], env=APT_ENV)

        pending = await self._pending(ctx)
        if pending is None:
            return self.result(ctx, 0, 0, action_needed=False)
        before = float(len(pending))
        details = {"Security only": "yes" if cfg.security_only else "no"}
        if not pending:
            logger.info("auto_update_not_needed", security_only=cfg.security_only)
            return self.result(ctx, 0, 0, action_needed=False, details=details)

        installed = 0
        if cfg.security_only:
            for chunk in chunked(pending, cfg.chunk_size):
                argv = ["apt-get", "install", "-y", "--only-upgrade", *chunk, "-o", "Dpkg::Use-Pty=0"]
                if not await ctx.mutate("install-security", argv, env=APT_ENV):
                    break
                installed += len(chunk)
        else:
            argv = ["apt-get", "dist-upgrade", "-y", "-o", "Dpkg::Use-Pty=0"]
            if await ctx.mutate("dist-upgrade", argv, env=APT_ENV):
                installed = len(pending)

        await ctx.mutate("apt-clean", ["apt-get", "clean"])

        if ctx.dry_run:
            after = before - installed
        else:
            remaining = await self._pending(ctx)
            after = float(len(remaining)) if remaining is not None else before - installed

        return self.result(ctx, before, after, items_affected=installed, details=details)
