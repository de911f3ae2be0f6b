"""Pending package updates, at most once per configured interval."""

from __future__ import annotations

import re

import structlog

from pvehealth.checks.base import CheckContext
from pvehealth.core.types import Severity

logger = structlog.get_logger(__name__)

STAMP_BASELINE = "updates-stamp"

_IMPORTANT_RE = re.compile(r"security|pve-kernel|proxmox-kernel|linux-image", re.IGNORECASE)


def count_simulated_installs(output: str) -> int:
    return sum(1 for line in output.splitlines() if line.startswith("Inst "))


def count_important_upgradable(output: str) -> int:
    return sum(1 for line in output.splitlines() if _IMPORTANT_RE.search(line))


async def check_system_updates(ctx: CheckContext) -> bool:
    cfg = ctx.config.updates
    now = ctx.clock()
    last = ctx.baselines.updated_at(STAMP_BASELINE)
    if last is not None and now - last < cfg.interval_hours * 3600:
        logger.debug("updates_check_skipped", next_in=round(last + cfg.interval_hours * 3600 - now))
        return True
    if not ctx.has("apt-get"):
        return True

    if cfg.readonly:
        result = await ctx.run(["apt-get", "-s", "-o", "Debug::NoLocking=1", "upgrade"])
        pending = count_simulated_installs(result.stdout)
        text = f"Package updates available: {pending}"
    else:
        refresh = await ctx.run(["apt-get", "update", "-qq"])
        if not refresh.ok:
            logger.warning("apt_update_failed", returncode=refresh.returncode)
        result = await ctx.run(["apt", "list", "--upgradable"])
        pending = count_important_upgradable(result.stdout)
        text = f"Security/kernel updates available: {pending}"

    if pending > 0:
        await ctx.dispatcher.alert_once("updates", Severity.INFO, text, "Updates applied")
    else:
        await ctx.dispatcher.alert_clear("updates", "No updates needed")

    ctx.baselines.save(STAMP_BASELINE, now)
    # Pending updates are informational, never an issue.
    return True
