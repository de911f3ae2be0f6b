"""Service check — restart inactive units once."""

from __future__ import annotations

import structlog

from pvehealth.checks.base import CheckContext
from pvehealth.core.types import Severity

logger = structlog.get_logger(__name__)


async def _is_active(ctx: CheckContext, unit: str) -> bool:
    result = await ctx.run(["systemctl", "is-active", "--quiet", unit])
    return result.ok


async def check_services(ctx: CheckContext) -> bool:
    cfg = ctx.config.services
    failed: list[str] = []

    for unit in cfg.units:
        key = f"svc-{unit}"
        if await _is_active(ctx, unit):
            await ctx.dispatcher.alert_clear(key, f"Service {unit} is running")
            continue

        logger.warning("service_inactive", unit=unit)
        await ctx.dispatcher.alert_once(
            key, Severity.CRITICAL, f"Service {unit} is down", f"Service {unit} restored"
        )
        if not cfg.restart:
            failed.append(unit)
            continue

        restart = await ctx.run(["systemctl", "restart", unit])
        if restart.ok:
            await ctx.sleep(cfg.settle_secs)
            if await _is_active(ctx, unit):
                logger.info("service_restarted", unit=unit)
                await ctx.dispatcher.alert_clear(key, f"Service {unit} restarted successfully")
                continue
        logger.error("service_restart_failed", unit=unit, returncode=restart.returncode)
        failed.append(unit)

    return not failed
