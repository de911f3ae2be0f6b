"""CheckEngine — runs the check catalog once per invocation."""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog

from pvehealth.checks.backups import check_backups
from pvehealth.checks.base import CheckContext, CheckSpec, run_with_retry
from pvehealth.checks.guests import check_guests
from pvehealth.checks.network import check_interface_errors, check_network
from pvehealth.checks.resources import check_iowait, check_load_average, check_memory
from pvehealth.checks.security import check_ssh_security, check_system_events
from pvehealth.checks.services import check_services
from pvehealth.checks.storage import check_disk_space, check_zfs_pools
from pvehealth.checks.temperatures import check_temperatures
from pvehealth.checks.updates import check_system_updates
from pvehealth.core.exceptions import LockHeldError
from pvehealth.core.types import Severity
from pvehealth.state.lock import RunLock

logger = structlog.get_logger(__name__)

# Order matters: services first so restarts are visible to later checks.
CHECKS: tuple[CheckSpec, ...] = (
    CheckSpec("services", check_services),
    CheckSpec("disk", check_disk_space),
    CheckSpec("zfs", check_zfs_pools),
    CheckSpec("memory", check_memory),
    CheckSpec("load", check_load_average),
    CheckSpec("iowait", check_iowait),
    CheckSpec("network", check_network),
    CheckSpec("interface_errors", check_interface_errors),
    CheckSpec("ssh", check_ssh_security),
    CheckSpec("system_events", check_system_events),
    CheckSpec("temperatures", check_temperatures),
    CheckSpec("backups", check_backups),
    CheckSpec("updates", check_system_updates),
    CheckSpec("guests", check_guests),
)


class CheckEngine:
    """Sequential, lock-guarded run of every enabled check.

    Usage::

        engine = CheckEngine(ctx, lock=RunLock(settings.paths.lock_file))
        issues = await engine.run_all_health_checks()
    """

    def __init__(
        self,
        ctx: CheckContext,
        lock: RunLock | None = None,
        checks: tuple[CheckSpec, ...] = CHECKS,
        rng: Callable[[float, float], float] | None = None,
    ) -> None:
        self._ctx = ctx
        self._lock = lock
        self._checks = checks
        self._rng = rng

    async def run_all_health_checks(self) -> int:
        """Run the catalog; return the number of checks with issues.

        An overlapping invocation (lock held) is a benign skip and returns 0.
        """
        if self._lock is None:
            return await self._run()
        try:
            with self._lock:
                return await self._run()
        except LockHeldError:
            logger.info("health_run_skipped", reason="lock_held")
            return 0

    async def _run(self) -> int:
        ctx = self._ctx
        dispatcher = ctx.dispatcher
        start = time.monotonic()

        expired = dispatcher.gate.expire_if_due()
        if expired is not None:
            await dispatcher.notify(
                "maintenance", Severity.INFO, f"Maintenance mode ended (expired): {expired.reason}"
            )
        if dispatcher.gate.is_active():
            logger.info("health_run_skipped", reason="maintenance")
            return 0

        retention = ctx.settings.notify.state_retention_days
        swept = dispatcher.store.sweep(retention) + ctx.baselines.sweep(retention)
        if swept:
            logger.info("state_swept", removed=swept, retention_days=retention)

        logger.info("health_run_started")
        issues = 0
        failed: list[str] = []
        for spec in self._checks:
            if not spec.enabled(ctx.config):
                logger.debug("check_disabled", check=spec.name)
                continue
            kwargs = {"rng": self._rng} if self._rng is not None else {}
            try:
                ok = await run_with_retry(spec.name, spec.fn, ctx, **kwargs)
            except Exception:
                logger.exception("check_crashed", check=spec.name)
                ok = False
            if not ok:
                issues += 1
                failed.append(spec.name)

        logger.info(
            "health_run_completed",
            issues=issues,
            failed=failed,
            duration_secs=round(time.monotonic() - start, 2),
        )
        return issues
