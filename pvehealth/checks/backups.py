"""vzdump failure and backup recency checks."""

from __future__ import annotations

from pathlib import Path

import structlog

from pvehealth.checks.base import CheckContext
from pvehealth.core.types import Severity
from pvehealth.state.base import SECONDS_PER_DAY

logger = structlog.get_logger(__name__)


def _recent_logs(log_dir: Path, since: float) -> list[Path]:
    return [p for p in log_dir.glob("*.log") if p.is_file() and p.stat().st_mtime >= since]


def _has_error(path: Path) -> bool:
    try:
        with open(path, errors="replace") as f:
            return any("ERROR:" in line for line in f)
    except OSError as exc:
        logger.warning("vzdump_log_unreadable", path=str(path), error=str(exc))
        return False


def newest_mtime(root: Path) -> float | None:
    stamps = [p.stat().st_mtime for p in root.rglob("*") if p.is_file()]
    return max(stamps) if stamps else None


async def check_backups(ctx: CheckContext) -> bool:
    cfg = ctx.config.backups
    now = ctx.clock()
    clean = True

    if cfg.vzdump_log_dir.is_dir() and any(cfg.vzdump_log_dir.glob("*.log")):
        recent = _recent_logs(cfg.vzdump_log_dir, now - SECONDS_PER_DAY)
        if any(_has_error(p) for p in recent):
            await ctx.dispatcher.alert_once(
                "backup-vzdump",
                Severity.CRITICAL,
                "vzdump backup error found in last 24h",
                "vzdump backups OK",
            )
            clean = False
        else:
            await ctx.dispatcher.alert_clear("backup-vzdump", "vzdump backups OK")

    if cfg.backup_dir.is_dir():
        last = newest_mtime(cfg.backup_dir)
        if last is not None:
            age_days = int((now - last) // SECONDS_PER_DAY)
            if age_days > cfg.max_age_days:
                await ctx.dispatcher.alert_once(
                    "backup-age",
                    Severity.WARNING,
                    f"No backups in {cfg.max_age_days} days (last {age_days}d)",
                    "Backup recency OK",
                )
                clean = False
            else:
                await ctx.dispatcher.alert_clear(
                    "backup-age", f"Backup recency OK (last {age_days}d)"
                )
    return clean
