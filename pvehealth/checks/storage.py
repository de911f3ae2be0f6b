"""Disk and ZFS capacity checks."""

from __future__ import annotations

from pvehealth.checks.base import CheckContext
from pvehealth.core.exceptions import SamplingError
from pvehealth.core.types import Severity


def _pct(value: float) -> str:
    return f"{value:.0f}%"


async def check_disk_space(ctx: CheckContext) -> bool:
    cfg = ctx.config.disk
    clean = True
    for label, mount in cfg.mounts.items():
        usage = ctx.probe.disk_percent(mount)
        severity = cfg.thresholds.classify(usage)
        subject = f"Disk {label} ({mount}) usage"
        clean &= await ctx.report(f"disk-{label}", severity, subject, _pct(usage))
    return clean


def parse_zpool_list(text: str) -> list[tuple[str, float]]:
    """Parse ``zpool list -Hp -o name,capacity`` into (pool, percent) pairs."""
    pools: list[tuple[str, float]] = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        try:
            pools.append((parts[0], float(parts[1].rstrip("%"))))
        except ValueError:
            continue
    return pools


async def check_zfs_pools(ctx: CheckContext) -> bool:
    if not ctx.has("zpool"):
        return True
    cfg = ctx.config.zfs
    clean = True

    status = await ctx.run(["zpool", "status", "-x"])
    if "all pools are healthy" in status.stdout.lower():
        await ctx.dispatcher.alert_clear("zfs-health", "All ZFS pools healthy")
    else:
        await ctx.dispatcher.alert_once(
            "zfs-health",
            Severity.CRITICAL,
            "ZFS pool degraded or errors present",
            "ZFS pool healthy",
        )
        clean = False

    listing = await ctx.run(["zpool", "list", "-Hp", "-o", "name,capacity"])
    if not listing.ok:
        raise SamplingError(f"zpool list failed: {listing.stderr.strip()}")
    for pool, cap in parse_zpool_list(listing.stdout):
        severity = cfg.capacity.classify(cap)
        clean &= await ctx.report(f"zfs-cap-{pool}", severity, f"ZFS pool {pool} capacity", _pct(cap))
    return clean
