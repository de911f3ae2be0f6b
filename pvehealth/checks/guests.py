"""Container and VM lifecycle transitions (running → stopped)."""

from __future__ import annotations

from pvehealth.checks.base import CheckContext
from pvehealth.core.exceptions import SamplingError
from pvehealth.core.types import Severity

RUNNING = "running"


def parse_guest_list(output: str, status_column: int) -> dict[str, str]:
    """Map guest id → status from ``pct list``/``qm list`` output."""
    guests: dict[str, str] = {}
    for line in output.splitlines()[1:]:
        parts = line.split()
        if len(parts) > status_column and parts[0].isdigit():
            guests[parts[0]] = parts[status_column]
    return guests


async def _check_kind(
    ctx: CheckContext,
    tool: str,
    status_column: int,
    prefix: str,
    label: str,
) -> bool:
    if not ctx.has(tool):
        return True
    result = await ctx.run([tool, "list"])
    if not result.ok:
        raise SamplingError(f"{tool} list failed: {result.stderr.strip()}")

    current = parse_guest_list(result.stdout, status_column)
    baseline = f"guests-{prefix}"
    previous: dict[str, str] | None = ctx.load_baseline(baseline)
    clean = True

    if previous is not None:
        for gid, status in sorted(previous.items()):
            now_running = current.get(gid) == RUNNING
            key = f"{prefix}-{gid}"
            if status == RUNNING and not now_running:
                await ctx.dispatcher.alert_once(
                    key,
                    Severity.WARNING,
                    f"{label} {gid} stopped (was running)",
                    f"{label} {gid} restored",
                )
                clean = False
            elif status != RUNNING and now_running:
                await ctx.dispatcher.alert_clear(key, f"{label} {gid} restored (running)")

    ctx.baselines.save(baseline, current)
    return clean


async def check_guests(ctx: CheckContext) -> bool:
    ct_ok = await _check_kind(ctx, "pct", 1, "ct", "Container")
    vm_ok = await _check_kind(ctx, "qm", 2, "vm", "VM")
    return ct_ok and vm_ok
