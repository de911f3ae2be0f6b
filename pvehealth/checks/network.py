"""Connectivity, bridge and interface-error checks."""

from __future__ import annotations

import re

from pvehealth.checks.base import CheckContext
from pvehealth.core.types import Severity

_LOSS_RE = re.compile(r"(\d+(?:\.\d+)?)% packet loss")

IFACE_BASELINE = "iface-errors"


def parse_packet_loss(output: str) -> float | None:
    match = _LOSS_RE.search(output)
    return float(match.group(1)) if match else None


async def check_network(ctx: CheckContext) -> bool:
    cfg = ctx.config.network
    clean = True

    result = await ctx.run(
        ["ping", "-c", str(cfg.ping_count), "-w", str(cfg.ping_deadline_secs), cfg.ping_host],
        timeout=cfg.ping_deadline_secs + 5,
    )
    loss = parse_packet_loss(result.stdout)
    if loss is None or loss >= 100:
        await ctx.dispatcher.alert_once(
            "net",
            Severity.CRITICAL,
            f"Network unreachable to {cfg.ping_host}",
            "Network connectivity restored",
        )
        clean = False
    else:
        await ctx.dispatcher.alert_clear("net", "Network connectivity OK")
        severity = cfg.packet_loss.classify(loss)
        clean &= await ctx.report(
            "net-loss", severity, f"Packet loss to {cfg.ping_host}", f"{loss:.0f}%"
        )

    up = ctx.probe.interfaces_up()
    for bridge in cfg.bridges:
        key = f"br-{bridge}"
        if up.get(bridge, False):
            await ctx.dispatcher.alert_clear(key, f"Bridge {bridge} is UP")
        else:
            await ctx.dispatcher.alert_once(
                key, Severity.CRITICAL, f"Bridge {bridge} is DOWN", f"Bridge {bridge} restored"
            )
            clean = False
    return clean


async def check_interface_errors(ctx: CheckContext) -> bool:
    """Alert on error-counter growth between runs, never on totals.

    The first sample of an interface only records its baseline.
    """
    cfg = ctx.config.interface_errors
    current = {
        name: counters
        for name, counters in ctx.probe.interface_errors().items()
        if name not in cfg.exclude
    }
    previous: dict = ctx.load_baseline(IFACE_BASELINE) or {}
    clean = True

    for name, counters in sorted(current.items()):
        prev = previous.get(name)
        if prev is None:
            continue
        for direction, now_value in (("rx", counters.rx), ("tx", counters.tx)):
            # Counters reset on reboot or driver reload; treat that as zero.
            delta = max(0, now_value - int(prev.get(direction, 0)))
            key = f"iface-{direction}-{name}"
            label = direction.upper()
            if delta >= cfg.delta_threshold:
                await ctx.dispatcher.alert_once(
                    key,
                    Severity.WARNING,
                    f"High {label} errors on {name}: +{delta}",
                    f"{label} errors on {name} stable",
                )
                clean = False
            else:
                await ctx.dispatcher.alert_clear(key, f"{label} errors on {name} stable")

    ctx.baselines.save(
        IFACE_BASELINE,
        {name: {"rx": c.rx, "tx": c.tx} for name, c in current.items()},
    )
    return clean
