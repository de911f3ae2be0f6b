"""Memory, load and I/O-wait checks."""

from __future__ import annotations

from pvehealth.checks.base import CheckContext
from pvehealth.core.thresholds import ThresholdPair


async def check_memory(ctx: CheckContext) -> bool:
    cfg = ctx.config.memory
    mem = ctx.probe.memory_percent()
    swap = ctx.probe.swap_percent()
    mem_ok = await ctx.report("mem", cfg.memory.classify(mem), "Memory usage", f"{mem:.0f}%")
    swap_ok = await ctx.report("swap", cfg.swap.classify(swap), "Swap usage", f"{swap:.0f}%")
    return mem_ok and swap_ok


def load_thresholds(auto_detect: bool, configured: ThresholdPair, cores: int) -> ThresholdPair:
    """With auto-detection, warn at one runnable task per core and go
    critical at two."""
    if not auto_detect:
        return configured
    return ThresholdPair(warning=cores, critical=cores * 2)


async def check_load_average(ctx: CheckContext) -> bool:
    cfg = ctx.config.load
    cores = ctx.probe.cpu_count()
    thresholds = load_thresholds(cfg.auto_detect, cfg.thresholds, cores)
    load = ctx.probe.load_average()
    return await ctx.report(
        "load", thresholds.classify(load), "Load average", f"{load:.2f} (cores: {cores})"
    )


async def check_iowait(ctx: CheckContext) -> bool:
    """I/O wait over a short window, from two cumulative tick samples."""
    cfg = ctx.config.iowait
    first = ctx.probe.cpu_ticks()
    await ctx.sleep(cfg.sample_secs)
    second = ctx.probe.cpu_ticks()

    delta_total = second.total - first.total
    delta_iowait = second.iowait - first.iowait
    pct = 100.0 * delta_iowait / delta_total if delta_total > 0 else 0.0
    return await ctx.report("iowait", cfg.thresholds.classify(pct), "I/O wait", f"{pct:.0f}%")
