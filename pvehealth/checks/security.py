"""SSH anomaly and kernel/system event checks over a recent journal window."""

from __future__ import annotations

import re

from pvehealth.checks.base import CheckContext
from pvehealth.core.exceptions import SamplingError
from pvehealth.core.types import CommandResult, Severity

JOURNAL_TIMEOUT_SECS = 10.0

_OOM_RE = re.compile(r"out of memory|oom-killer|killed process", re.IGNORECASE)
_DUP_IP_RE = re.compile(r"duplicate address|arp.*duplicate", re.IGNORECASE)


async def _journal(ctx: CheckContext, window_minutes: int, *args: str) -> str:
    result: CommandResult = await ctx.run(
        ["journalctl", "-q", "--no-pager", "-S", f"-{window_minutes}min", *args],
        timeout=JOURNAL_TIMEOUT_SECS,
    )
    # journalctl exits 1 when no unit matches; output is still meaningful.
    if result.returncode not in (0, 1):
        raise SamplingError(f"journalctl failed: {result.stderr.strip()}")
    return result.stdout


async def check_ssh_security(ctx: CheckContext) -> bool:
    cfg = ctx.config.ssh
    clean = True

    log = await _journal(ctx, cfg.window_minutes, "-u", "ssh", "-u", "sshd")
    failed = log.count("Failed password")
    window = f"{cfg.window_minutes}m"
    if failed >= cfg.failed_login_threshold:
        await ctx.dispatcher.alert_once(
            "ssh-bruteforce",
            Severity.WARNING,
            f"High SSH failures: {failed} in last {window}",
            "SSH failures back to normal",
        )
        clean = False
    else:
        await ctx.dispatcher.alert_clear(
            "ssh-bruteforce", f"SSH failures normal: {failed} in last {window}"
        )

    ss = await ctx.run(["ss", "-Htan", "state", "established", f"( sport = :{cfg.port} )"])
    if not ss.ok:
        raise SamplingError(f"ss failed: {ss.stderr.strip()}")
    # With a state filter ss drops the State column, so count rows instead.
    conns = len([line for line in ss.stdout.splitlines() if line.strip()])
    if conns >= cfg.connection_threshold:
        await ctx.dispatcher.alert_once(
            "ssh-conns",
            Severity.WARNING,
            f"High SSH connections: {conns}",
            "SSH connections back to normal",
        )
        clean = False
    else:
        await ctx.dispatcher.alert_clear("ssh-conns", f"SSH connections normal: {conns}")
    return clean


async def check_system_events(ctx: CheckContext) -> bool:
    cfg = ctx.config.system_events
    clean = True

    kernel = await _journal(ctx, cfg.window_minutes, "-k")
    if _OOM_RE.search(kernel):
        await ctx.dispatcher.alert_once(
            "oom",
            Severity.CRITICAL,
            f"OOM kill detected in last {cfg.window_minutes} minutes",
            "OOM condition cleared",
        )
        clean = False
    else:
        await ctx.dispatcher.alert_clear("oom", "No OOM kills detected")

    system = await _journal(ctx, cfg.window_minutes)
    if _DUP_IP_RE.search(system):
        await ctx.dispatcher.alert_once(
            "dup-ip",
            Severity.WARNING,
            "Duplicate IP/ARP issue detected",
            "Duplicate IP condition cleared",
        )
        clean = False
    else:
        await ctx.dispatcher.alert_clear("dup-ip", "No duplicate IP issues detected")
    return clean
