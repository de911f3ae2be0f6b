"""CPU sensor, SMART health and drive temperature checks."""

from __future__ import annotations

import re

from pydantic import BaseModel

from pvehealth.checks.base import CheckContext
from pvehealth.core.types import Severity

SMART_TIMEOUT_SECS = 10.0

_SENSOR_RE = re.compile(r"\+(\d+(?:\.\d+)?)°C")
_NUMBER_RE = re.compile(r"(\d+)")


class BlockDevice(BaseModel):
    name: str
    rotational: bool = True

    @property
    def path(self) -> str:
        return f"/dev/{self.name}"

    @property
    def solid_state(self) -> bool:
        return self.name.startswith("nvme") or not self.rotational


def parse_sensors_max(output: str) -> float | None:
    """Highest current reading in ``sensors`` output (first value per line)."""
    readings = []
    for line in output.splitlines():
        match = _SENSOR_RE.search(line)
        if match:
            readings.append(float(match.group(1)))
    return max(readings) if readings else None


def parse_lsblk(output: str) -> list[BlockDevice]:
    """Parse ``lsblk -ndo NAME,TYPE,ROTA`` keeping whole disks only."""
    devices = []
    for line in output.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[1] == "disk":
            rota = parts[2] != "0" if len(parts) >= 3 else True
            devices.append(BlockDevice(name=parts[0], rotational=rota))
    return devices


def parse_smart_health(output: str) -> bool | None:
    """True/False for a SMART verdict, None if the device reports none."""
    for line in output.splitlines():
        if "overall-health" in line or "SMART Health Status" in line:
            return "PASSED" in line or line.rstrip().endswith("OK")
    return None


def parse_smart_temperature(output: str) -> int | None:
    for line in output.splitlines():
        if "Temperature_Celsius" in line:
            # ATA attribute table: the raw value is the tenth column.
            parts = line.split()
            if len(parts) >= 10 and parts[9].isdigit():
                return int(parts[9])
        elif line.startswith(("Temperature:", "Current Drive Temperature:", "Temperature Composite")):
            match = _NUMBER_RE.search(line.split(":", 1)[-1])
            if match:
                return int(match.group(1))
    return None


async def _check_cpu(ctx: CheckContext) -> bool:
    if not ctx.has("sensors"):
        return True
    result = await ctx.run(["sensors"], timeout=SMART_TIMEOUT_SECS)
    temp = parse_sensors_max(result.stdout)
    if temp is None:
        return True
    severity = ctx.config.temperatures.cpu.classify(temp)
    return await ctx.report("cpu-temp", severity, "CPU temperature", f"{temp:.0f}°C")


async def _check_disk(ctx: CheckContext, dev: BlockDevice) -> bool:
    cfg = ctx.config.temperatures
    clean = True

    health = await ctx.run(["smartctl", "-H", dev.path], timeout=SMART_TIMEOUT_SECS)
    verdict = parse_smart_health(health.stdout)
    if verdict is False:
        await ctx.dispatcher.alert_once(
            f"smart-{dev.name}",
            Severity.CRITICAL,
            f"SMART health problem on {dev.path}",
            f"SMART health restored on {dev.path}",
        )
        clean = False
    elif verdict is True:
        await ctx.dispatcher.alert_clear(f"smart-{dev.name}", f"SMART health OK on {dev.path}")

    attrs = await ctx.run(["smartctl", "-A", dev.path], timeout=SMART_TIMEOUT_SECS)
    temp = parse_smart_temperature(attrs.stdout)
    if temp is not None:
        pair, kind = (cfg.ssd, "SSD") if dev.solid_state else (cfg.hdd, "HDD")
        clean &= await ctx.report(
            f"temp-{dev.name}", pair.classify(temp), f"{kind} {dev.name} temperature", f"{temp}°C"
        )
    return clean


async def check_temperatures(ctx: CheckContext) -> bool:
    clean = await _check_cpu(ctx)
    if not ctx.has("smartctl") or not ctx.has("lsblk"):
        return clean
    listing = await ctx.run(["lsblk", "-ndo", "NAME,TYPE,ROTA"])
    for dev in parse_lsblk(listing.stdout):
        clean &= await _check_disk(ctx, dev)
    return clean
