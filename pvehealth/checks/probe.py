"""HostProbe — psutil-backed sampling of local host metrics."""

from __future__ import annotations

import os

import psutil
from pydantic import BaseModel

from pvehealth.core.exceptions import SamplingError


class CpuTicks(BaseModel):
    """Cumulative CPU time counters (seconds since boot)."""

    total: float
    iowait: float


class DiskUsage(BaseModel):
    total: int
    free: int
    percent: float


class InterfaceErrors(BaseModel):
    """Cumulative per-interface error counters."""

    rx: int
    tx: int


class HostProbe:
    """Reads metrics from the running host.

    Every method raises ``SamplingError`` when the metric cannot be read,
    so checks never mistake a failed read for a healthy zero.
    """

    def disk_usage(self, path: str) -> DiskUsage:
        try:
            usage = psutil.disk_usage(path)
        except OSError as exc:
            raise SamplingError(f"disk usage unavailable for {path}: {exc}") from exc
        return DiskUsage(total=usage.total, free=usage.free, percent=usage.percent)

    def disk_percent(self, path: str) -> float:
        return self.disk_usage(path).percent

    def memory_percent(self) -> float:
        return float(psutil.virtual_memory().percent)

    def swap_percent(self) -> float:
        swap = psutil.swap_memory()
        if swap.total == 0:
            return 0.0
        return float(swap.percent)

    def load_average(self) -> float:
        """One-minute load average."""
        try:
            return float(os.getloadavg()[0])
        except OSError as exc:
            raise SamplingError(f"load average unavailable: {exc}") from exc

    def cpu_count(self) -> int:
        return psutil.cpu_count(logical=True) or 1

    def cpu_ticks(self) -> CpuTicks:
        times = psutil.cpu_times()
        iowait = float(getattr(times, "iowait", 0.0))
        # guest/guest_nice are already included in user/nice.
        total = sum(
            float(getattr(times, field, 0.0))
            for field in ("user", "nice", "system", "idle", "iowait", "irq", "softirq", "steal")
        )
        return CpuTicks(total=total, iowait=iowait)

    def interfaces_up(self) -> dict[str, bool]:
        return {name: stats.isup for name, stats in psutil.net_if_stats().items()}

    def interface_errors(self) -> dict[str, InterfaceErrors]:
        """Error counters for every interface that is up."""
        up = self.interfaces_up()
        counters = psutil.net_io_counters(pernic=True)
        return {
            name: InterfaceErrors(rx=c.errin, tx=c.errout)
            for name, c in counters.items()
            if up.get(name, False)
        }
