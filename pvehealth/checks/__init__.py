"""Checks module — host probe, check catalog and engine."""

from pvehealth.checks.base import CheckContext, CheckSpec, run_with_retry
from pvehealth.checks.engine import CHECKS, CheckEngine
from pvehealth.checks.probe import CpuTicks, DiskUsage, HostProbe, InterfaceErrors

__all__ = [
    "CHECKS",
    "CheckContext",
    "CheckEngine",
    "CheckSpec",
    "CpuTicks",
    "DiskUsage",
    "HostProbe",
    "InterfaceErrors",
    "run_with_retry",
]
