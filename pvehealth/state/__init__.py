"""State module — alert, baseline and maintenance stores plus the run lock."""

from pvehealth.state.base import AlertStateStore, BaselineStore, MaintenanceStore
from pvehealth.state.files import (
    JsonAlertStateStore,
    JsonBaselineStore,
    JsonMaintenanceStore,
)
from pvehealth.state.lock import RunLock
from pvehealth.state.memory import (
    MemoryAlertStateStore,
    MemoryBaselineStore,
    MemoryMaintenanceStore,
)

__all__ = [
    "AlertStateStore",
    "BaselineStore",
    "JsonAlertStateStore",
    "JsonBaselineStore",
    "JsonMaintenanceStore",
    "MaintenanceStore",
    "MemoryAlertStateStore",
    "MemoryBaselineStore",
    "MemoryMaintenanceStore",
    "RunLock",
]
