"""Offline sync: connectivity detection, queue reconciliation and coordination."""

from .connectivity import ConnectivityEvent, ConnectivityMonitor, ConnectivityProbe
from .coordinator import OfflineSyncCoordinator
from .models import SyncItemError, SyncReport
from .reconciler import SyncInProgressError, SyncReconciler

__all__ = [
    "ConnectivityEvent",
    "ConnectivityMonitor",
    "ConnectivityProbe",
    "OfflineSyncCoordinator",
    "SyncInProgressError",
    "SyncItemError",
    "SyncReconciler",
    "SyncReport",
]
