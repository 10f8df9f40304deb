"""Ties connectivity changes to sync passes."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Optional

from ...config import settings
from ...persistence.queue import OfflineQueue
from .connectivity import ConnectivityMonitor
from .models import SyncReport
from .reconciler import ProgressCallback, SyncInProgressError, SyncReconciler

if TYPE_CHECKING:
    from ..cache.manager import OfflineCacheManager

logger = logging.getLogger(__name__)


class OfflineSyncCoordinator:
    """Runs a sync pass shortly after the connection comes back, or on demand."""

    def __init__(
        self,
        reconciler: SyncReconciler,
        monitor: ConnectivityMonitor,
        queue: OfflineQueue,
        cache_manager: Optional["OfflineCacheManager"] = None,
        auto_sync_delay: Optional[float] = None,
    ) -> None:
        self.reconciler = reconciler
        self.monitor = monitor
        self.queue = queue
        self.cache_manager = cache_manager
        self.auto_sync_delay = settings.auto_sync_delay_seconds if auto_sync_delay is None else auto_sync_delay
        self._timer: threading.Timer | None = None
        self._timer_lock = threading.Lock()
        self._dispose = monitor.subscribe(on_online=self._handle_online, on_offline=self._handle_offline)

    @property
    def is_online(self) -> bool:
        return self.monitor.is_online

    @property
    def is_syncing(self) -> bool:
        return self.reconciler.is_running

    def pending_count(self) -> int:
        return self.queue.pending_count()

    def sync_now(self, on_progress: Optional[ProgressCallback] = None) -> SyncReport | None:
        """Run one pass. Returns None when offline or when a pass is already running."""
        if not self.is_online:
            logger.info("Skipping sync while offline")
            return None
        try:
            report = self.reconciler.sync(on_progress)
        except SyncInProgressError:
            logger.info("Sync already in progress")
            return None

        if report.synced:
            logger.info(f"Successfully synced {report.synced} item(s)")
        if report.failed:
            logger.warning(f"Failed to sync {report.failed} item(s)")
        if self.cache_manager is not None and report.finished_at is not None:
            self.cache_manager.record_sync(report.finished_at)
        return report

    def _handle_online(self) -> None:
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.auto_sync_delay, self._run_scheduled)
            self._timer.daemon = True
            self._timer.start()

    def _handle_offline(self) -> None:
        logger.warning("Working offline")
        self._cancel_timer()

    def _run_scheduled(self) -> None:
        try:
            self.sync_now()
        except Exception:
            logger.exception("Automatic sync after reconnect failed")

    def _cancel_timer(self) -> None:
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def wait_for_scheduled_sync(self, timeout: float | None = None) -> None:
        """Block until a scheduled automatic pass (if any) has finished."""
        with self._timer_lock:
            timer = self._timer
        if timer is not None:
            timer.join(timeout)

    def close(self) -> None:
        self._dispose()
        self._cancel_timer()
