"""Explicit construction of the offline service graph.

Everything is built once per application and handed to consumers, so tests
can swap the remote API or point storage at a temporary directory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import settings
from .persistence.filesystem import FileStorage
from .persistence.queue import OfflineQueue
from .services.cache import CacheWorker, OfflineCacheManager
from .services.remote import RemoteApi, SupabaseRemote
from .services.sync import (
    ConnectivityMonitor,
    ConnectivityProbe,
    OfflineSyncCoordinator,
    SyncReconciler,
)

logger = logging.getLogger(__name__)


@dataclass
class OfflineServices:
    queue: OfflineQueue
    remote: RemoteApi
    monitor: ConnectivityMonitor
    reconciler: SyncReconciler
    cache_worker: CacheWorker
    cache_manager: OfflineCacheManager
    coordinator: OfflineSyncCoordinator
    probe: Optional[ConnectivityProbe] = None

    def start(self) -> None:
        self.cache_worker.start()
        if self.probe is not None:
            self.probe.start()

    def stop(self) -> None:
        if self.probe is not None:
            self.probe.stop()
        self.coordinator.close()
        self.cache_worker.stop()


def build_services(
    remote: RemoteApi | None = None,
    *,
    data_root: Path | None = None,
    queue_path: Path | None = None,
    cache_root: Path | None = None,
    probe_url: str | None = None,
    initial_online: bool = True,
    auto_sync_delay: float | None = None,
    worker_timeout: float | None = None,
    max_sync_attempts: int | None = None,
) -> OfflineServices:
    if data_root is not None:
        root = data_root
        queue_path = queue_path or root / "offline_queue.sqlite3"
        cache_root = cache_root or root / "cache"
    else:
        root = settings.data_root

    queue = OfflineQueue(queue_path)
    remote = remote or SupabaseRemote()
    monitor = ConnectivityMonitor(initial_online=initial_online)
    reconciler = SyncReconciler(queue, remote, max_attempts=max_sync_attempts)
    cache_worker = CacheWorker(root=cache_root)
    cache_manager = OfflineCacheManager(cache_worker, FileStorage(root=root), timeout=worker_timeout)
    coordinator = OfflineSyncCoordinator(
        reconciler,
        monitor,
        queue,
        cache_manager=cache_manager,
        auto_sync_delay=auto_sync_delay,
    )

    probe = None
    url = probe_url or settings.probe_url
    if url:
        probe = ConnectivityProbe(monitor, url=url)
    else:
        logger.info("No connectivity URL configured; relying on events pushed by the client shell")

    return OfflineServices(
        queue=queue,
        remote=remote,
        monitor=monitor,
        reconciler=reconciler,
        cache_worker=cache_worker,
        cache_manager=cache_manager,
        coordinator=coordinator,
        probe=probe,
    )
