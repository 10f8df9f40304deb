"""Offline cache: background worker and route download manager."""

from .manager import CacheStats, OfflineCacheManager
from .worker import CacheMessage, CacheMessageType, CacheWorker, WorkerUnavailable

__all__ = [
    "CacheMessage",
    "CacheMessageType",
    "CacheStats",
    "CacheWorker",
    "OfflineCacheManager",
    "WorkerUnavailable",
]
