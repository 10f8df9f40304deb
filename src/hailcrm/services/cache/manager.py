"""Offline route downloads on top of the background cache worker."""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Sequence

from ...config import settings
from ...models.domain import CachedRoute
from ...persistence.filesystem import FileStorage
from .worker import CacheMessageType, CacheWorker, WorkerUnavailable

logger = logging.getLogger(__name__)

OFFLINE_ROUTES_KEY = "offline-routes"
LAST_SYNC_KEY = "offline-last-sync"


@dataclass(slots=True)
class CacheStats:
    total_size: int = 0
    route_count: int = 0
    lead_count: int = 0
    last_sync: Optional[datetime] = None


def _parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


def _cached_route_from_dict(raw: Mapping[str, Any]) -> CachedRoute:
    return CachedRoute(
        id=str(raw["id"]),
        name=str(raw.get("name") or ""),
        stops=list(raw.get("stops") or []),
        total_distance=float(raw.get("total_distance") or 0),
        estimated_time=float(raw.get("estimated_time") or 0),
        cached_at=_parse_datetime(raw.get("cached_at")),
    )


def _cached_route_to_dict(route: CachedRoute) -> dict:
    data = asdict(route)
    data["cached_at"] = route.cached_at.isoformat() if route.cached_at else None
    return data


class OfflineCacheManager:
    """Downloads routes for offline use and reports what is cached.

    Worker failures never raise out of this class: optional offline features
    must not break the primary flows, so callers get ``False`` or empty values.
    """

    def __init__(
        self,
        worker: CacheWorker | None,
        storage: FileStorage | None = None,
        timeout: float | None = None,
    ) -> None:
        self.worker = worker
        self.storage = storage or FileStorage()
        self.timeout = timeout if timeout is not None else settings.worker_timeout_seconds
        # Guards read-modify-write of the offline route metadata.
        self._routes_lock = threading.Lock()

    def _request(self, message_type: CacheMessageType, data: Any = None) -> dict:
        if self.worker is None:
            raise WorkerUnavailable("Cache worker not available.")
        return self.worker.request(message_type, data, timeout=self.timeout)

    def _request_success(self, message_type: CacheMessageType, data: Any = None) -> bool:
        try:
            reply = self._request(message_type, data)
        except WorkerUnavailable as exc:
            logger.warning(f"{message_type.value} skipped: {exc}")
            return False
        if not reply.get("success"):
            logger.warning(f"{message_type.value} failed: {reply.get('error')}")
            return False
        return True

    def cache_route(self, route: Mapping[str, Any]) -> bool:
        return self._request_success(CacheMessageType.CACHE_ROUTE, dict(route))

    def cache_leads(self, leads: Sequence[Mapping[str, Any]]) -> bool:
        return self._request_success(CacheMessageType.CACHE_LEADS, [dict(lead) for lead in leads])

    def download_route_for_offline(
        self,
        route_id: str,
        route_data: Mapping[str, Any],
        leads: Sequence[Mapping[str, Any]],
    ) -> bool:
        """Cache a route and its leads, then record it as available offline.

        Leads are cached before the route and the metadata entry is written
        last, so a listed route always has its leads cached.
        """
        route = {**route_data, "id": route_id}
        if not self.cache_leads(leads):
            return False
        if not self.cache_route(route):
            return False

        entry = CachedRoute(
            id=str(route_id),
            name=str(route.get("routeName") or route.get("name") or f"Route {route_id}"),
            stops=list(route.get("stops") or []),
            total_distance=float(route.get("totalDistance") or route.get("total_distance") or 0),
            estimated_time=float(route.get("estimatedTime") or route.get("estimated_time") or 0),
            cached_at=datetime.now(timezone.utc),
        )
        with self._routes_lock:
            routes = [existing for existing in self.get_offline_routes() if existing.id != entry.id]
            routes.append(entry)
            try:
                self._save_routes(routes)
            except OSError as exc:
                logger.error(f"Failed to record offline route {route_id}: {exc}")
                return False

        logger.info(f"Route downloaded for offline use: {route_id}")
        return True

    def get_offline_routes(self) -> list[CachedRoute]:
        raw = self.storage.read_json(OFFLINE_ROUTES_KEY, default=[])
        if not isinstance(raw, list):
            logger.warning("Offline route metadata is not a list; ignoring it")
            return []
        routes: list[CachedRoute] = []
        for item in raw:
            try:
                routes.append(_cached_route_from_dict(item))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(f"Skipping malformed offline route entry: {exc}")
        return routes

    def is_route_available(self, route_id: str) -> bool:
        return any(route.id == str(route_id) for route in self.get_offline_routes())

    def remove_offline_route(self, route_id: str) -> None:
        with self._routes_lock:
            routes = self.get_offline_routes()
            remaining = [route for route in routes if route.id != str(route_id)]
            if len(remaining) == len(routes):
                return
            try:
                self._save_routes(remaining)
            except OSError as exc:
                logger.error(f"Failed to remove offline route {route_id}: {exc}")
                return
        logger.info(f"Removed offline route: {route_id}")

    def clear_cache(self) -> bool:
        if not self._request_success(CacheMessageType.CLEAR_CACHE):
            return False
        try:
            with self._routes_lock:
                self.storage.delete(OFFLINE_ROUTES_KEY)
            self.storage.delete(LAST_SYNC_KEY)
        except OSError as exc:
            logger.error(f"Failed to clear offline route metadata: {exc}")
            return False
        return True

    def get_cache_stats(self) -> CacheStats:
        try:
            reply = self._request(CacheMessageType.GET_CACHE_SIZE)
        except WorkerUnavailable as exc:
            logger.warning(f"Cache stats unavailable: {exc}")
            return CacheStats()
        return CacheStats(
            total_size=int(reply.get("size") or 0),
            route_count=int(reply.get("routes") or 0),
            lead_count=int(reply.get("leads") or 0),
            last_sync=self.last_sync(),
        )

    def record_sync(self, when: datetime) -> None:
        try:
            self.storage.write_json(LAST_SYNC_KEY, when.isoformat())
        except OSError as exc:
            logger.warning(f"Could not record last sync time: {exc}")

    def last_sync(self) -> Optional[datetime]:
        return _parse_datetime(self.storage.read_json(LAST_SYNC_KEY))

    def _save_routes(self, routes: Sequence[CachedRoute]) -> None:
        self.storage.write_json(OFFLINE_ROUTES_KEY, [_cached_route_to_dict(route) for route in routes])
