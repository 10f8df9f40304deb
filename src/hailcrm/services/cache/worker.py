"""Background cache worker reached only through message passing.

The worker thread owns the cache directory. Callers post a
:class:`CacheMessage` and wait on the message's own reply queue; every request
gets exactly one reply.
"""

from __future__ import annotations

import json
import logging
import os
import queue
import re
import shutil
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from ...config import settings

logger = logging.getLogger(__name__)

_SAFE_NAME = re.compile(r"[^A-Za-z0-9_.-]")


class CacheMessageType(str, Enum):
    CACHE_ROUTE = "CACHE_ROUTE"
    CACHE_LEADS = "CACHE_LEADS"
    CLEAR_CACHE = "CLEAR_CACHE"
    GET_CACHE_SIZE = "GET_CACHE_SIZE"


class WorkerUnavailable(RuntimeError):
    """The worker is not running or did not answer in time."""


@dataclass(slots=True)
class CacheMessage:
    type: str
    data: Any = None
    reply: "queue.Queue[dict]" = field(default_factory=lambda: queue.Queue(maxsize=1))


class CacheWorker:
    def __init__(self, root: Path | None = None, version: str | None = None) -> None:
        self.root = Path(root or settings.cache_root)
        self.version = version or settings.cache_version
        self.buckets = {
            name: f"{self.version}-{name}" for name in ("static", "routes", "leads", "maps")
        }
        self._inbox: "queue.Queue[Optional[CacheMessage]]" = queue.Queue()
        self._thread: threading.Thread | None = None
        self._handlers: dict[str, Callable[[Any], dict]] = {
            CacheMessageType.CACHE_ROUTE.value: self._cache_route,
            CacheMessageType.CACHE_LEADS.value: self._cache_leads,
            CacheMessageType.CLEAR_CACHE.value: self._clear_cache,
            CacheMessageType.GET_CACHE_SIZE.value: self._cache_size,
        }

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_alive:
            return
        self.root.mkdir(parents=True, exist_ok=True)
        self._remove_stale_buckets()
        self._thread = threading.Thread(target=self._run, name="cache-worker", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        if self._thread is None:
            return
        self._inbox.put(None)
        self._thread.join(timeout)
        self._thread = None

    def post(self, message: CacheMessage) -> None:
        if not self.is_alive:
            raise WorkerUnavailable("Cache worker is not running.")
        self._inbox.put(message)

    def request(self, message_type: CacheMessageType | str, data: Any = None, timeout: float | None = None) -> dict:
        """Post a message and block for its reply, raising WorkerUnavailable on timeout."""
        message_type = CacheMessageType(message_type).value
        message = CacheMessage(type=message_type, data=data)
        self.post(message)
        wait = timeout if timeout is not None else settings.worker_timeout_seconds
        try:
            return message.reply.get(timeout=wait)
        except queue.Empty as exc:
            raise WorkerUnavailable(f"No reply to {message_type} within {wait:.1f}s") from exc

    def _run(self) -> None:
        while True:
            message = self._inbox.get()
            if message is None:
                break
            message.reply.put(self._handle(message))

    def _handle(self, message: CacheMessage) -> dict:
        handler = self._handlers.get(message.type)
        if handler is None:
            logger.warning(f"Unknown cache message type: {message.type}")
            return {"success": False, "error": f"Unknown message type: {message.type}"}
        try:
            return handler(message.data)
        except Exception as exc:
            logger.error(f"Cache worker failed to handle {message.type}: {exc}")
            return {"success": False, "error": str(exc)}

    def _bucket(self, name: str) -> Path:
        return self.root / self.buckets[name]

    def _write_entry(self, bucket: str, entry_id: Any, data: Any) -> None:
        directory = self._bucket(bucket)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{_SAFE_NAME.sub('_', str(entry_id))}.json"
        tmp_path = path.with_suffix(".json.tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, ensure_ascii=False, default=str)
        os.replace(tmp_path, path)

    def _cache_route(self, route: Any) -> dict:
        if not isinstance(route, dict) or route.get("id") is None:
            raise ValueError("Route data must be a mapping with an 'id'.")
        self._write_entry("routes", route["id"], route)
        logger.info(f"Cached route data: {route['id']}")
        return {"success": True}

    def _cache_leads(self, leads: Any) -> dict:
        if not isinstance(leads, list):
            raise ValueError("Leads data must be a list.")
        for lead in leads:
            if not isinstance(lead, dict) or lead.get("id") is None:
                raise ValueError("Every cached lead needs an 'id'.")
            self._write_entry("leads", lead["id"], lead)
        logger.info(f"Cached leads data: {len(leads)}")
        return {"success": True}

    def _clear_cache(self, _: Any = None) -> dict:
        if self.root.exists():
            for path in self.root.iterdir():
                if path.is_dir():
                    shutil.rmtree(path)
                else:
                    path.unlink()
        logger.info("Cleared all caches")
        return {"success": True}

    def _cache_size(self, _: Any = None) -> dict:
        total = 0
        if self.root.exists():
            total = sum(path.stat().st_size for path in self.root.rglob("*") if path.is_file())
        return {
            "size": total,
            "routes": self._count_entries("routes"),
            "leads": self._count_entries("leads"),
        }

    def _count_entries(self, bucket: str) -> int:
        directory = self._bucket(bucket)
        if not directory.exists():
            return 0
        return sum(1 for _ in directory.glob("*.json"))

    def _remove_stale_buckets(self) -> None:
        current = set(self.buckets.values())
        for path in self.root.iterdir():
            if path.is_dir() and path.name not in current:
                logger.info(f"Deleting old cache: {path.name}")
                shutil.rmtree(path, ignore_errors=True)
