"""Online/offline detection and listener management."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, Optional

import httpx

from ...config import settings

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class ConnectivityEvent(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class ConnectivityMonitor:
    """Fans connectivity events out to registered listeners.

    Every dispatched event reaches every listener of that type; a flap
    (offline then online) therefore produces two notifications.
    """

    def __init__(self, initial_online: bool = True) -> None:
        self._online = initial_online
        self._listeners: dict[ConnectivityEvent, list[Listener]] = {
            ConnectivityEvent.ONLINE: [],
            ConnectivityEvent.OFFLINE: [],
        }
        self._lock = threading.Lock()

    @property
    def is_online(self) -> bool:
        return self._online

    def listener_count(self, event: ConnectivityEvent | str | None = None) -> int:
        with self._lock:
            if event is None:
                return sum(len(listeners) for listeners in self._listeners.values())
            return len(self._listeners[ConnectivityEvent(event)])

    def add_listener(self, event: ConnectivityEvent | str, callback: Listener) -> None:
        with self._lock:
            self._listeners[ConnectivityEvent(event)].append(callback)

    def remove_listener(self, event: ConnectivityEvent | str, callback: Listener) -> None:
        with self._lock:
            listeners = self._listeners[ConnectivityEvent(event)]
            if callback in listeners:
                listeners.remove(callback)

    def subscribe(
        self,
        on_online: Optional[Listener] = None,
        on_offline: Optional[Listener] = None,
    ) -> Callable[[], None]:
        """Register listeners and return a disposer that removes exactly those listeners."""
        added: list[tuple[ConnectivityEvent, Listener]] = []
        if on_online is not None:
            self.add_listener(ConnectivityEvent.ONLINE, on_online)
            added.append((ConnectivityEvent.ONLINE, on_online))
        if on_offline is not None:
            self.add_listener(ConnectivityEvent.OFFLINE, on_offline)
            added.append((ConnectivityEvent.OFFLINE, on_offline))

        def dispose() -> None:
            while added:
                event, callback = added.pop()
                self.remove_listener(event, callback)

        return dispose

    def dispatch(self, event: ConnectivityEvent | str) -> None:
        event = ConnectivityEvent(event)
        with self._lock:
            self._online = event is ConnectivityEvent.ONLINE
            listeners = list(self._listeners[event])
        logger.info(f"Connectivity changed: {event.value}")
        for callback in listeners:
            try:
                callback()
            except Exception:
                logger.exception(f"Connectivity listener failed while handling '{event.value}'")


class ConnectivityProbe:
    """Polls a URL and dispatches an event on each observed online/offline change."""

    def __init__(
        self,
        monitor: ConnectivityMonitor,
        url: str | None = None,
        interval: float | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.monitor = monitor
        self.url = url or settings.probe_url
        if not self.url:
            raise ValueError("Connectivity probe URL is not configured.")
        self.interval = interval if interval is not None else settings.connectivity_poll_seconds
        self.timeout = timeout if timeout is not None else settings.connectivity_timeout_seconds
        self._transport = transport
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def _reachable(self) -> bool:
        with httpx.Client(timeout=httpx.Timeout(self.timeout), transport=self._transport) as client:
            try:
                response = client.head(self.url)
                if response.status_code == 405:
                    response = client.get(self.url)
            except httpx.HTTPError as exc:
                logger.debug(f"Connectivity probe to {self.url} failed: {exc}")
                return False
        return response.status_code < 500

    def check_once(self) -> bool:
        online = self._reachable()
        if online != self.monitor.is_online:
            self.monitor.dispatch(ConnectivityEvent.ONLINE if online else ConnectivityEvent.OFFLINE)
        return online

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.check_once()
            except Exception:
                logger.exception("Connectivity probe iteration failed")
            self._stop.wait(self.interval)

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="connectivity-probe", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None
