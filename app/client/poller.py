"""
Attribute Poller
================

Periodically fetches a greenhouse's attributes and hands them to subscribers
(normally a :class:`~app.client.state_machine.DeviceControlCoordinator`).

A failed fetch is logged and skipped; the next tick tries again. After a
dispatch the coordinator asks for a debounced refetch so the platform has a
moment to reflect the new value; a newer request replaces a pending one.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional

from app.utils.concurrency import synchronized
from app.utils.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

Subscriber = Callable[[Mapping[str, Any]], Any]


class AttributePoller:
    def __init__(
        self,
        fetch: Callable[[], Mapping[str, Any]],
        scheduler: Scheduler,
        interval_s: float = 5.0,
    ) -> None:
        if interval_s <= 0:
            raise ValueError("Poll interval must be positive")
        self._fetch = fetch
        self._scheduler = scheduler
        self.interval_s = interval_s
        self._subscribers: List[Subscriber] = []
        self._lock = threading.RLock()
        self._running = False
        self._tick_timer: Optional[TimerHandle] = None
        self._refetch_timer: Optional[TimerHandle] = None
        self.last_attributes: Optional[Dict[str, Any]] = None
        self.consecutive_failures = 0

    @synchronized
    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    @property
    def is_running(self) -> bool:
        return self._running

    @synchronized
    def start(self) -> None:
        """Begin polling; the first fetch is due immediately."""
        if self._running:
            return
        self._running = True
        self._tick_timer = self._scheduler.call_later(0, self._tick)

    @synchronized
    def stop(self) -> None:
        self._running = False
        for timer in (self._tick_timer, self._refetch_timer):
            if timer is not None:
                timer.cancel()
        self._tick_timer = None
        self._refetch_timer = None

    def _tick(self) -> None:
        if not self._running:
            return
        self.refresh_now()
        with self._lock:
            if self._running:
                self._tick_timer = self._scheduler.call_later(self.interval_s, self._tick)

    @synchronized
    def schedule_refetch(self, delay_s: float) -> None:
        """Fetch once after *delay_s*, replacing any pending refetch."""
        if self._refetch_timer is not None:
            self._refetch_timer.cancel()
        self._refetch_timer = self._scheduler.call_later(delay_s, self._run_refetch)

    def _run_refetch(self) -> None:
        with self._lock:
            self._refetch_timer = None
        self.refresh_now()

    def refresh_now(self) -> Optional[Dict[str, Any]]:
        """Fetch and publish immediately. Returns None when the fetch failed."""
        try:
            attributes = dict(self._fetch() or {})
        except Exception as exc:
            with self._lock:
                self.consecutive_failures += 1
                failures = self.consecutive_failures
            logger.warning("Attribute fetch failed (%d in a row): %s", failures, exc)
            return None

        with self._lock:
            self.consecutive_failures = 0
            self.last_attributes = attributes
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(attributes)
            except Exception:
                logger.exception("Attribute subscriber %r failed", callback)
        return attributes


__all__ = ["AttributePoller"]
