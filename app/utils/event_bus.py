"""
In-process EventBus singleton shared by the dispatcher, the device monitor
and the notification pipeline.

Key invariants (enforced by call sites + tests):
  - Event topics come from enums in app.enums.events (EventType).
  - Payloads are Pydantic models / dataclasses from app.schemas.events.
  - Subscribers always receive a plain dict payload.
  - Publishing never blocks; when the queue is full the event is dropped
    and counted.
"""
import logging
import threading
import time
from collections import defaultdict
from dataclasses import asdict, is_dataclass
from enum import Enum
from queue import Full, Queue
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel

from app.config import load_config
from app.enums.events import EventType

logger = logging.getLogger(__name__)

_DROP_WARNING_INTERVAL_SECONDS = 60


def _topic(event_name: EventType | str) -> str:
    return event_name.value if isinstance(event_name, Enum) else event_name


def _normalize(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump()
    if is_dataclass(data) and not isinstance(data, type):
        return asdict(data)
    return data


class EventBus:
    """
    Topic based publish/subscribe with a small worker pool.

    Singleton so publishers/subscribers share the same routing table.
    """

    _instance: Optional["EventBus"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "EventBus":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    config = load_config()
                    instance = super().__new__(cls)
                    instance.subscribers = defaultdict(list)
                    instance._queue_size = config.eventbus_queue_size
                    instance._queue = Queue(maxsize=instance._queue_size)
                    instance._worker_count = config.eventbus_worker_count
                    instance._workers_started = False
                    instance._dropped_events = 0
                    instance._last_drop_warning = 0.0
                    instance.lock = threading.Lock()
                    cls._instance = instance
        return cls._instance

    def __init__(self) -> None:
        if not self._workers_started:
            self._start_workers()

    def _start_workers(self) -> None:
        with self.lock:
            if self._workers_started:
                return
            for index in range(self._worker_count):
                worker = threading.Thread(
                    target=self._worker_loop,
                    name=f"eventbus-worker-{index}",
                    daemon=True,
                )
                worker.start()
            self._workers_started = True
            logger.info(
                "EventBus workers started (pool=%s queue=%s)",
                self._worker_count,
                self._queue_size,
            )

    def subscribe(self, event_name: EventType | str, callback: Callable[[Any], None]) -> Callable[[], None]:
        """
        Subscribe *callback* to a topic.

        Returns a function that removes the subscription again.
        """
        name = _topic(event_name)
        with self.lock:
            self.subscribers[name].append(callback)

        def unsubscribe() -> None:
            with self.lock:
                callbacks = self.subscribers.get(name, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def _worker_loop(self) -> None:
        while True:
            event_name, callback, payload = self._queue.get()
            try:
                callback(payload)
            except Exception as exc:
                logger.error("Error in callback for event %s: %s", event_name, exc, exc_info=True)
            finally:
                self._queue.task_done()

    def publish(self, event_name: EventType | str, data: Any | None = None) -> None:
        """
        Queue *data* for every subscriber of *event_name*.

        Args:
            event_name: The enum topic (preferred) or raw string.
            data: Payload object (Pydantic model, dataclass, or dict/primitive).
        """
        name = _topic(event_name)
        payload = _normalize(data)

        with self.lock:
            callbacks = list(self.subscribers.get(name, []))
        for callback in callbacks:
            try:
                self._queue.put_nowait((name, callback, payload))
            except Full:
                self._record_drop(name)
                break

    def _record_drop(self, event_name: str) -> None:
        self._dropped_events += 1
        now = time.monotonic()
        if now - self._last_drop_warning >= _DROP_WARNING_INTERVAL_SECONDS:
            logger.warning(
                "EventBus dropping events (queue_size=%d, total_dropped=%d, last=%s). "
                "Consider increasing GREENHOUSE_EVENTBUS_QUEUE_SIZE.",
                self._queue_size,
                self._dropped_events,
                event_name,
            )
            self._last_drop_warning = now

    def get_metrics(self) -> Dict[str, Any]:
        """Return lightweight metrics for health endpoints/logging."""
        with self.lock:
            subscriber_count = sum(len(values) for values in self.subscribers.values())
        return {
            "queue_depth": self._queue.qsize(),
            "queue_size": self._queue_size,
            "dropped_events": self._dropped_events,
            "subscribers": subscriber_count,
        }
