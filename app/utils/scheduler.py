"""
Timer scheduling
================

A tiny clock + one-shot timer abstraction used by the operator-side control
client. Production code uses :class:`ThreadingScheduler`; tests use
:class:`ManualScheduler` and move virtual time forward with ``advance()``.

``TimerHandle.cancel()`` is idempotent and cancelling a timer that already
fired is a no-op.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from typing import Callable, List, Protocol, Tuple

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...

    @property
    def cancelled(self) -> bool: ...


class Scheduler(Protocol):
    def now(self) -> float: ...

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle: ...


def _run_callback(callback: Callable[[], None]) -> None:
    try:
        callback()
    except Exception:
        logger.exception("Scheduled callback %r failed", callback)


class _ThreadTimerHandle:
    def __init__(self, timer: threading.Timer) -> None:
        self._timer = timer
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True
        self._timer.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ThreadingScheduler:
    """Wall-clock scheduler backed by daemon ``threading.Timer`` objects."""

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> _ThreadTimerHandle:
        timer = threading.Timer(max(0.0, delay_s), _run_callback, args=(callback,))
        timer.daemon = True
        timer.start()
        return _ThreadTimerHandle(timer)


class _ManualTimerHandle:
    def __init__(self) -> None:
        self._cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler:
    """Virtual clock. Nothing fires until :meth:`advance` is called."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._seq = itertools.count()
        self._queue: List[Tuple[float, int, _ManualTimerHandle, Callable[[], None]]] = []
        self._lock = threading.RLock()

    def now(self) -> float:
        return self._now

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> _ManualTimerHandle:
        handle = _ManualTimerHandle()
        with self._lock:
            heapq.heappush(self._queue, (self._now + max(0.0, delay_s), next(self._seq), handle, callback))
        return handle

    @property
    def pending(self) -> int:
        """Timers scheduled and neither fired nor cancelled."""
        with self._lock:
            return sum(1 for _, _, handle, _ in self._queue if not handle.cancelled)

    def advance(self, seconds: float) -> None:
        """Move time forward, firing due callbacks in deadline order.

        Callbacks scheduled while advancing fire too if they fall inside the window.
        """
        target = self._now + seconds
        while True:
            with self._lock:
                if not self._queue or self._queue[0][0] > target:
                    break
                due, _, handle, callback = heapq.heappop(self._queue)
            self._now = max(self._now, due)
            if handle.cancelled:
                continue
            handle.fired = True
            _run_callback(callback)
        self._now = target
