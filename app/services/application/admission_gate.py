"""
Online-admission gate
=====================

Refuses to dispatch commands to devices that are not online. The online flag
is cached briefly per ``(project, greenhouse)``. Each device status monitor
pass refreshes the entries it polls; once an entry is older than the cache
TTL the next admission probes the device itself. A hard transport failure
drops the entry so the following command re-probes.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Optional, Protocol, Tuple

from app.domain.exceptions import DeviceOfflineError
from app.utils.concurrency import synchronized

logger = logging.getLogger(__name__)


class OnlineProbe(Protocol):
    def is_online(
        self,
        project_key: str,
        gh_key: str,
        *,
        offline_threshold_s: float = ...,
        telemetry_fresh_s: float = ...,
    ) -> bool: ...


class AdmissionGate:
    """Caches device online status and answers ``admit(project, device)``."""

    def __init__(
        self,
        probe: OnlineProbe,
        *,
        cache_ttl_s: float = 5.0,
        offline_threshold_s: float = 180,
        telemetry_fresh_s: float = 120,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._probe = probe
        self._cache_ttl_s = cache_ttl_s
        self._offline_threshold_s = offline_threshold_s
        self._telemetry_fresh_s = telemetry_fresh_s
        self._clock = clock
        self._cache: Dict[Tuple[str, str], Tuple[bool, float]] = {}
        self._lock = threading.Lock()

    @synchronized
    def _cached(self, key: Tuple[str, str]) -> Optional[bool]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        online, checked_at = entry
        if self._clock() - checked_at > self._cache_ttl_s:
            return None
        return online

    @synchronized
    def record_status(self, project_key: str, gh_key: str, online: bool) -> None:
        """Seed the cache from an external observation (the device monitor)."""
        self._cache[(project_key, gh_key)] = (online, self._clock())

    @synchronized
    def invalidate(self, project_key: str, gh_key: str) -> None:
        self._cache.pop((project_key, gh_key), None)

    def is_online(self, project_key: str, gh_key: str, *, use_cache: bool = True) -> bool:
        key = (project_key, gh_key)
        if use_cache:
            cached = self._cached(key)
            if cached is not None:
                return cached
        online = self._probe.is_online(
            project_key,
            gh_key,
            offline_threshold_s=self._offline_threshold_s,
            telemetry_fresh_s=self._telemetry_fresh_s,
        )
        self.record_status(project_key, gh_key, online)
        return online

    def admit(self, project_key: str, gh_key: str) -> bool:
        admitted = self.is_online(project_key, gh_key)
        if not admitted:
            logger.info("Admission refused for %s/%s: device offline", project_key, gh_key)
        return admitted

    def ensure_admitted(self, project_key: str, gh_key: str) -> None:
        if not self.admit(project_key, gh_key):
            raise DeviceOfflineError(f"Device {project_key}/{gh_key} is offline")
