# app/services/hardware/device_status_monitor.py
"""
Device Status Monitor
=====================
Periodically checks whether every greenhouse controller is online.

Features:
- In-memory status cache per greenhouse (online flag, last check, offline since)
- Greenhouses.device_status / last_online_at synced on first check and on change
- EventBus ``device.status_changed`` + Socket.IO broadcast on transitions
- Seeds the admission gate so command dispatch rarely has to probe the platform
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from app.enums.events import DeviceEvent
from app.schemas.events import DeviceStatusChangedPayload
from app.services.application.admission_gate import AdmissionGate
from app.utils.time import iso_now
from infrastructure.database.repositories.greenhouses import GreenhouseRepository

logger = logging.getLogger(__name__)


@dataclass
class DeviceStatus:
    greenhouse_id: int
    project_key: str
    gh_key: str
    online: bool
    last_checked: float
    offline_since: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "greenhouse_id": self.greenhouse_id,
            "project_key": self.project_key,
            "gh_key": self.gh_key,
            "online": self.online,
            "last_checked": self.last_checked,
            "offline_since": self.offline_since,
        }


class DeviceStatusMonitor:
    """Background sweep over all greenhouses bound to a gateway device."""

    def __init__(
        self,
        greenhouses: GreenhouseRepository,
        gate: AdmissionGate,
        *,
        interval_s: int = 30,
        event_bus: Any = None,
        emitter: Any = None,
        notifications: Any = None,
        clock: Callable[[], float] = time.time,
    ):
        self._greenhouses = greenhouses
        self._gate = gate
        self.interval_s = max(1, int(interval_s))
        self._event_bus = event_bus
        self._emitter = emitter
        self._notifications = notifications
        self._clock = clock

        self._statuses: Dict[int, DeviceStatus] = {}
        self._lock = threading.Lock()

        self._stop_event = threading.Event()
        self._worker_thread: Optional[threading.Thread] = None
        self._is_running = False

    # -------------------------------------------------------------------------
    # Lifecycle Management
    # -------------------------------------------------------------------------

    def start(self) -> bool:
        if self._is_running:
            return True
        self._stop_event.clear()
        self._worker_thread = threading.Thread(target=self._monitor_loop, name="DeviceStatusMonitor", daemon=True)
        self._worker_thread.start()
        self._is_running = True
        logger.info("Device status monitoring started (interval=%ss)", self.interval_s)
        return True

    def stop(self) -> None:
        if not self._is_running:
            return
        self._stop_event.set()
        if self._worker_thread:
            self._worker_thread.join(timeout=5.0)
        self._is_running = False
        logger.info("Device status monitoring stopped")

    def _monitor_loop(self) -> None:
        while not self._stop_event.is_set():
            t_start = time.perf_counter()
            try:
                self.check_all()
            except Exception as exc:
                logger.exception("Device status sweep failed: %s", exc)
            elapsed = time.perf_counter() - t_start
            self._stop_event.wait(max(0.1, self.interval_s - elapsed))

    # -------------------------------------------------------------------------
    # Core Logic
    # -------------------------------------------------------------------------

    def check_all(self) -> int:
        """Check every monitored greenhouse once. Returns how many were checked."""
        greenhouses = self._greenhouses.monitored()
        for greenhouse in greenhouses:
            if self._stop_event.is_set():
                break
            self.check_device(greenhouse)
        return len(greenhouses)

    def check_device(self, greenhouse: Dict[str, Any]) -> DeviceStatus:
        greenhouse_id = greenhouse["greenhouse_id"]
        project_key = greenhouse["project_key"]
        gh_key = greenhouse["gh_key"]

        online = self._gate.is_online(project_key, gh_key, use_cache=False)
        now = self._clock()

        with self._lock:
            previous = self._statuses.get(greenhouse_id)
            status = DeviceStatus(
                greenhouse_id=greenhouse_id,
                project_key=project_key,
                gh_key=gh_key,
                online=online,
                last_checked=now,
                offline_since=None if online else (previous.offline_since if previous and previous.offline_since else now),
            )
            self._statuses[greenhouse_id] = status

        if previous is None:
            self._sync_to_db(greenhouse_id, online)
        elif previous.online != online:
            offline_duration = None
            if online and previous.offline_since:
                offline_duration = now - previous.offline_since
            logger.info(
                "Greenhouse %s/%s is now %s",
                project_key,
                gh_key,
                "online" if online else "offline",
            )
            self._sync_to_db(greenhouse_id, online)
            self._announce(greenhouse, online, previous.online, offline_duration)
        return status

    def _sync_to_db(self, greenhouse_id: int, online: bool) -> None:
        self._greenhouses.set_device_status(
            greenhouse_id,
            "online" if online else "offline",
            iso_now() if online else None,
        )

    def _announce(
        self,
        greenhouse: Dict[str, Any],
        online: bool,
        previous_online: bool,
        offline_duration: Optional[float],
    ) -> None:
        payload = DeviceStatusChangedPayload(
            project_key=greenhouse["project_key"],
            greenhouse_id=greenhouse["greenhouse_id"],
            gh_key=greenhouse["gh_key"],
            greenhouse_name=greenhouse.get("name"),
            online=online,
            previous_online=previous_online,
            offline_duration_s=offline_duration,
            timestamp=iso_now(),
        )
        if self._event_bus is not None:
            try:
                self._event_bus.publish(DeviceEvent.STATUS_CHANGED, payload)
            except Exception as exc:
                logger.error("Failed to publish device status change: %s", exc)
        if self._emitter is not None:
            self._emitter.emit_device_status(payload)
        if self._notifications is not None:
            self._notifications.notify_device_status(
                online=online,
                project_id=greenhouse.get("project_id"),
                greenhouse_id=greenhouse["greenhouse_id"],
                greenhouse_name=greenhouse.get("name"),
                offline_duration_s=offline_duration,
            )

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def get_status(self, greenhouse_id: int) -> Optional[Dict[str, Any]]:
        with self._lock:
            status = self._statuses.get(greenhouse_id)
        return status.to_dict() if status else None

    def get_service_status(self) -> Dict[str, Any]:
        with self._lock:
            statuses = list(self._statuses.values())
        return {
            "is_running": self._is_running,
            "interval": self.interval_s,
            "device_count": len(statuses),
            "online_count": sum(1 for s in statuses if s.online),
        }


__all__ = ["DeviceStatusMonitor", "DeviceStatus"]
