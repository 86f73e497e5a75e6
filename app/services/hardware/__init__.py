"""
Hardware Service Layer
======================
Background workers that watch greenhouse controllers.

Services:
- DeviceStatusMonitor: polls online status and announces transitions

Architecture:
    ServiceContainer
      └─ DeviceStatusMonitor (singleton, daemon thread)
"""

from app.services.hardware.device_status_monitor import DeviceStatus, DeviceStatusMonitor

__all__ = ["DeviceStatus", "DeviceStatusMonitor"]
