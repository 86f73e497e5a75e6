from enum import Enum
from typing import TypeAlias


class WebSocketEvent(str, Enum):
    """WebSocket event names for real-time communication."""

    NOTIFICATION = "notification"
    DEVICE_STATUS = "device_status"


class NotificationEvent(str, Enum):
    CONTROL_ACTION = "control_action"
    DEVICE_STATUS_CHANGE = "device_status_change"
    AUTO_MODE_CHANGED = "auto_mode_changed"


class NotificationSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class ControlEvent(str, Enum):
    """Topics published by the command dispatcher."""

    COMMAND_DISPATCHED = "control.command_dispatched"
    COMMAND_FAILED = "control.command_failed"
    CONTROL_ACTION = "control.control_action"


class DeviceEvent(str, Enum):
    """Topics published by the device status monitor."""

    STATUS_CHANGED = "device.status_changed"


EventType: TypeAlias = ControlEvent | DeviceEvent | NotificationEvent | WebSocketEvent
