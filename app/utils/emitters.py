"""
WebSocket Emitters
=====================================

Purpose:
    Centralized WebSocket emitter service leveraging Socket.IO Server.

Features:
- Broadcast control-action notifications to dashboards watching a project.
- Broadcast device online/offline transitions.

Usage:
    Instantiate EmitterService with the app's SocketIO instance and call
    emit_notification() / emit_device_status().
"""

import logging

from flask_socketio import SocketIO

from app.enums.events import WebSocketEvent
from app.schemas.events import (
    ControlActionNotificationPayload,
    DeviceStatusChangedPayload,
    SettingsChangedNotificationPayload,
)

logger = logging.getLogger("emitters")

# Socket.IO Namespace Constants
SOCKETIO_NAMESPACE_NOTIFICATIONS = "/notifications"
SOCKETIO_NAMESPACE_DEVICES = "/devices"


def project_room(project_id: int | str) -> str:
    return f"project_{project_id}"


class EmitterService:
    """
    Centralized WebSocket Emitter Service.

    Attributes:
        sio: The Socket.IO SocketIO instance for emitting events.
    """

    def __init__(self, sio: SocketIO):
        self.sio = sio

    def emit(
        self,
        event: str,
        payload: dict,
        room: str | None = None,
        namespace: str = "/",
    ):
        """
        Emit a Socket.IO event.

        Args:
            event (str): Event name (e.g., "notification").
            payload (dict): JSON serializable data to send.
            room (Optional[str]): Socket.IO room identifier. Broadcasts if None.
            namespace (str): Socket.IO namespace to emit under (default "/").
        """
        try:
            logger.debug("Emitting event='%s' to namespace='%s' room='%s'", event, namespace, room or "broadcast")
            self.sio.emit(event, payload, to=room, namespace=namespace)
        except Exception as e:
            logger.exception("[Emitter] Failed to emit event '%s' to room '%s': %s", event, room, e)

    def emit_notification(self, notification: ControlActionNotificationPayload | SettingsChangedNotificationPayload):
        room = project_room(notification.project_id) if notification.project_id is not None else None
        self.emit(
            event=WebSocketEvent.NOTIFICATION.value,
            payload=notification.model_dump(),
            room=room,
            namespace=SOCKETIO_NAMESPACE_NOTIFICATIONS,
        )

    def emit_device_status(self, status: DeviceStatusChangedPayload):
        self.emit(
            event=WebSocketEvent.DEVICE_STATUS.value,
            payload=status.model_dump(),
            namespace=SOCKETIO_NAMESPACE_DEVICES,
        )
