"""
Control-action notifications
============================

Best-effort fan-out after a successful dispatch or an automation settings
write. Both are persisted to the Notifications table and broadcast over
Socket.IO; control actions are also published on the EventBus.
Nothing here may fail a dispatch; every error is logged and dropped.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from app.control.catalog import humanize_control, normalize_boolean
from app.enums.events import ControlEvent, NotificationEvent, NotificationSeverity
from app.schemas.events import ControlActionNotificationPayload, SettingsChangedNotificationPayload
from app.utils.time import iso_now

if TYPE_CHECKING:
    from app.utils.emitters import EmitterService
    from app.utils.event_bus import EventBus
    from infrastructure.database.repositories.notifications import NotificationRepository

logger = logging.getLogger(__name__)

CONTROL_ACTION_DISMISS_AFTER_S = 10


def action_text(action: str, value: Any) -> str:
    """``on`` / ``off`` for relays; motors read as their direction."""
    if action == "setForward":
        return "forward"
    if action == "setReverse":
        return "reverse"
    if action == "stop":
        return "stopped"
    if isinstance(value, str):
        value = value.strip().lower() in {"true", "1", "on"}
    return "on" if value else "off"


# Attribute names that belong to the automation settings
_SETTING_MARKERS = ("_auto", "auto_mode", "_time", "_condition")


def settings_changes(values: Dict[str, Any]) -> List[str]:
    return [key for key in values if any(marker in key for marker in _SETTING_MARKERS)]


def setting_text(key: str, value: Any) -> str:
    if "_auto" in key:
        mode = humanize_control(key)
        return f"turned {mode} {'on' if normalize_boolean(value) else 'off'}"
    if "_time" in key:
        return f"set {key} to {value}"
    if "_condition" in key:
        return f"set condition {key} to {value}"
    return f"changed {key}"


class NotificationsService:
    """Publishes control-action and settings notifications."""

    def __init__(
        self,
        notification_repo: "NotificationRepository",
        event_bus: Optional["EventBus"] = None,
        emitter_service: Optional["EmitterService"] = None,
    ):
        self._repo = notification_repo
        self._event_bus = event_bus
        self._emitter = emitter_service

    def notify_control_action(
        self,
        *,
        control_key: str,
        control_name: str,
        action: str,
        value: Any,
        actor: Optional[str],
        project_id: Optional[int],
        greenhouse_id: int,
        greenhouse_name: Optional[str],
    ) -> Optional[ControlActionNotificationPayload]:
        try:
            text = action_text(action, value)
            title = f"{control_name} {text}"
            where = f" at {greenhouse_name}" if greenhouse_name else ""
            message = f"{actor or 'System'} turned {control_name} {text}{where}"
            if action in ("setForward", "setReverse", "stop"):
                message = f"{actor or 'System'} set {control_name} to {text}{where}"

            timestamp = iso_now()
            notification_id = self._repo.create(
                {
                    "notification_type": NotificationEvent.CONTROL_ACTION.value,
                    "severity": NotificationSeverity.INFO.value,
                    "title": title,
                    "message": message,
                    "metadata": {
                        "control_key": control_key,
                        "control_name": control_name,
                        "action": action,
                        "value": value,
                        "greenhouse_name": greenhouse_name,
                        "user_name": actor,
                    },
                    "project_id": project_id,
                    "greenhouse_id": greenhouse_id,
                    "auto_dismiss": True,
                    "dismiss_after_seconds": CONTROL_ACTION_DISMISS_AFTER_S,
                    "created_at": timestamp,
                }
            )
            payload = ControlActionNotificationPayload(
                title=title,
                message=message,
                control_key=control_key,
                control_name=control_name,
                action=action,
                value=value,
                actor=actor,
                project_id=project_id,
                greenhouse_id=greenhouse_id,
                greenhouse_name=greenhouse_name,
                notification_id=notification_id,
                dismiss_after_seconds=CONTROL_ACTION_DISMISS_AFTER_S,
                timestamp=timestamp,
            )
        except Exception as exc:
            logger.error("Failed to build control-action notification for %s: %s", control_key, exc, exc_info=True)
            return None

        if self._event_bus is not None:
            try:
                self._event_bus.publish(ControlEvent.CONTROL_ACTION, payload)
            except Exception as exc:
                logger.error("Failed to publish control-action event: %s", exc)
        if self._emitter is not None:
            try:
                self._emitter.emit_notification(payload)
            except Exception as exc:
                logger.error("Failed to broadcast control-action notification: %s", exc)

        logger.info("Notification created: %s", title)
        return payload

    def notify_device_status(
        self,
        *,
        online: bool,
        project_id: Optional[int],
        greenhouse_id: int,
        greenhouse_name: Optional[str],
        offline_duration_s: Optional[float] = None,
    ) -> Optional[int]:
        """Persist a device_status_change notification. Never raises."""
        name = greenhouse_name or f"Greenhouse {greenhouse_id}"
        if online:
            title = f"{name} is back online"
            message = "Device reconnected"
            if offline_duration_s:
                message += f" after {int(offline_duration_s // 60)} min offline"
        else:
            title = f"{name} went offline"
            message = "Connection lost"
        try:
            return self._repo.create(
                {
                    "notification_type": NotificationEvent.DEVICE_STATUS_CHANGE.value,
                    "severity": (NotificationSeverity.INFO if online else NotificationSeverity.WARNING).value,
                    "title": title,
                    "message": message,
                    "metadata": {"online": online, "offline_duration_s": offline_duration_s},
                    "project_id": project_id,
                    "greenhouse_id": greenhouse_id,
                    "auto_dismiss": online,
                    "dismiss_after_seconds": CONTROL_ACTION_DISMISS_AFTER_S if online else None,
                    "created_at": iso_now(),
                }
            )
        except Exception as exc:
            logger.error("Failed to record device status notification: %s", exc, exc_info=True)
            return None

    def notify_settings_changed(
        self,
        *,
        values: Dict[str, Any],
        actor: Optional[str],
        project_id: Optional[int],
        greenhouse_id: int,
        greenhouse_name: Optional[str],
    ) -> Optional[SettingsChangedNotificationPayload]:
        """Announce automation setting writes. Returns None when nothing relevant changed."""
        changes = settings_changes(values)
        if not changes:
            return None
        try:
            summary = setting_text(changes[0], values[changes[0]])
            where = f" at {greenhouse_name}" if greenhouse_name else ""
            title = "Automation settings changed"
            message = f"{actor or 'System'} {summary}{where}"
            timestamp = iso_now()
            notification_id = self._repo.create(
                {
                    "notification_type": NotificationEvent.AUTO_MODE_CHANGED.value,
                    "severity": NotificationSeverity.INFO.value,
                    "title": title,
                    "message": message,
                    "metadata": {
                        "changes": changes,
                        "values": values,
                        "greenhouse_name": greenhouse_name,
                        "user_name": actor,
                    },
                    "project_id": project_id,
                    "greenhouse_id": greenhouse_id,
                    "auto_dismiss": True,
                    "dismiss_after_seconds": CONTROL_ACTION_DISMISS_AFTER_S,
                    "created_at": timestamp,
                }
            )
            payload = SettingsChangedNotificationPayload(
                title=title,
                message=message,
                changes=changes,
                values=values,
                actor=actor,
                project_id=project_id,
                greenhouse_id=greenhouse_id,
                greenhouse_name=greenhouse_name,
                notification_id=notification_id,
                dismiss_after_seconds=CONTROL_ACTION_DISMISS_AFTER_S,
                timestamp=timestamp,
            )
        except Exception as exc:
            logger.error("Failed to build settings notification: %s", exc, exc_info=True)
            return None

        if self._emitter is not None:
            try:
                self._emitter.emit_notification(payload)
            except Exception as exc:
                logger.error("Failed to broadcast settings notification: %s", exc)
        return payload
