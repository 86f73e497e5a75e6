from typing import Any

from pydantic import BaseModel, Field

from app.enums.events import NotificationEvent, NotificationSeverity


class ControlActionNotificationPayload(BaseModel):
    """Broadcast after a command was dispatched successfully."""

    schema_version: int = Field(default=1)

    type: str = Field(default=NotificationEvent.CONTROL_ACTION.value)
    severity: str = Field(default=NotificationSeverity.INFO.value)
    title: str
    message: str
    control_key: str
    control_name: str
    action: str
    value: Any = None
    actor: str | None = None
    project_id: int | None = None
    greenhouse_id: int
    greenhouse_name: str | None = None
    notification_id: int | None = None
    auto_dismiss: bool = True
    dismiss_after_seconds: int = 10
    timestamp: str


class CommandDispatchedPayload(BaseModel):
    """Published for every dispatch attempt, successful or not."""

    schema_version: int = Field(default=1)

    project_key: str
    gh_key: str
    greenhouse_id: int
    method: str
    control_key: str
    action: str
    one_way: bool
    success: bool
    error_kind: str | None = None
    error_message: str | None = None
    user_id: int | None = None
    timestamp: str


class DeviceStatusChangedPayload(BaseModel):
    """Published by the device status monitor when a greenhouse goes on/offline."""

    schema_version: int = Field(default=1)

    project_key: str
    greenhouse_id: int
    gh_key: str
    greenhouse_name: str | None = None
    online: bool
    previous_online: bool | None = None
    offline_duration_s: float | None = None
    timestamp: str


class SettingsChangedNotificationPayload(BaseModel):
    """Broadcast after automation settings were written to a device."""

    schema_version: int = Field(default=1)

    type: str = Field(default=NotificationEvent.AUTO_MODE_CHANGED.value)
    severity: str = Field(default=NotificationSeverity.INFO.value)
    title: str
    message: str
    changes: list[str]
    values: dict[str, Any]
    actor: str | None = None
    project_id: int | None = None
    greenhouse_id: int
    greenhouse_name: str | None = None
    notification_id: int | None = None
    auto_dismiss: bool = True
    dismiss_after_seconds: int = 10
    timestamp: str
