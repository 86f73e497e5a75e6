"""
Schemas Module
==============

This module provides Pydantic models for request/response validation.
Schemas ensure data integrity and provide automatic validation.
"""

from app.schemas.control import HistoryQuery, RpcCommandRequest, SetAttributesRequest
from app.schemas.events import (
    CommandDispatchedPayload,
    ControlActionNotificationPayload,
    DeviceStatusChangedPayload,
    SettingsChangedNotificationPayload,
)

__all__ = [
    "CommandDispatchedPayload",
    "ControlActionNotificationPayload",
    "DeviceStatusChangedPayload",
    "HistoryQuery",
    "RpcCommandRequest",
    "SetAttributesRequest",
    "SettingsChangedNotificationPayload",
]
