"""
Enums Module
============

This module provides enumeration types for the greenhouse control backend.
Enums ensure type safety and consistency across the codebase.
"""

from app.enums.control import (
    ActuatorClass,
    AuditAction,
    CommandSource,
    ControlAction,
    ControlCardinality,
    ControlPhase,
    MotorCommand,
    RpcErrorKind,
    UserRole,
)
from app.enums.events import (
    ControlEvent,
    DeviceEvent,
    EventType,
    NotificationEvent,
    NotificationSeverity,
    WebSocketEvent,
)

__all__ = [
    "ActuatorClass",
    "AuditAction",
    "CommandSource",
    "ControlAction",
    "ControlCardinality",
    "ControlEvent",
    "ControlPhase",
    "DeviceEvent",
    "EventType",
    "MotorCommand",
    "NotificationEvent",
    "NotificationSeverity",
    "RpcErrorKind",
    "UserRole",
    "WebSocketEvent",
]
