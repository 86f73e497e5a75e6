"""
Control-related Enumerations
============================

Enums shared by the command dispatcher (server) and the optimistic control
state machine (operator client).
"""

from enum import Enum, IntEnum


class ControlCardinality(str, Enum):
    """How many distinct states an actuator can be driven to."""

    BINARY = "binary"  # relay: on / off
    TRI_STATE = "tri_state"  # motor: forward / stop / reverse


class ActuatorClass(str, Enum):
    """Physical class of an actuator; decides the optimistic TTL."""

    RELAY = "relay"
    MOTOR = "motor"
    MODE = "mode"  # automation toggles (``*_auto``)


class MotorCommand(IntEnum):
    """Wire values accepted by ``set_motor_<n>_status``."""

    STOP = 0
    FORWARD = 1
    REVERSE = 2


class CommandSource(str, Enum):
    """Who issued a command. Persisted on every ControlHistory row."""

    MANUAL = "manual"
    AUTOMATION = "automation"
    SCHEDULE = "schedule"
    SCENE = "scene"
    EXTERNAL_API = "external_api"


class ControlAction(str, Enum):
    """Semantic action recorded for a dispatched command."""

    SET = "set"
    SET_FORWARD = "setForward"
    SET_REVERSE = "setReverse"
    STOP = "stop"


class ControlPhase(str, Enum):
    """Phase of the optimistic state machine for one control."""

    IDLE = "idle"
    SENDING = "sending"
    SYNCING = "syncing"


class RpcErrorKind(str, Enum):
    """Classified outcome of a failed dispatch."""

    DEVICE_OFFLINE = "device_offline"
    HARD_TRANSPORT = "hard_transport"
    SOFT_TIMEOUT = "soft_timeout"


class UserRole(str, Enum):
    VIEWER = "viewer"
    OPERATOR = "operator"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"

    @classmethod
    def can_control(cls, role: str | None) -> bool:
        return role in {cls.OPERATOR.value, cls.ADMIN.value, cls.SUPERADMIN.value}

    @classmethod
    def sees_all_projects(cls, role: str | None) -> bool:
        return role in {cls.ADMIN.value, cls.SUPERADMIN.value}


class AuditAction(str, Enum):
    """Audit trail actions written around every dispatch."""

    RPC_SENT = "RPC_SENT"
    RPC_SUCCESS = "RPC_SUCCESS"
    RPC_FAILED = "RPC_FAILED"
    RPC_TIMEOUT = "RPC_TIMEOUT"
    ATTRIBUTES_SET = "ATTRIBUTES_SET"
