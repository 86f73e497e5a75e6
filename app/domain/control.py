"""
Control Domain Objects
======================
Dataclasses describing controllable actuators, a single command and its
outcome, the persisted history fact, and the client-side optimistic record.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from app.enums import (
    ActuatorClass,
    CommandSource,
    ControlCardinality,
    ControlPhase,
    MotorCommand,
    RpcErrorKind,
)
from app.utils.time import utc_now

# Binary controls carry a bool, tri-state controls a MotorCommand
ControlValue = Any

# Reported to the caller when a command was sent but never acknowledged
SOFT_TIMEOUT_MESSAGE = "Command sent, awaiting confirmation from the device"


@dataclass(frozen=True)
class Control:
    """One controllable actuator. Built from static configuration."""

    control_key: str
    rpc_method: str
    state_attribute_keys: Tuple[str, ...]
    cardinality: ControlCardinality
    actuator_class: ActuatorClass
    display_name: str
    auto_key: Optional[str] = None

    @property
    def is_motor(self) -> bool:
        return self.cardinality is ControlCardinality.TRI_STATE

    def wire_params(self, value: ControlValue) -> Any:
        """Encode a desired value as the RPC ``params`` the firmware expects."""
        if self.is_motor:
            return int(MotorCommand(value))
        # Relay and mode firmware takes 1/0, not JSON booleans
        return 1 if value else 0


@dataclass(frozen=True)
class CommandDescriptor:
    """What a dispatched method means: which control, what action, which value."""

    control_key: str
    action: str
    value: Any


@dataclass
class CommandIntent:
    """A single operator (or automation) action. Lives for one dispatch."""

    project_key: str
    gh_key: str
    method: str
    params: Any = None
    timeout_ms: Optional[int] = None
    source: CommandSource = CommandSource.MANUAL
    user_id: Optional[int] = None
    username: Optional[str] = None
    ip_address: Optional[str] = None
    requested_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class RpcOutcome:
    """Result of one dispatch attempt.

    ``acknowledged`` implies ``delivered``. A soft timeout is ``delivered``
    but not ``acknowledged``; offline rejection is neither.
    """

    delivered: bool
    acknowledged: bool
    error: Optional[RpcErrorKind] = None
    error_message: Optional[str] = None
    response: Optional[Dict[str, Any]] = None
    descriptor: Optional[CommandDescriptor] = None
    one_way: bool = False

    def __post_init__(self) -> None:
        if self.acknowledged and not self.delivered:
            raise ValueError("An acknowledged command must have been delivered")

    @property
    def ok(self) -> bool:
        """Whether the caller should be told the command went through."""
        return self.error is None or self.error is RpcErrorKind.SOFT_TIMEOUT

    @classmethod
    def acknowledged_with(
        cls, response: Dict[str, Any], descriptor: CommandDescriptor, *, one_way: bool
    ) -> "RpcOutcome":
        return cls(delivered=True, acknowledged=True, response=response, descriptor=descriptor, one_way=one_way)

    @classmethod
    def failed(
        cls,
        kind: RpcErrorKind,
        message: str,
        descriptor: Optional[CommandDescriptor] = None,
        *,
        one_way: bool = False,
    ) -> "RpcOutcome":
        return cls(
            delivered=kind is RpcErrorKind.SOFT_TIMEOUT,
            acknowledged=False,
            error=kind,
            error_message=message,
            descriptor=descriptor,
            one_way=one_way,
        )


@dataclass(frozen=True)
class ControlHistoryRecord:
    """Persisted fact about one dispatch attempt."""

    greenhouse_id: int
    control_key: str
    control_name: str
    action: str
    value: Optional[str]
    source: CommandSource
    user_id: Optional[int]
    success: bool
    error_message: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)

    def to_row(self) -> Dict[str, Any]:
        return {
            "greenhouse_id": self.greenhouse_id,
            "control_key": self.control_key,
            "control_name": self.control_name,
            "action": self.action,
            "value": self.value,
            "source": self.source.value,
            "user_id": self.user_id,
            "ip_address": self.ip_address,
            "success": self.success,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class OptimisticState:
    """Client-only provisional display value for one control."""

    target_value: ControlValue
    phase: ControlPhase
    started_at: float
    ttl_deadline: float
    attempt: int


@dataclass(frozen=True)
class GroundTruth:
    """Last polled, platform-confirmed value of a control."""

    control_key: str
    value: ControlValue
    observed_at: float
