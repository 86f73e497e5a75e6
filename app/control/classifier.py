"""
Command classification
======================

Two pure functions over an RPC method name:

* :func:`classify_command` maps a method (and its params) to the control it
  drives and the semantic action, for history records and notifications.
* :func:`is_one_way` decides whether the method is fire-and-forget, in which
  case any caller-supplied acknowledgement timeout is discarded.

Both are total. Unknown methods fall back to ``(method, "set", params)`` and
are still dispatched.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Optional, Pattern, Sequence, Tuple

from app.domain.control import CommandDescriptor
from app.enums import ControlAction, MotorCommand

logger = logging.getLogger(__name__)

Builder = Callable[["re.Match[str]", str, Any], Optional[CommandDescriptor]]


def _fixed(control_key: str) -> Builder:
    def build(_match: "re.Match[str]", _method: str, params: Any) -> CommandDescriptor:
        return CommandDescriptor(control_key, ControlAction.SET.value, params)

    return build


def _motor_direction(match: "re.Match[str]", method: str, params: Any) -> Optional[CommandDescriptor]:
    control_key = f"motor_{match.group(1)}"
    if "forward" in method:
        return CommandDescriptor(control_key, ControlAction.SET_FORWARD.value, params)
    if "reverse" in method:
        return CommandDescriptor(control_key, ControlAction.SET_REVERSE.value, params)
    if "stop" in method:
        return CommandDescriptor(control_key, ControlAction.STOP.value, 0)
    # motor_N without a direction word: let later rules try
    return None


_MOTOR_STATUS_ACTIONS = {
    MotorCommand.STOP: ControlAction.STOP,
    MotorCommand.FORWARD: ControlAction.SET_FORWARD,
    MotorCommand.REVERSE: ControlAction.SET_REVERSE,
}


def _motor_status(match: "re.Match[str]", _method: str, params: Any) -> Optional[CommandDescriptor]:
    try:
        command = MotorCommand(int(params))
    except (TypeError, ValueError):
        return None
    return CommandDescriptor(f"motor_{match.group(1)}", _MOTOR_STATUS_ACTIONS[command].value, int(command))


# Ordered, first match wins. Patterns run against the lower-cased method.
CLASSIFICATION_RULES: Sequence[Tuple[Pattern[str], Builder]] = (
    (re.compile(r"valve_?1"), _fixed("valve_1")),
    (re.compile(r"valve_?2"), _fixed("valve_2")),
    (re.compile(r"valve_?3"), _fixed("valve_3")),
    (re.compile(r"valve_?4"), _fixed("valve_4")),
    (re.compile(r"fan_?1"), _fixed("fan_1")),
    (re.compile(r"fan_?2"), _fixed("fan_2")),
    (re.compile(r"light"), _fixed("light_1")),
    (re.compile(r"motor_?(\d)"), _motor_direction),
    (re.compile(r"^set_motor_(\d)_status$"), _motor_status),
)

ONE_WAY_PATTERNS: Sequence[Pattern[str]] = (
    re.compile(r"_cmd$"),
    re.compile(r"_auto$"),
    re.compile(r"_time$"),
    re.compile(r"_condition_auto$"),
    re.compile(r"_interval_auto$"),
    re.compile(r"^set_global_"),
    re.compile(r"^set_motor_\d+_status$"),
)


def classify_command(method: str, params: Any = None) -> CommandDescriptor:
    """Map an RPC method to ``(control_key, action, value)``. Never raises."""
    try:
        lowered = (method or "").lower()
        for pattern, build in CLASSIFICATION_RULES:
            match = pattern.search(lowered)
            if match is None:
                continue
            descriptor = build(match, lowered, params)
            if descriptor is not None:
                return descriptor
    except Exception:
        logger.exception("Command classification failed for %r; using fallback", method)
    return CommandDescriptor(method, ControlAction.SET.value, params)


def is_one_way(method: str) -> bool:
    """Fire-and-forget methods: embedded actuators may never acknowledge these."""
    # Matches the raw method, unlike classify_command: mixed-case names stay two-way
    return any(pattern.search(method or "") for pattern in ONE_WAY_PATTERNS)


def effective_timeout(method: str, timeout_ms: Optional[int]) -> Optional[int]:
    """The acknowledgement timeout to send with, ``None`` for one-way dispatch."""
    if is_one_way(method) or not timeout_ms or timeout_ms <= 0:
        return None
    return int(timeout_ms)
