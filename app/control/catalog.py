"""
Static control catalog
======================

The actuators a greenhouse controller exposes, their RPC methods, the
attributes that report their state, and how to derive a ground-truth value
from those attributes.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional

from app.domain.control import Control
from app.enums import ActuatorClass, ControlCardinality, MotorCommand

RELAY_KEYS = ("fan_1", "fan_2", "valve_1", "valve_2", "valve_3", "valve_4", "light_1")
MOTOR_KEYS = ("motor_1", "motor_2", "motor_3", "motor_4")

# One automation toggle per relay plus a single switch covering every motor
GLOBAL_MOTOR_AUTO_KEY = "global_motor_auto"
MODE_KEYS = tuple(f"{key}_auto" for key in RELAY_KEYS) + (GLOBAL_MOTOR_AUTO_KEY,)

CONTROL_NAMES: Dict[str, str] = {
    "fan_1": "Fan 1",
    "fan_2": "Fan 2",
    "valve_1": "Valve 1",
    "valve_2": "Valve 2",
    "valve_3": "Valve 3",
    "valve_4": "Valve 4",
    "light_1": "Light",
    "motor_1": "Motor 1",
    "motor_2": "Motor 2",
    "motor_3": "Motor 3",
    "motor_4": "Motor 4",
}


def humanize_control(control_key: str) -> str:
    """Display name for a control key; unknown keys are shown as-is."""
    if control_key == GLOBAL_MOTOR_AUTO_KEY:
        return "All motors auto mode"
    base, _, suffix = control_key.rpartition("_")
    if suffix == "auto" and base in CONTROL_NAMES:
        return f"{CONTROL_NAMES[base]} auto mode"
    return CONTROL_NAMES.get(control_key, control_key)


def _relay(key: str) -> Control:
    return Control(
        control_key=key,
        rpc_method=f"set_{key}_cmd",
        state_attribute_keys=(f"{key}_cmd",),
        cardinality=ControlCardinality.BINARY,
        actuator_class=ActuatorClass.RELAY,
        display_name=humanize_control(key),
        auto_key=f"{key}_auto",
    )


def _motor(key: str) -> Control:
    return Control(
        control_key=key,
        rpc_method=f"set_{key}_status",
        state_attribute_keys=(f"{key}_fw", f"{key}_re"),
        cardinality=ControlCardinality.TRI_STATE,
        actuator_class=ActuatorClass.MOTOR,
        display_name=humanize_control(key),
        auto_key=GLOBAL_MOTOR_AUTO_KEY,
    )


def _mode(key: str) -> Control:
    return Control(
        control_key=key,
        rpc_method=f"set_{key}",
        state_attribute_keys=(key,),
        cardinality=ControlCardinality.BINARY,
        actuator_class=ActuatorClass.MODE,
        display_name=humanize_control(key),
    )


CONTROLS: Dict[str, Control] = {key: _relay(key) for key in RELAY_KEYS}
CONTROLS.update({key: _motor(key) for key in MOTOR_KEYS})
CONTROLS.update({key: _mode(key) for key in MODE_KEYS})


def get_control(control_key: str) -> Optional[Control]:
    return CONTROLS.get(control_key)


def attribute_keys(controls: Iterable[Control]) -> list[str]:
    """Every attribute needed to render *controls*, in order.

    That is the ground-truth keys plus the automation flag that locks a control.
    """
    keys: list[str] = []
    for control in controls:
        wanted = control.state_attribute_keys + ((control.auto_key,) if control.auto_key else ())
        for key in wanted:
            if key not in keys:
                keys.append(key)
    return keys


def auto_mode_active(control: Control, attributes: Mapping[str, Any]) -> bool:
    """Whether the firmware's automation currently owns *control*."""
    if control.auto_key is None:
        return False
    return normalize_boolean(attributes.get(control.auto_key))


def normalize_boolean(value: Any) -> bool:
    """Coerce the loose representations the firmware reports into a bool."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1"}
    return False


def derive_ground_truth(control: Control, attributes: Mapping[str, Any]) -> Any:
    """Ground-truth value of *control*, or ``None`` when its attributes are absent."""
    if not any(key in attributes for key in control.state_attribute_keys):
        return None

    if control.cardinality is ControlCardinality.BINARY:
        return normalize_boolean(attributes.get(control.state_attribute_keys[0]))

    fw_key, re_key = control.state_attribute_keys
    forward = normalize_boolean(attributes.get(fw_key))
    reverse = normalize_boolean(attributes.get(re_key))
    if forward and not reverse:
        return MotorCommand.FORWARD
    if reverse and not forward:
        return MotorCommand.REVERSE
    return MotorCommand.STOP
