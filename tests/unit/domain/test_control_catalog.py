import pytest

from app.control.catalog import (
    CONTROLS,
    GLOBAL_MOTOR_AUTO_KEY,
    MODE_KEYS,
    attribute_keys,
    auto_mode_active,
    derive_ground_truth,
    get_control,
    humanize_control,
)
from app.domain.control import CommandDescriptor, RpcOutcome
from app.enums import ActuatorClass, MotorCommand, RpcErrorKind


def test_relay_control_definition():
    fan = get_control("fan_1")
    assert fan.rpc_method == "set_fan_1_cmd"
    assert fan.state_attribute_keys == ("fan_1_cmd",)
    assert not fan.is_motor
    assert fan.wire_params(True) == 1
    assert fan.wire_params(False) == 0


def test_motor_control_definition():
    motor = get_control("motor_2")
    assert motor.rpc_method == "set_motor_2_status"
    assert motor.state_attribute_keys == ("motor_2_fw", "motor_2_re")
    assert motor.is_motor
    assert motor.wire_params(MotorCommand.REVERSE) == 2


def test_humanize_control_falls_back_to_key():
    assert humanize_control("light_1") == "Light"
    assert humanize_control("mister_9") == "mister_9"
    assert humanize_control("valve_2_auto") == "Valve 2 auto mode"


@pytest.mark.parametrize("raw, expected", [(True, True), ("true", True), ("1", True), (1, True), (0, False), ("false", False), (None, False)])
def test_binary_ground_truth(raw, expected):
    assert derive_ground_truth(CONTROLS["fan_1"], {"fan_1_cmd": raw}) is expected


@pytest.mark.parametrize(
    "fw, re, expected",
    [
        (True, False, MotorCommand.FORWARD),
        (False, True, MotorCommand.REVERSE),
        (False, False, MotorCommand.STOP),
        (True, True, MotorCommand.STOP),
    ],
)
def test_motor_ground_truth(fw, re, expected):
    attrs = {"motor_1_fw": fw, "motor_1_re": re}
    assert derive_ground_truth(CONTROLS["motor_1"], attrs) is expected


def test_absent_attributes_yield_no_ground_truth():
    assert derive_ground_truth(CONTROLS["fan_1"], {"fan_2_cmd": True}) is None


def test_attribute_keys_are_unique_and_ordered():
    keys = attribute_keys([CONTROLS["fan_1"], CONTROLS["motor_1"], CONTROLS["fan_1"]])
    assert keys == ["fan_1_cmd", "fan_1_auto", "motor_1_fw", "motor_1_re", "global_motor_auto"]


def test_rpc_outcome_invariants():
    descriptor = CommandDescriptor("fan_1", "set", True)
    soft = RpcOutcome.failed(RpcErrorKind.SOFT_TIMEOUT, "timeout", descriptor)
    offline = RpcOutcome.failed(RpcErrorKind.DEVICE_OFFLINE, "offline", descriptor)
    assert soft.delivered and not soft.acknowledged and soft.ok
    assert not offline.delivered and not offline.ok
    with pytest.raises(ValueError):
        RpcOutcome(delivered=False, acknowledged=True)


def test_auto_mode_controls():
    fan_auto = get_control("fan_1_auto")
    assert fan_auto.rpc_method == "set_fan_1_auto"
    assert fan_auto.state_attribute_keys == ("fan_1_auto",)
    assert fan_auto.actuator_class is ActuatorClass.MODE
    assert fan_auto.display_name == "Fan 1 auto mode"
    assert get_control("global_motor_auto").rpc_method == "set_global_motor_auto"
    assert len(MODE_KEYS) == 8


def test_relays_and_motors_point_at_their_auto_flag():
    assert CONTROLS["valve_3"].auto_key == "valve_3_auto"
    assert CONTROLS["motor_4"].auto_key == GLOBAL_MOTOR_AUTO_KEY
    assert CONTROLS["fan_1_auto"].auto_key is None


@pytest.mark.parametrize(
    "key, attrs, expected",
    [
        ("fan_1", {"fan_1_auto": True}, True),
        ("fan_1", {"fan_1_auto": "0"}, False),
        ("fan_1", {"fan_2_auto": True}, False),
        ("motor_2", {"global_motor_auto": 1}, True),
        ("motor_2", {}, False),
        ("global_motor_auto", {"global_motor_auto": True}, False),
    ],
)
def test_auto_mode_active(key, attrs, expected):
    assert auto_mode_active(CONTROLS[key], attrs) is expected
