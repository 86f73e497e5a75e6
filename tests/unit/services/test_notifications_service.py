from unittest.mock import MagicMock

import pytest

from app.enums import ControlEvent
from app.services.application.notifications_service import NotificationsService, action_text, settings_changes


@pytest.mark.parametrize(
    "action, value, expected",
    [
        ("set", True, "on"),
        ("set", "false", "off"),
        ("set", 0, "off"),
        ("setForward", 1, "forward"),
        ("setReverse", 2, "reverse"),
        ("stop", 0, "stopped"),
    ],
)
def test_action_text(action, value, expected):
    assert action_text(action, value) == expected


def _notify(service, **overrides):
    kwargs = {
        "control_key": "fan_1",
        "control_name": "Fan 1",
        "action": "set",
        "value": True,
        "actor": "alice",
        "project_id": 1,
        "greenhouse_id": 1,
        "greenhouse_name": "North House",
    }
    kwargs.update(overrides)
    return service.notify_control_action(**kwargs)


def test_control_action_is_persisted_published_and_emitted(notification_repo, seeded):
    bus = MagicMock()
    emitter = MagicMock()
    service = NotificationsService(notification_repo, bus, emitter)

    payload = _notify(service)

    assert payload.title == "Fan 1 on"
    assert payload.message == "alice turned Fan 1 on at North House"
    assert payload.dismiss_after_seconds == 10
    stored = notification_repo.recent(greenhouse_id=1)[0]
    assert stored["notification_type"] == "control_action"
    assert stored["auto_dismiss"] == 1
    assert stored["metadata"]["user_name"] == "alice"
    bus.publish.assert_called_once_with(ControlEvent.CONTROL_ACTION, payload)
    emitter.emit_notification.assert_called_once_with(payload)


def test_motor_message_and_system_actor(notification_repo):
    payload = _notify(NotificationsService(notification_repo), control_key="motor_1", control_name="Motor 1",
                      action="setReverse", value=2, actor=None)
    assert payload.message == "System set Motor 1 to reverse at North House"


def test_broadcast_failures_are_swallowed(notification_repo):
    emitter = MagicMock()
    emitter.emit_notification.side_effect = RuntimeError("no socket")
    bus = MagicMock()
    bus.publish.side_effect = RuntimeError("bus down")
    assert _notify(NotificationsService(notification_repo, bus, emitter)) is not None


def test_repository_failure_returns_none():
    repo = MagicMock()
    repo.create.side_effect = RuntimeError("db locked")
    assert _notify(NotificationsService(repo)) is None


def test_device_status_notification(notification_repo):
    service = NotificationsService(notification_repo)
    service.notify_device_status(
        online=True, project_id=1, greenhouse_id=1, greenhouse_name="North House", offline_duration_s=600
    )
    stored = notification_repo.recent(greenhouse_id=1)[0]
    assert stored["title"] == "North House is back online"
    assert stored["message"] == "Device reconnected after 10 min offline"
    assert stored["notification_type"] == "device_status_change"


def test_settings_changes_pick_automation_keys():
    values = {"fan_1_auto": 1, "valve_2_time": "06:00", "display_name": "x", "fan_1_condition": ">30"}
    assert settings_changes(values) == ["fan_1_auto", "valve_2_time", "fan_1_condition"]


def test_settings_change_is_persisted_and_emitted(notification_repo, seeded):
    emitter = MagicMock()
    service = NotificationsService(notification_repo, MagicMock(), emitter)

    payload = service.notify_settings_changed(
        values={"global_motor_auto": 0, "valve_1_time": "06:30"},
        actor="alice",
        project_id=1,
        greenhouse_id=1,
        greenhouse_name="North House",
    )

    assert payload.type == "auto_mode_changed"
    assert payload.message == "alice turned All motors auto mode off at North House"
    assert payload.changes == ["global_motor_auto", "valve_1_time"]
    emitter.emit_notification.assert_called_once_with(payload)
    assert notification_repo.recent(greenhouse_id=1)[0]["notification_type"] == "auto_mode_changed"


def test_unrelated_settings_are_not_announced(notification_repo, seeded):
    emitter = MagicMock()
    service = NotificationsService(notification_repo, None, emitter)
    assert service.notify_settings_changed(
        values={"display_name": "North"}, actor=None, project_id=1, greenhouse_id=1, greenhouse_name=None
    ) is None
    emitter.emit_notification.assert_not_called()
