"""Operator client -> control API -> dispatcher -> history, driven on a virtual clock."""

from concurrent.futures import Future
from unittest.mock import MagicMock
from urllib.parse import urlsplit

import pytest

from app.client.api_client import ControlApiClient
from app.client.poller import AttributePoller
from app.client.state_machine import DeviceControlCoordinator
from app.control.catalog import CONTROLS, attribute_keys
from app.enums import ControlPhase

BASE_URL = "http://localhost/api/v1/control"


class InlineExecutor:
    def submit(self, fn, *args):
        future = Future()
        try:
            future.set_result(fn(*args))
        except Exception as exc:
            future.set_exception(exc)
        return future

    def shutdown(self, wait=True):
        pass


class FlaskResponse:
    """The parts of ``requests.Response`` the API client reads."""

    def __init__(self, response):
        self._response = response
        self.status_code = response.status_code
        self.ok = response.status_code < 400
        self.text = response.get_data(as_text=True)

    def json(self):
        return self._response.get_json()


class FlaskSession:
    """Routes ``requests.Session`` calls into the Flask test client."""

    def __init__(self, client):
        self._client = client

    def post(self, url, json=None, timeout=None):
        return FlaskResponse(self._client.post(urlsplit(url).path, json=json))

    def get(self, url, params=None, timeout=None):
        return FlaskResponse(self._client.get(urlsplit(url).path, query_string=params))


@pytest.fixture()
def device(container, monkeypatch):
    """Fake device: RPCs flip the reported attribute, reads return the current state."""
    state = {"fan_1_cmd": False, "fan_1_auto": False}

    def send_rpc(project, gh, method, params, timeout_ms=None):
        if method == "set_fan_1_cmd":
            state["fan_1_cmd"] = bool(params)
        return {}

    monkeypatch.setattr(container.gateway, "is_online", MagicMock(return_value=True))
    monkeypatch.setattr(container.gateway, "send_rpc", MagicMock(side_effect=send_rpc))
    monkeypatch.setattr(container.gateway, "get_attributes", MagicMock(side_effect=lambda p, g, keys=None: dict(state)))
    return state


@pytest.fixture()
def greenhouse_id(container):
    with container.database.connection() as conn:
        row = conn.execute(
            "SELECT g.greenhouse_id FROM Greenhouses g JOIN Projects p ON p.project_id = g.project_id "
            "WHERE p.project_key = 'farm' AND g.gh_key = 'gh1'"
        ).fetchone()
    return row[0]


@pytest.fixture()
def coordinator(client, container, device, login, db_seed, scheduler):
    project_id = container.greenhouse_repo.project("farm")["project_id"]
    db_seed.grant(container.database, 7, project_id)
    login(role="operator", user_id=7)

    api = ControlApiClient(BASE_URL, FlaskSession(client))
    controls = [CONTROLS["fan_1"]]
    poller = AttributePoller(api.attribute_fetcher("farm", "gh1", attribute_keys(controls)), scheduler)
    coordinator = DeviceControlCoordinator(
        controls,
        api.dispatcher_for("farm", "gh1"),
        scheduler,
        executor=InlineExecutor(),
        poller=poller,
    )
    poller.start()
    yield coordinator
    coordinator.close()
    poller.stop()


def test_relay_click_reconciles_on_next_poll(coordinator, container, device, scheduler, greenhouse_id):
    assert coordinator.display_value("fan_1") is False

    assert coordinator.request("fan_1", True) is True
    assert coordinator.display_value("fan_1") is True
    container.gateway.send_rpc.assert_called_once_with("farm", "gh1", "set_fan_1_cmd", 1, None)

    row = container.history_service.recent(greenhouse_id)[0]
    assert (row["control_key"], row["action"], row["value"], row["success"]) == ("fan_1", "set", "1", True)

    # Debounced refetch after the acknowledgement
    scheduler.advance(1.2)
    assert coordinator.phase("fan_1") is ControlPhase.IDLE
    assert coordinator.display_value("fan_1") is True


def test_offline_relay_click_rolls_back_without_waiting(coordinator, container, device, greenhouse_id):
    container.gateway.is_online.return_value = False

    assert coordinator.request("fan_1", True) is True

    assert coordinator.phase("fan_1") is ControlPhase.IDLE
    assert coordinator.display_value("fan_1") is False
    container.gateway.send_rpc.assert_not_called()
    row = container.history_service.recent(greenhouse_id)[0]
    assert row["success"] is False
    assert row["error_message"] == "Device offline"


def test_relay_in_auto_mode_never_reaches_the_server(coordinator, container, device, scheduler):
    device["fan_1_auto"] = True
    scheduler.advance(5.1)

    assert coordinator.request("fan_1", True) is False
    container.gateway.send_rpc.assert_not_called()
