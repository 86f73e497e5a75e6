import json
from unittest.mock import MagicMock

import pytest
import requests

from app.domain.exceptions import GatewayError, NotFoundError
from app.services.gateway.thingsboard_client import ThingsBoardClient


def _response(status=200, payload=None, text=None):
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 400
    if text is None:
        text = "" if payload is None else json.dumps(payload)
    response.text = text
    response.json.return_value = payload
    return response


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture()
def session():
    session = MagicMock()
    session.post.return_value = _response(200, {"token": "jwt-1"})
    session.request.return_value = _response(200, {})
    return session


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def tb(greenhouse_repo, seeded, session, clock):
    return ThingsBoardClient(greenhouse_repo, session=session, clock=clock, token_lifetime_s=9000, token_refresh_buffer_s=60)


def test_resolve_returns_device_and_credentials(tb, seeded):
    device = tb.resolve("farm", "gh1")
    assert device.device_id == "dev-1"
    assert device.greenhouse_id == seeded["gh1_id"]
    assert device.project.base_url == "https://tb.example.com"


@pytest.mark.parametrize("project, gh", [("nope", "gh1"), ("farm", "nope"), ("farm", "gh2")])
def test_resolve_unknown_or_unbound_raises(tb, project, gh):
    with pytest.raises(NotFoundError):
        tb.resolve(project, gh)


def test_one_way_rpc_without_timeout(tb, session):
    tb.send_rpc("farm", "gh1", "set_fan_1_cmd", True)
    method, url = session.request.call_args.args
    assert method == "POST"
    assert url == "https://tb.example.com/api/rpc/oneway/dev-1"
    assert session.request.call_args.kwargs["json"] == {"method": "set_fan_1_cmd", "params": True}
    assert session.request.call_args.kwargs["headers"]["X-Authorization"] == "Bearer jwt-1"


def test_two_way_rpc_with_timeout(tb, session):
    session.request.return_value = _response(200, {"ok": 1})
    result = tb.send_rpc("farm", "gh1", "motor_2_forward", {}, 5000)
    assert session.request.call_args.args[1].endswith("/api/rpc/twoway/dev-1")
    assert session.request.call_args.kwargs["json"]["timeout"] == 5000
    assert result == {"ok": 1}


def test_empty_response_body_becomes_empty_dict(tb, session):
    session.request.return_value = _response(200, None, text="")
    assert tb.send_rpc("farm", "gh1", "set_fan_1_cmd", True) == {}


def test_token_is_cached_until_refresh_buffer(tb, session, clock):
    tb.send_rpc("farm", "gh1", "set_fan_1_cmd", True)
    tb.send_rpc("farm", "gh1", "set_fan_1_cmd", False)
    assert session.post.call_count == 1

    clock.now += 9000 - 30
    tb.send_rpc("farm", "gh1", "set_fan_1_cmd", True)
    assert session.post.call_count == 2


def test_rejected_token_triggers_one_relogin(tb, session):
    session.post.side_effect = [_response(200, {"token": "old"}), _response(200, {"token": "new"})]
    session.request.side_effect = [_response(401, None, text="expired"), _response(200, {"done": True})]

    assert tb.send_rpc("farm", "gh1", "motor_1_stop", 0, 3000) == {"done": True}
    assert session.post.call_count == 2
    second_headers = session.request.call_args_list[1].kwargs["headers"]
    assert second_headers["X-Authorization"] == "Bearer new"


def test_repeated_auth_rejection_raises(tb, session):
    session.request.return_value = _response(403, None, text="forbidden")
    with pytest.raises(GatewayError) as exc_info:
        tb.send_rpc("farm", "gh1", "set_fan_1_cmd", True)
    assert exc_info.value.status == 403
    assert session.request.call_count == 2


def test_upstream_error_keeps_status_and_body(tb, session):
    session.request.return_value = _response(504, None, text="Gateway Time-out")
    with pytest.raises(GatewayError) as exc_info:
        tb.send_rpc("farm", "gh1", "motor_2_forward", 1, 5000)
    assert exc_info.value.status == 504
    assert exc_info.value.body == "Gateway Time-out"
    assert str(exc_info.value).startswith("504")
    # RPC is never replayed on an upstream error
    assert session.request.call_count == 1


def test_local_timeout_maps_to_408(tb, session):
    session.request.side_effect = requests.exceptions.Timeout()
    with pytest.raises(GatewayError) as exc_info:
        tb.send_rpc("farm", "gh1", "motor_2_forward", 1, 5000)
    assert exc_info.value.status == 408


def test_get_attributes_builds_map(tb, session):
    session.request.return_value = _response(200, [{"key": "fan_1_cmd", "value": True}, {"key": "last_seen", "value": 1}])
    attrs = tb.get_attributes("farm", "gh1", ["fan_1_cmd", "last_seen"])
    assert attrs == {"fan_1_cmd": True, "last_seen": 1}
    assert session.request.call_args.args[1].endswith("/values/attributes?keys=fan_1_cmd,last_seen")


def test_set_attributes_uses_shared_scope(tb, session):
    tb.set_attributes("farm", "gh1", {"fan_1_auto": True})
    assert session.request.call_args.args[1].endswith("/DEVICE/dev-1/attributes/SHARED_SCOPE")


def test_is_online_from_last_seen(tb, session, clock):
    session.request.return_value = _response(200, [{"key": "last_seen", "value": str(int(clock.now - 60))}])
    assert tb.is_online("farm", "gh1", offline_threshold_s=180)

    session.request.return_value = _response(200, [{"key": "last_seen", "value": (clock.now - 600) * 1000}])
    assert not tb.is_online("farm", "gh1", offline_threshold_s=180)


def test_is_online_falls_back_to_fresh_status_telemetry(tb, session, clock):
    session.request.side_effect = [
        _response(200, []),
        _response(200, {"status": [{"ts": (clock.now - 30) * 1000, "value": "online"}]}),
    ]
    assert tb.is_online("farm", "gh1", telemetry_fresh_s=120)


def test_stale_status_telemetry_is_offline(tb, session, clock):
    session.request.side_effect = [
        _response(200, []),
        _response(200, {"status": [{"ts": (clock.now - 600) * 1000, "value": "online"}]}),
    ]
    assert not tb.is_online("farm", "gh1", telemetry_fresh_s=120)


def test_is_online_swallows_errors(tb, session):
    session.request.side_effect = requests.exceptions.ConnectionError("down")
    assert tb.is_online("farm", "gh1") is False


def test_test_connection_reports_login_result(tb, session):
    assert tb.test_connection("farm")["success"] is True
    session.post.return_value = _response(401, None, text="bad credentials")
    result = tb.test_connection("farm")
    assert result["success"] is False
    assert "rejected" in result["message"]
