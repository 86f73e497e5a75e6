import pytest
import requests

from app.domain.exceptions import (
    DeviceOfflineError,
    GatewayError,
    HardTransportError,
    SoftTimeoutError,
    classify_gateway_failure,
)


@pytest.mark.parametrize("status", [408, 504])
def test_timeout_statuses_are_soft(status):
    failure = classify_gateway_failure(GatewayError("upstream said no", status=status))
    assert isinstance(failure, SoftTimeoutError)
    assert failure.status == status


@pytest.mark.parametrize(
    "message",
    ["Request timed out", "TIMEOUT waiting for device", "502 Bad Gateway", "Gateway Time-out", "got 504 from proxy"],
)
def test_timeout_messages_are_soft(message):
    assert isinstance(classify_gateway_failure(RuntimeError(message)), SoftTimeoutError)


@pytest.mark.parametrize("status", [400, 401, 500])
def test_other_failures_are_hard(status):
    failure = classify_gateway_failure(GatewayError(f"{status} IoT platform request failed", status=status, body="x"))
    assert isinstance(failure, HardTransportError)
    assert failure.status == status
    assert failure.body == "x"
    assert failure.http_status == 502


def test_status_is_read_from_requests_response():
    response = requests.Response()
    response.status_code = 504
    exc = requests.exceptions.HTTPError("upstream", response=response)
    assert isinstance(classify_gateway_failure(exc), SoftTimeoutError)


def test_already_classified_errors_pass_through():
    soft = SoftTimeoutError("timeout", status=504)
    assert classify_gateway_failure(soft) is soft


def test_message_survives_classification():
    failure = classify_gateway_failure(GatewayError("504 IoT platform request failed", status=504))
    assert str(failure) == "504 IoT platform request failed"


def test_http_statuses():
    assert SoftTimeoutError().http_status == 504
    assert DeviceOfflineError().http_status == 503
