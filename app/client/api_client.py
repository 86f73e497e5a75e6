"""
Control API client
==================

``requests``-based client for the ``/api/v1/control`` endpoints, used by
operator-side tools (kiosks, bots) together with the state machines.

The session must already carry an authenticated Flask session cookie.
HTTP results are mapped back to :class:`RpcOutcome`:

- 200 with the "awaiting confirmation" message -> soft timeout (``ok``)
- 200 otherwise -> acknowledged
- 503 -> device offline
- anything else, or no response at all -> hard transport failure
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, Optional

import requests

from app.control.classifier import classify_command
from app.domain.control import SOFT_TIMEOUT_MESSAGE, Control, ControlValue, RpcOutcome
from app.domain.exceptions import GatewayError
from app.enums import CommandSource, RpcErrorKind

logger = logging.getLogger(__name__)


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return body.get("message") or (body.get("error") or {}).get("message") or f"HTTP {response.status_code}"
    return f"HTTP {response.status_code}"


class ControlApiClient:
    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        *,
        timeout_s: float = 35.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._timeout_s = timeout_s

    def send_rpc(
        self,
        project: str,
        gh: str,
        method: str,
        params: Any = None,
        timeout_ms: Optional[int] = None,
        source: CommandSource = CommandSource.MANUAL,
    ) -> RpcOutcome:
        descriptor = classify_command(method, params)
        body: Dict[str, Any] = {"project": project, "gh": gh, "method": method, "params": params, "source": source.value}
        if timeout_ms is not None:
            body["timeout"] = timeout_ms
        try:
            response = self._session.post(f"{self.base_url}/rpc", json=body, timeout=self._timeout_s)
        except requests.exceptions.RequestException as exc:
            logger.warning("Control API unreachable for %s: %s", method, exc)
            return RpcOutcome.failed(RpcErrorKind.HARD_TRANSPORT, str(exc), descriptor)

        if response.status_code == 503:
            return RpcOutcome.failed(RpcErrorKind.DEVICE_OFFLINE, _error_message(response), descriptor)
        if not response.ok:
            return RpcOutcome.failed(RpcErrorKind.HARD_TRANSPORT, _error_message(response), descriptor)

        data = (response.json() or {}).get("data") or {}
        if data.get("message") == SOFT_TIMEOUT_MESSAGE:
            return RpcOutcome.failed(RpcErrorKind.SOFT_TIMEOUT, SOFT_TIMEOUT_MESSAGE, descriptor)
        return RpcOutcome.acknowledged_with(data.get("rpcResponse") or {}, descriptor, one_way=False)

    def get_attributes(self, project: str, gh: str, keys: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        params = {"project": project, "gh": gh}
        wanted = [k for k in (keys or []) if k]
        if wanted:
            params["keys"] = ",".join(wanted)
        data = self._get("/attributes", params)
        return data.get("attributes") or {}

    def device_status(self, project: str, gh: str) -> bool:
        return bool(self._get("/device-status", {"project": project, "gh": gh}).get("online"))

    def _get(self, path: str, params: Dict[str, str]) -> Dict[str, Any]:
        try:
            response = self._session.get(f"{self.base_url}{path}", params=params, timeout=self._timeout_s)
        except requests.exceptions.Timeout:
            raise GatewayError("Control API request timed out", status=408) from None
        except requests.exceptions.RequestException as exc:
            raise GatewayError(f"Control API unreachable: {exc}") from exc
        if not response.ok:
            raise GatewayError(_error_message(response), status=response.status_code, body=response.text)
        return (response.json() or {}).get("data") or {}

    # --- Adapters for the coordinator and the poller ---------------------------
    def dispatcher_for(
        self,
        project: str,
        gh: str,
        source: CommandSource = CommandSource.MANUAL,
    ) -> Callable[[Control, ControlValue], RpcOutcome]:
        """A ``dispatch`` callable bound to one greenhouse."""

        def dispatch(control: Control, value: ControlValue) -> RpcOutcome:
            return self.send_rpc(project, gh, control.rpc_method, control.wire_params(value), source=source)

        return dispatch

    def attribute_fetcher(self, project: str, gh: str, keys: Iterable[str]) -> Callable[[], Dict[str, Any]]:
        keys = list(keys)
        return lambda: self.get_attributes(project, gh, keys)


__all__ = ["ControlApiClient"]
