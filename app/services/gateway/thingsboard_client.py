"""
ThingsBoard Gateway Client
==========================

Thin wrapper over the ThingsBoard REST API for one or more projects (tenants).

- JWT login per project, cached until shortly before expiry.
- One re-login and replay when a request is rejected with 401/403.
- A request that times out locally surfaces as ``GatewayError(status=408)``.
- RPC sends are never retried: a repeated toggle would actuate hardware twice.

Credentials and device ids come from the ``Projects`` / ``Greenhouses``
tables through :class:`GreenhouseRepository`.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional

import requests

from app.domain.exceptions import GatewayError, NotFoundError
from app.utils.concurrency import synchronized
from app.utils.time import epoch_seconds
from infrastructure.database.repositories.greenhouses import GreenhouseRepository

logger = logging.getLogger(__name__)

_AUTH_REJECTED = {401, 403}


@dataclass(frozen=True)
class ProjectRef:
    """Credentials of one IoT platform tenant."""

    project_id: int
    project_key: str
    base_url: str
    username: str
    password: str


@dataclass(frozen=True)
class DeviceRef:
    """A greenhouse resolved to its project and gateway device."""

    project: ProjectRef
    greenhouse_id: int
    gh_key: str
    greenhouse_name: str
    device_id: str


@dataclass
class _CachedToken:
    token: str
    expires_at: float


class ThingsBoardClient:
    """Per-project ThingsBoard REST client."""

    def __init__(
        self,
        greenhouses: GreenhouseRepository,
        *,
        session: Optional[requests.Session] = None,
        request_timeout_s: float = 30.0,
        token_lifetime_s: float = 9000.0,
        token_refresh_buffer_s: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._greenhouses = greenhouses
        self._session = session or requests.Session()
        self._request_timeout_s = request_timeout_s
        self._token_lifetime_s = token_lifetime_s
        self._token_refresh_buffer_s = token_refresh_buffer_s
        self._clock = clock
        self._tokens: Dict[str, _CachedToken] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------
    def resolve_project(self, project_key: str) -> ProjectRef:
        project = self._greenhouses.project(project_key)
        if not project:
            raise NotFoundError(f"Project '{project_key}' not found")
        if not project.get("tb_base_url"):
            raise NotFoundError(f"Project '{project_key}' has no IoT platform configured")
        return ProjectRef(
            project_id=project["project_id"],
            project_key=project_key,
            base_url=project["tb_base_url"].rstrip("/"),
            username=project.get("tb_username") or "",
            password=project.get("tb_password") or "",
        )

    def resolve(self, project_key: str, gh_key: str) -> DeviceRef:
        """Look up credentials and device id; raises NotFoundError when unknown."""
        project = self.resolve_project(project_key)
        greenhouse = self._greenhouses.greenhouse(project.project_id, gh_key)
        if not greenhouse:
            raise NotFoundError(f"Greenhouse '{gh_key}' not found in project '{project_key}'")
        if not greenhouse.get("tb_device_id"):
            raise NotFoundError(f"Greenhouse '{gh_key}' has no device bound yet")
        return DeviceRef(
            project=project,
            greenhouse_id=greenhouse["greenhouse_id"],
            gh_key=gh_key,
            greenhouse_name=greenhouse.get("name") or gh_key,
            device_id=greenhouse["tb_device_id"],
        )

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def _login(self, project: ProjectRef) -> str:
        url = f"{project.base_url}/api/auth/login"
        try:
            response = self._session.post(
                url,
                json={"username": project.username, "password": project.password},
                timeout=self._request_timeout_s,
            )
        except requests.exceptions.Timeout:
            raise GatewayError("Login to IoT platform timed out", status=408) from None
        except requests.exceptions.RequestException as exc:
            raise GatewayError(f"Cannot reach IoT platform: {exc}") from exc

        if response.status_code in _AUTH_REJECTED:
            raise GatewayError("IoT platform rejected the project credentials", status=response.status_code)
        if not response.ok:
            raise GatewayError(
                f"IoT platform login failed ({response.status_code})",
                status=response.status_code,
                body=response.text,
            )
        token = (response.json() or {}).get("token")
        if not token:
            raise GatewayError("IoT platform login returned no token", status=response.status_code)
        logger.info("Logged in to IoT platform for project %s", project.project_key)
        return token

    @synchronized
    def _token(self, project: ProjectRef) -> str:
        now = self._clock()
        cached = self._tokens.get(project.project_key)
        if cached and cached.expires_at > now + self._token_refresh_buffer_s:
            return cached.token
        token = self._login(project)
        self._tokens[project.project_key] = _CachedToken(token, now + self._token_lifetime_s)
        return token

    @synchronized
    def clear_token(self, project_key: str) -> None:
        self._tokens.pop(project_key, None)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _request(self, device: DeviceRef, method: str, endpoint: str, payload: Any = None) -> Any:
        project = device.project
        url = f"{project.base_url}{endpoint}"
        for attempt in (1, 2):
            headers = {
                "Content-Type": "application/json",
                "X-Authorization": f"Bearer {self._token(project)}",
            }
            try:
                response = self._session.request(
                    method,
                    url,
                    headers=headers,
                    json=payload,
                    timeout=self._request_timeout_s,
                )
            except requests.exceptions.Timeout:
                raise GatewayError("IoT platform request timed out", status=408) from None
            except requests.exceptions.RequestException as exc:
                raise GatewayError(f"Cannot reach IoT platform: {exc}") from exc

            # A rejected token never reached the device, so one replay is safe
            if response.status_code in _AUTH_REJECTED and attempt == 1:
                logger.info("Token rejected for project %s, logging in again", project.project_key)
                self.clear_token(project.project_key)
                continue

            if not response.ok:
                logger.warning("IoT platform error [%s] %s: %s", response.status_code, endpoint, response.text)
                reason = "authentication error" if response.status_code in _AUTH_REJECTED else "request failed"
                raise GatewayError(
                    f"{response.status_code} IoT platform {reason}",
                    status=response.status_code,
                    body=response.text,
                )

            if not response.text:
                return {}
            try:
                return json.loads(response.text)
            except ValueError as exc:
                raise GatewayError("IoT platform returned invalid JSON", status=response.status_code) from exc
        raise GatewayError("IoT platform authentication error", status=401)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def send_rpc(
        self,
        project_key: str,
        gh_key: str,
        method: str,
        params: Any = None,
        timeout_ms: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Send one RPC. Two-way when a positive timeout is given, one-way otherwise."""
        device = self.resolve(project_key, gh_key)
        two_way = isinstance(timeout_ms, int) and timeout_ms > 0
        if two_way:
            endpoint = f"/api/rpc/twoway/{device.device_id}"
            body: Dict[str, Any] = {"method": method, "params": params, "timeout": timeout_ms}
        else:
            endpoint = f"/api/rpc/oneway/{device.device_id}"
            body = {"method": method, "params": params}
        logger.info("RPC %s to %s/%s: %s", "two-way" if two_way else "one-way", project_key, gh_key, method)
        result = self._request(device, "POST", endpoint, body)
        return result if isinstance(result, dict) else {"result": result}

    def get_attributes(self, project_key: str, gh_key: str, keys: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        """Attribute values keyed by name. No keys (or ``*``) fetches everything."""
        device = self.resolve(project_key, gh_key)
        wanted = [k for k in (keys or []) if k]
        endpoint = f"/api/plugins/telemetry/DEVICE/{device.device_id}/values/attributes"
        if wanted and "*" not in wanted:
            endpoint += "?keys=" + ",".join(wanted)
        entries = self._request(device, "GET", endpoint) or []
        return {entry["key"]: entry.get("value") for entry in entries if isinstance(entry, dict) and "key" in entry}

    def set_attributes(
        self,
        project_key: str,
        gh_key: str,
        attributes: Dict[str, Any],
        scope: str = "SHARED_SCOPE",
    ) -> None:
        device = self.resolve(project_key, gh_key)
        self._request(device, "POST", f"/api/plugins/telemetry/DEVICE/{device.device_id}/attributes/{scope}", attributes)

    def get_latest_telemetry(self, project_key: str, gh_key: str, keys: Iterable[str]) -> Dict[str, list]:
        device = self.resolve(project_key, gh_key)
        endpoint = (
            f"/api/plugins/telemetry/DEVICE/{device.device_id}/values/timeseries"
            f"?keys={','.join(keys)}&limit=1"
        )
        result = self._request(device, "GET", endpoint)
        return result if isinstance(result, dict) else {}

    def is_online(
        self,
        project_key: str,
        gh_key: str,
        *,
        offline_threshold_s: float = 180,
        telemetry_fresh_s: float = 120,
    ) -> bool:
        """Online when ``last_seen`` is recent, else when a fresh telemetry ``status`` says so.

        Any failure counts as offline.
        """
        try:
            now = self._clock()
            attributes = self.get_attributes(project_key, gh_key, ["status", "last_seen"])
            last_seen = epoch_seconds(attributes.get("last_seen"))
            if last_seen is not None and last_seen > 0:
                age = now - last_seen
                logger.debug("Device %s/%s last seen %.0fs ago", project_key, gh_key, age)
                return age <= offline_threshold_s

            telemetry = self.get_latest_telemetry(project_key, gh_key, ["status"])
            samples = telemetry.get("status") or []
            if samples:
                latest = samples[0]
                ts = epoch_seconds(latest.get("ts"))
                value = latest.get("value")
                if ts is not None and now - ts < telemetry_fresh_s and isinstance(value, str):
                    return value.strip().lower() == "online"
            return False
        except Exception as exc:
            logger.warning("Online check failed for %s/%s: %s", project_key, gh_key, exc)
            return False

    def test_connection(self, project_key: str) -> Dict[str, Any]:
        """Log in with the project's credentials, bypassing the token cache."""
        try:
            self.clear_token(project_key)
            self._token(self.resolve_project(project_key))
            return {"success": True, "message": "Connected to IoT platform"}
        except (GatewayError, NotFoundError) as exc:
            return {"success": False, "message": str(exc)}
