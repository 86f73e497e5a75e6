"""Centralized exception hierarchy for the greenhouse control backend.

All domain and service exceptions inherit from :class:`GreenhouseError` so that
callers can catch a single base class when they need a broad safety net, yet
still match on specific subclasses where narrower handling is appropriate.

Blueprint-level error handling (see ``app/utils/http.safe_route``) maps these
to the correct HTTP status codes automatically.

Hierarchy
---------
::

    GreenhouseError (base: maps to 500)
    ├── ValidationError            (400: bad input from caller)
    ├── AuthenticationError        (401: no session)
    ├── PermissionDeniedError      (403: role / project access)
    ├── NotFoundError              (404: entity does not exist)
    ├── ServiceError               (500: business-logic failure)
    │   ├── RepositoryError        (500: database / persistence)
    │   └── ExternalServiceError   (502: third-party / network)
    │       └── GatewayError       (502: IoT platform call failed)
    │           ├── HardTransportError (502: real failure)
    │           └── SoftTimeoutError   (504: acknowledgement lost)
    └── DeviceError                (503: device communication)
        └── DeviceOfflineError     (503: admission gate rejected)
"""

from __future__ import annotations

import re
from typing import Any


class GreenhouseError(Exception):
    """Base exception for all greenhouse control errors.

    Parameters
    ----------
    message:
        Human-readable description (logged server-side, **not** leaked to
        the HTTP client unless the exception class opts in).
    detail:
        Optional machine-readable context dict attached to the error for
        structured logging.
    """

    http_status: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


# ── Client errors (4xx) ──────────────────────────────────────────────


class ValidationError(GreenhouseError):
    """Caller supplied invalid or incomplete input (HTTP 400)."""

    http_status: int = 400
    error_code = "VALIDATION_ERROR"


class AuthenticationError(GreenhouseError):
    """No authenticated session (HTTP 401)."""

    http_status: int = 401
    error_code = "UNAUTHORIZED"


class PermissionDeniedError(GreenhouseError):
    """Caller lacks the role or project access for this operation (HTTP 403)."""

    http_status: int = 403
    error_code = "FORBIDDEN"


class NotFoundError(GreenhouseError):
    """Requested entity does not exist (HTTP 404)."""

    http_status: int = 404
    error_code = "NOT_FOUND"


# ── Server errors (5xx) ──────────────────────────────────────────────


class ServiceError(GreenhouseError):
    """Business-logic failure in a service method (HTTP 500)."""

    http_status: int = 500


class RepositoryError(ServiceError):
    """Database / persistence layer failure (HTTP 500)."""

    http_status: int = 500


class ExternalServiceError(ServiceError):
    """Third-party or network dependency failure (HTTP 502)."""

    http_status: int = 502
    error_code = "UPSTREAM_ERROR"


class GatewayError(ExternalServiceError):
    """A call to the IoT platform failed.

    ``status`` is the upstream HTTP status when one was received (408 is used
    for client-side request timeouts), ``body`` the raw upstream body.
    """

    http_status: int = 502

    def __init__(
        self,
        message: str = "",
        *,
        status: int | None = None,
        body: str | None = None,
        detail: dict | None = None,
    ) -> None:
        super().__init__(message, detail=detail)
        self.status = status
        self.body = body


class HardTransportError(GatewayError):
    """Gateway failure that is not a plausible timeout (HTTP 502)."""

    http_status: int = 502


class SoftTimeoutError(GatewayError):
    """Gateway timeout: the command may have been delivered, the ack was not (HTTP 504)."""

    http_status: int = 504
    error_code = "UPSTREAM_TIMEOUT"


class DeviceError(GreenhouseError):
    """Device communication or device-protocol failure (HTTP 503)."""

    http_status: int = 503
    error_code = "DEVICE_ERROR"


class DeviceOfflineError(DeviceError):
    """The admission gate rejected a command because the device is offline (HTTP 503)."""

    http_status: int = 503
    error_code = "DEVICE_OFFLINE"


class ConfigurationError(GreenhouseError):
    """Missing or invalid application configuration (HTTP 500)."""

    http_status: int = 500
    error_code = "CONFIGURATION_ERROR"


# ── Gateway failure classification ───────────────────────────────────

SOFT_TIMEOUT_STATUSES = frozenset({408, 504})
_SOFT_TIMEOUT_PATTERN = re.compile(r"timeout|timed out|504|Bad Gateway|Gateway Time-out", re.IGNORECASE)


def _failure_status(exc: BaseException) -> int | None:
    status = getattr(exc, "status", None)
    if status is None:
        response: Any = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def classify_gateway_failure(exc: BaseException) -> GatewayError:
    """Map any exception raised by a gateway call to a soft timeout or a hard failure.

    Already-classified errors are returned unchanged.
    """
    if isinstance(exc, (SoftTimeoutError, HardTransportError)):
        return exc

    status = _failure_status(exc)
    message = str(exc) or type(exc).__name__
    body = getattr(exc, "body", None)

    if status in SOFT_TIMEOUT_STATUSES or _SOFT_TIMEOUT_PATTERN.search(message):
        return SoftTimeoutError(message, status=status, body=body)
    return HardTransportError(message, status=status, body=body)
