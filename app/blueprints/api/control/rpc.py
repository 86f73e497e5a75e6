"""Command dispatch, device status and attribute read/write endpoints."""

from __future__ import annotations

import logging

from flask import Response, jsonify, request
from pydantic import ValidationError

from app.blueprints.api._common import get_container, get_json, query_keys, require_args
from app.blueprints.api.control import control_api
from app.control import CONTROLS, attribute_keys
from app.domain.control import SOFT_TIMEOUT_MESSAGE, CommandIntent, RpcOutcome
from app.enums import AuditAction, RpcErrorKind
from app.schemas import RpcCommandRequest, SetAttributesRequest
from app.security.auth import (
    admin_required,
    api_login_required,
    current_user_id,
    current_username,
    ensure_project_access,
    operator_required,
)
from app.utils.http import error_response, safe_route, success_response

logger = logging.getLogger(__name__)


def _outcome_response(outcome: RpcOutcome) -> Response:
    if outcome.error is None:
        return success_response({"rpcResponse": outcome.response or {}})
    if outcome.error is RpcErrorKind.SOFT_TIMEOUT:
        return success_response({"rpcResponse": {}, "message": SOFT_TIMEOUT_MESSAGE}, message=SOFT_TIMEOUT_MESSAGE)
    if outcome.error is RpcErrorKind.DEVICE_OFFLINE:
        return error_response(
            "Device is offline",
            503,
            details={"error_kind": RpcErrorKind.DEVICE_OFFLINE.value},
        )
    return error_response(
        "Failed to send command to device",
        502,
        details={"error_kind": RpcErrorKind.HARD_TRANSPORT.value},
    )


@control_api.post("/rpc")
@operator_required
@safe_route("Failed to dispatch command")
def send_rpc():
    raw = get_json()
    try:
        body = RpcCommandRequest(**raw)
    except ValidationError as ve:
        details = ve.errors(include_url=False, include_context=False)
        return jsonify({"ok": False, "error": {"message": "Invalid request", "details": details}}), 400

    ensure_project_access(body.project)
    intent = CommandIntent(
        project_key=body.project,
        gh_key=body.gh,
        method=body.method,
        params=body.params,
        timeout_ms=body.timeout,
        source=body.source,
        user_id=current_user_id(),
        username=current_username(),
        ip_address=request.remote_addr,
    )
    outcome = get_container().command_dispatcher.dispatch(intent)
    return _outcome_response(outcome)


@control_api.get("/device-status")
@api_login_required
@safe_route("Failed to check device status")
def device_status():
    project, gh = require_args("project", "gh")
    ensure_project_access(project)
    container = get_container()
    # Unknown greenhouse is a 404, not "offline"
    container.gateway.resolve(project, gh)
    online = container.admission_gate.is_online(project, gh)
    return success_response({"online": online, "status": "Online" if online else "Offline"})


@control_api.get("/attributes")
@api_login_required
@safe_route("Failed to read device attributes")
def device_attributes():
    project, gh = require_args("project", "gh")
    ensure_project_access(project)
    keys = query_keys(request.args.get("keys")) or attribute_keys(CONTROLS.values())
    attributes = get_container().gateway.get_attributes(project, gh, keys)
    return success_response({"attributes": attributes})


@control_api.post("/test-connection")
@admin_required
@safe_route("Failed to test platform connection")
def test_connection():
    payload = get_json()
    project = (payload.get("project") or "").strip()
    if not project:
        return error_response("project is required", 400)
    ensure_project_access(project)
    result = get_container().gateway.test_connection(project)
    return success_response(result)


@control_api.post("/attributes")
@operator_required
@safe_route("Failed to write device attributes")
def set_device_attributes():
    raw = get_json()
    try:
        body = SetAttributesRequest(**raw)
    except ValidationError as ve:
        details = ve.errors(include_url=False, include_context=False)
        return jsonify({"ok": False, "error": {"message": "Invalid request", "details": details}}), 400

    ensure_project_access(body.project)
    container = get_container()
    device = container.gateway.resolve(body.project, body.gh)
    container.gateway.set_attributes(body.project, body.gh, body.attributes, body.scope)
    logger.info("Attributes %s written to %s/%s", sorted(body.attributes), body.project, body.gh)

    container.history_service.audit(
        AuditAction.ATTRIBUTES_SET,
        user_id=current_user_id(),
        project_key=body.project,
        gh_key=body.gh,
        detail={"attributes": body.attributes, "scope": body.scope},
        ip_address=request.remote_addr,
    )
    container.notifications_service.notify_settings_changed(
        values=body.attributes,
        actor=current_username(),
        project_id=device.project.project_id,
        greenhouse_id=device.greenhouse_id,
        greenhouse_name=device.greenhouse_name,
    )
    return success_response({"project": body.project, "gh": body.gh, "scope": body.scope, "attributes": body.attributes})
