"""Control history endpoints."""

from __future__ import annotations

from flask import jsonify, request
from pydantic import ValidationError

from app.blueprints.api._common import get_container
from app.blueprints.api.control import control_api
from app.domain.exceptions import NotFoundError
from app.domain.exceptions import ValidationError as RequestValidationError
from app.enums import UserRole
from app.schemas import HistoryQuery
from app.security.auth import api_login_required, current_role, ensure_project_access
from app.utils.http import safe_route, success_response


def _parse_query():
    try:
        return HistoryQuery(**request.args.to_dict()), None
    except ValidationError as ve:
        details = ve.errors(include_url=False, include_context=False)
        return None, (jsonify({"ok": False, "error": {"message": "Invalid request", "details": details}}), 400)


def _scoped_filters(query: HistoryQuery) -> dict:
    filters = query.filters()
    if query.project_key:
        ensure_project_access(query.project_key)
    elif not UserRole.sees_all_projects(current_role()):
        raise RequestValidationError("project_key is required")
    return filters


@control_api.get("/history")
@api_login_required
@safe_route("Failed to load control history")
def list_history():
    query, error = _parse_query()
    if error:
        return error
    filters = _scoped_filters(query)
    page = get_container().history_service.list_history(filters, limit=query.limit, offset=query.offset)
    return success_response(page)


@control_api.get("/history/stats")
@api_login_required
@safe_route("Failed to load control history statistics")
def history_stats():
    query, error = _parse_query()
    if error:
        return error
    filters = _scoped_filters(query)
    return success_response(get_container().history_service.stats(filters))


@control_api.get("/history/recent/<int:greenhouse_id>")
@api_login_required
@safe_route("Failed to load recent control actions")
def recent_history(greenhouse_id: int):
    container = get_container()
    greenhouse = container.greenhouse_repo.by_id(greenhouse_id)
    if not greenhouse:
        raise NotFoundError(f"Greenhouse {greenhouse_id} not found")
    ensure_project_access(greenhouse["project_key"])
    limit = min(max(request.args.get("limit", default=10, type=int) or 10, 1), 100)
    return success_response({"items": container.history_service.recent(greenhouse_id, limit)})
