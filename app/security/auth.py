from functools import wraps
from typing import Callable, TypeVar, cast

from flask import current_app, session

from app.domain.exceptions import NotFoundError, PermissionDeniedError
from app.enums import UserRole
from app.utils.http import error_response

F = TypeVar("F", bound=Callable[..., object])


def api_login_required(view_func: F) -> F:
    """Ensure the user is authenticated for API endpoints (returns JSON 401)."""

    @wraps(view_func)
    def wrapped(*args, **kwargs):
        if "user_id" not in session:
            return error_response(
                "Authentication required",
                status=401,
                details={"code": "UNAUTHORIZED"},
            )
        return view_func(*args, **kwargs)

    return cast(F, wrapped)


def operator_required(view_func: F) -> F:
    """Authenticated *and* allowed to drive actuators (operator, admin, superadmin)."""

    @wraps(view_func)
    @api_login_required
    def wrapped(*args, **kwargs):
        if not UserRole.can_control(session.get("role")):
            return error_response(
                "Operator role required",
                status=403,
                details={"code": "FORBIDDEN"},
            )
        return view_func(*args, **kwargs)

    return cast(F, wrapped)


def admin_required(view_func: F) -> F:
    @wraps(view_func)
    @api_login_required
    def wrapped(*args, **kwargs):
        if not UserRole.sees_all_projects(session.get("role")):
            return error_response("Admin role required", status=403, details={"code": "FORBIDDEN"})
        return view_func(*args, **kwargs)

    return cast(F, wrapped)


def current_user_id() -> int | None:
    return session.get("user_id")


def current_username() -> str | None:
    return session.get("user")


def current_role() -> str | None:
    return session.get("role")


def ensure_project_access(project_key: str) -> dict:
    """Return the project row, or raise when the caller may not touch it.

    Admins and superadmins see every project; other roles need an explicit
    UserProjectAccess grant.
    """
    repo = current_app.config["CONTAINER"].greenhouse_repo
    project = repo.project(project_key)
    if not project:
        raise NotFoundError(f"Project '{project_key}' not found")
    if UserRole.sees_all_projects(current_role()):
        return project
    user_id = current_user_id()
    if user_id is None or not repo.has_access(int(user_id), project["project_id"]):
        raise PermissionDeniedError("No access to this project")
    return project
