"""app.socketio.project_handlers

Room membership for the /notifications and /devices namespaces.

Notifications are emitted to ``project_<id>`` rooms; a client joins the room
of every project it may see. Device status transitions are broadcast on
/devices to every authenticated client.
"""

import logging

from flask import current_app, request, session
from flask_socketio import join_room, leave_room

from app.enums import UserRole
from app.extensions import socketio
from app.utils.emitters import (
    SOCKETIO_NAMESPACE_DEVICES,
    SOCKETIO_NAMESPACE_NOTIFICATIONS,
    project_room,
)

logger = logging.getLogger(__name__)


def _may_join(project_id: int) -> bool:
    if UserRole.sees_all_projects(session.get("role")):
        return True
    user_id = session.get("user_id")
    if user_id is None:
        return False
    repo = current_app.config["CONTAINER"].greenhouse_repo
    return repo.has_access(int(user_id), project_id)


def _project_id_from(data):
    project_id = data.get("project_id") if isinstance(data, dict) else None
    if project_id is None:
        return None
    try:
        return int(project_id)
    except (TypeError, ValueError):
        return None


@socketio.on("connect", namespace=SOCKETIO_NAMESPACE_NOTIFICATIONS)
def notifications_connect(auth=None):
    if "user_id" not in session:
        logger.info("Rejecting anonymous client %s on %s", request.sid, SOCKETIO_NAMESPACE_NOTIFICATIONS)
        return False
    logger.info("Client %s connected to %s", request.sid, SOCKETIO_NAMESPACE_NOTIFICATIONS)
    return True


@socketio.on("join_project", namespace=SOCKETIO_NAMESPACE_NOTIFICATIONS)
def notifications_join_project(data):
    project_id = _project_id_from(data)
    if project_id is None:
        logger.warning("Client %s sent join_project without a valid project_id", request.sid)
        return {"ok": False, "error": "project_id required"}
    if not _may_join(project_id):
        logger.warning("Client %s denied room %s", request.sid, project_room(project_id))
        return {"ok": False, "error": "forbidden"}
    join_room(project_room(project_id))
    return {"ok": True, "room": project_room(project_id)}


@socketio.on("leave_project", namespace=SOCKETIO_NAMESPACE_NOTIFICATIONS)
def notifications_leave_project(data):
    project_id = _project_id_from(data)
    if project_id is not None:
        leave_room(project_room(project_id))
    return {"ok": True}


@socketio.on("connect", namespace=SOCKETIO_NAMESPACE_DEVICES)
def devices_connect(auth=None):
    if "user_id" not in session:
        return False
    return True


@socketio.on("disconnect", namespace=SOCKETIO_NAMESPACE_NOTIFICATIONS)
def notifications_disconnect(*_args):
    logger.info("Client %s disconnected from %s", request.sid, SOCKETIO_NAMESPACE_NOTIFICATIONS)


