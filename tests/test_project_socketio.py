"""Socket.IO room membership for project notifications."""

import pytest

from app import socketio
from app.utils.emitters import SOCKETIO_NAMESPACE_NOTIFICATIONS as NS


@pytest.fixture()
def farm_id(container):
    return container.greenhouse_repo.project("farm")["project_id"]


def _connect(app, client):
    return socketio.test_client(app, namespace=NS, flask_test_client=client)


def test_anonymous_clients_are_rejected(app, client):
    sio = _connect(app, client)
    assert not sio.is_connected(NS)


def test_member_joins_project_room_and_receives_notifications(app, client, login, container, db_seed, farm_id):
    db_seed.grant(container.database, 7, farm_id)
    login(role="operator", user_id=7)
    sio = _connect(app, client)
    assert sio.is_connected(NS)

    ack = sio.emit("join_project", {"project_id": farm_id}, namespace=NS, callback=True)
    assert ack == {"ok": True, "room": f"project_{farm_id}"}

    socketio.emit("notification", {"title": "Fan 1 on"}, to=f"project_{farm_id}", namespace=NS)
    received = sio.get_received(NS)
    assert [msg["name"] for msg in received] == ["notification"]
    sio.disconnect(NS)


def test_non_member_cannot_join(app, client, login, farm_id):
    login(role="operator", user_id=42)
    sio = _connect(app, client)

    ack = sio.emit("join_project", {"project_id": farm_id}, namespace=NS, callback=True)
    assert ack == {"ok": False, "error": "forbidden"}


def test_join_requires_project_id(app, client, login):
    login(role="admin", user_id=1)
    sio = _connect(app, client)

    ack = sio.emit("join_project", {"project_id": "abc"}, namespace=NS, callback=True)
    assert ack["ok"] is False
