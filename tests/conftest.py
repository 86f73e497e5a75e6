"""
Shared test fixtures for the greenhouse control test suite.

Provides:
- In-memory SQLite database with all tables created
- Repository instances wired to the test database
- Seeded projects/greenhouses
- Mock gateway collaborators
- A Flask app + test client with an authenticated session helper

Usage:
    def test_example(history_repo, seeded):
        history_repo.insert({...})
"""

from __future__ import annotations

import logging
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock

import pytest

from app.services.application.admission_gate import AdmissionGate
from app.services.application.control_history_service import ControlHistoryService
from app.utils.scheduler import ManualScheduler
from infrastructure.database.repositories.audit import AuditRepository
from infrastructure.database.repositories.control_history import ControlHistoryRepository
from infrastructure.database.repositories.greenhouses import GreenhouseRepository
from infrastructure.database.repositories.notifications import NotificationRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler
from infrastructure.logging.audit import AuditLogger

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.getLogger("infrastructure").setLevel(logging.WARNING)
logging.getLogger("app").setLevel(logging.WARNING)


# ========================== Seeding Helpers ================================


def seed_project(db: SQLiteDatabaseHandler, project_key: str = "farm", **overrides: Any) -> int:
    values = {
        "name": project_key.title(),
        "tb_base_url": "https://tb.example.com",
        "tb_username": "tenant@example.com",
        "tb_password": "secret",
    }
    values.update(overrides)
    with db.connection() as conn:
        cur = conn.execute(
            "INSERT INTO Projects (project_key, name, tb_base_url, tb_username, tb_password) VALUES (?, ?, ?, ?, ?)",
            (project_key, values["name"], values["tb_base_url"], values["tb_username"], values["tb_password"]),
        )
        return cur.lastrowid


def seed_greenhouse(
    db: SQLiteDatabaseHandler,
    project_id: int,
    gh_key: str = "gh1",
    *,
    name: str = "North House",
    device_id: str | None = "dev-1",
) -> int:
    with db.connection() as conn:
        cur = conn.execute(
            "INSERT INTO Greenhouses (project_id, gh_key, name, tb_device_id) VALUES (?, ?, ?, ?)",
            (project_id, gh_key, name, device_id),
        )
        return cur.lastrowid


def grant_access(db: SQLiteDatabaseHandler, user_id: int, project_id: int) -> None:
    with db.connection() as conn:
        conn.execute("INSERT INTO UserProjectAccess (user_id, project_id) VALUES (?, ?)", (user_id, project_id))


def seed_world(db: SQLiteDatabaseHandler) -> dict[str, int]:
    """Two projects; ``farm`` has two greenhouses, one without a bound device."""
    farm_id = seed_project(db, "farm")
    other_id = seed_project(db, "other")
    return {
        "farm_id": farm_id,
        "other_id": other_id,
        "gh1_id": seed_greenhouse(db, farm_id, "gh1", name="North House", device_id="dev-1"),
        "gh2_id": seed_greenhouse(db, farm_id, "gh2", name="South House", device_id=None),
        "other_gh_id": seed_greenhouse(db, other_id, "gh1", name="Other House", device_id="dev-9"),
    }


# ========================== Database Fixtures ==============================


@pytest.fixture()
def db_handler():
    """In-memory SQLite database with all tables created.

    Each test gets a fresh database.
    """
    handler = SQLiteDatabaseHandler(":memory:")
    handler.create_tables()
    yield handler


@pytest.fixture()
def seeded(db_handler):
    return seed_world(db_handler)


@pytest.fixture()
def db_seed():
    """Seeding helpers for tests that need extra rows."""
    return SimpleNamespace(project=seed_project, greenhouse=seed_greenhouse, grant=grant_access)


# ========================== Repository Fixtures ============================


@pytest.fixture()
def greenhouse_repo(db_handler):
    return GreenhouseRepository(db_handler)


@pytest.fixture()
def history_repo(db_handler):
    return ControlHistoryRepository(db_handler)


@pytest.fixture()
def audit_repo(db_handler):
    return AuditRepository(db_handler)


@pytest.fixture()
def notification_repo(db_handler):
    return NotificationRepository(db_handler)


# ========================== Service Fixtures ===============================


@pytest.fixture()
def audit_logger(tmp_path):
    return AuditLogger(str(tmp_path / "audit.log"))


@pytest.fixture()
def history_service(history_repo, audit_repo, audit_logger):
    return ControlHistoryService(history_repo, audit_repo, audit_logger)


@pytest.fixture()
def mock_probe():
    """Online probe that reports every device online."""
    probe = MagicMock()
    probe.is_online.return_value = True
    return probe


@pytest.fixture()
def gate(mock_probe):
    return AdmissionGate(mock_probe, cache_ttl_s=5)


@pytest.fixture()
def scheduler():
    return ManualScheduler()


# ========================== Flask Fixtures =================================


@pytest.fixture()
def app(tmp_path):
    from app import create_app

    flask_app = create_app(
        {
            "database_path": ":memory:",
            "audit_log_path": str(tmp_path / "audit.log"),
            "device_monitor_enabled": False,
        }
    )
    flask_app.config["TESTING"] = True
    seed_world(flask_app.config["CONTAINER"].database)
    yield flask_app


@pytest.fixture()
def container(app):
    return app.config["CONTAINER"]


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def login(client):
    """Put a user into the Flask session: ``login(role="operator", user_id=7)``."""

    def _login(role: str = "operator", user_id: int = 7, username: str = "alice") -> None:
        with client.session_transaction() as sess:
            sess["user_id"] = user_id
            sess["user"] = username
            sess["role"] = role

    return _login
