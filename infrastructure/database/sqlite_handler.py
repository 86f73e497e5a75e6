import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from flask import Flask

from infrastructure.database.ops.audit_log import AuditOperations
from infrastructure.database.ops.control_history import ControlHistoryOperations
from infrastructure.database.ops.greenhouses import GreenhouseOperations
from infrastructure.database.ops.notifications import NotificationOperations

logger = logging.getLogger(__name__)


class SQLiteDatabaseHandler(
    GreenhouseOperations,
    ControlHistoryOperations,
    AuditOperations,
    NotificationOperations,
):
    """Thread-safe SQLite handler decoupled from Flask globals."""

    def __init__(self, database_path: str) -> None:
        self._database_path = database_path
        self._local = threading.local()

        db_path = Path(database_path)
        if database_path != ":memory:" and not db_path.parent.exists():
            db_path.parent.mkdir(parents=True, exist_ok=True)
            logger.info("Created database directory: %s", db_path.parent)

    # --- Lifecycle ------------------------------------------------------------
    def init_app(self, app: Flask | None = None) -> None:
        if app is not None:
            app.teardown_appcontext(self.close_db)
        self.create_tables()

    def get_db(self) -> sqlite3.Connection:
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is None:
            connection = self._open_connection()
            self._local.connection = connection
        return connection

    def _open_connection(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._database_path, check_same_thread=False)
        try:
            connection.row_factory = sqlite3.Row
            self._configure_connection(connection)
            return connection
        except Exception:
            connection.close()
            raise

    def _configure_connection(self, connection: sqlite3.Connection) -> None:
        """WAL for concurrent readers; history and audit writes are small appends."""
        connection.execute("PRAGMA journal_mode=WAL")
        connection.execute("PRAGMA synchronous=NORMAL")
        connection.execute("PRAGMA foreign_keys=ON")
        connection.execute("PRAGMA temp_store=MEMORY")
        connection.commit()

    def close_db(self, _e: Optional[BaseException] = None) -> None:
        # In-memory databases live only as long as their connection
        if self._database_path == ":memory:":
            return
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            delattr(self._local, "connection")

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self.get_db()
        try:
            yield conn
        finally:
            conn.commit()

    # --- Schema ----------------------------------------------------------------
    def create_tables(self) -> None:
        """Creates the necessary tables in the database if they do not already exist."""
        with self.connection() as db:
            # Projects: one IoT platform tenant each
            db.execute(
                """
                CREATE TABLE IF NOT EXISTS Projects (
                    project_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    project_key TEXT UNIQUE NOT NULL,
                    name TEXT NOT NULL,
                    tb_base_url TEXT,
                    tb_username TEXT,
                    tb_password TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            db.execute(
                """
                CREATE TABLE IF NOT EXISTS Greenhouses (
                    greenhouse_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    project_id INTEGER NOT NULL,
                    gh_key TEXT NOT NULL,
                    name TEXT NOT NULL,
                    tb_device_id TEXT,
                    device_status TEXT DEFAULT 'unknown',
                    last_online_at TIMESTAMP,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE (project_id, gh_key),
                    FOREIGN KEY (project_id) REFERENCES Projects(project_id) ON DELETE CASCADE
                )
                """
            )
            db.execute(
                """
                CREATE TABLE IF NOT EXISTS UserProjectAccess (
                    user_id INTEGER NOT NULL,
                    project_id INTEGER NOT NULL,
                    PRIMARY KEY (user_id, project_id),
                    FOREIGN KEY (project_id) REFERENCES Projects(project_id) ON DELETE CASCADE
                )
                """
            )
            # Append-only: no UPDATE or DELETE path exists in the ops layer
            db.execute(
                """
                CREATE TABLE IF NOT EXISTS ControlHistory (
                    history_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    greenhouse_id INTEGER NOT NULL,
                    control_key TEXT NOT NULL,
                    control_name TEXT NOT NULL,
                    action TEXT NOT NULL,
                    value TEXT,
                    source TEXT NOT NULL DEFAULT 'manual'
                        CHECK (source IN ('manual', 'automation', 'schedule', 'scene', 'external_api')),
                    user_id INTEGER,
                    ip_address TEXT,
                    success INTEGER NOT NULL DEFAULT 1,
                    error_message TEXT,
                    created_at TIMESTAMP NOT NULL,
                    FOREIGN KEY (greenhouse_id) REFERENCES Greenhouses(greenhouse_id)
                )
                """
            )
            db.execute(
                "CREATE INDEX IF NOT EXISTS idx_control_history_gh_time "
                "ON ControlHistory(greenhouse_id, created_at)"
            )
            db.execute(
                """
                CREATE TABLE IF NOT EXISTS AuditLog (
                    audit_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER,
                    action TEXT NOT NULL,
                    project_key TEXT,
                    gh_key TEXT,
                    detail_json TEXT,
                    ip_address TEXT,
                    created_at TIMESTAMP NOT NULL
                )
                """
            )
            db.execute("CREATE INDEX IF NOT EXISTS idx_audit_log_action ON AuditLog(action, created_at)")
            db.execute(
                """
                CREATE TABLE IF NOT EXISTS Notifications (
                    notification_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    notification_type TEXT NOT NULL,
                    severity TEXT NOT NULL DEFAULT 'info',
                    title TEXT NOT NULL,
                    message TEXT NOT NULL,
                    metadata TEXT,
                    project_id INTEGER,
                    greenhouse_id INTEGER,
                    auto_dismiss INTEGER NOT NULL DEFAULT 0,
                    dismiss_after_seconds INTEGER,
                    created_at TIMESTAMP NOT NULL
                )
                """
            )
        logger.info("Database tables ensured at %s", self._database_path)
