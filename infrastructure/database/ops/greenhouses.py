"""Database operations for projects, greenhouses and project access."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class GreenhouseOperations:
    """Lookups used to resolve ``(project_key, gh_key)`` to a gateway device."""

    def get_project_by_key(self, project_key: str) -> Optional[Dict[str, Any]]:
        try:
            cur = self.get_db().execute("SELECT * FROM Projects WHERE project_key = ?", (project_key,))
            row = cur.fetchone()
            return dict(row) if row else None
        except sqlite3.Error as exc:
            logger.error("get_project_by_key failed: %s", exc)
            return None

    def get_greenhouse(self, project_id: int, gh_key: str) -> Optional[Dict[str, Any]]:
        try:
            cur = self.get_db().execute(
                "SELECT * FROM Greenhouses WHERE project_id = ? AND gh_key = ?",
                (project_id, gh_key),
            )
            row = cur.fetchone()
            return dict(row) if row else None
        except sqlite3.Error as exc:
            logger.error("get_greenhouse failed: %s", exc)
            return None

    def get_greenhouse_by_id(self, greenhouse_id: int) -> Optional[Dict[str, Any]]:
        try:
            cur = self.get_db().execute(
                """
                SELECT g.*, p.project_key
                FROM Greenhouses g JOIN Projects p ON p.project_id = g.project_id
                WHERE g.greenhouse_id = ?
                """,
                (greenhouse_id,),
            )
            row = cur.fetchone()
            return dict(row) if row else None
        except sqlite3.Error as exc:
            logger.error("get_greenhouse_by_id failed: %s", exc)
            return None

    def list_monitored_greenhouses(self) -> List[Dict[str, Any]]:
        """Every greenhouse bound to a gateway device, with its project key."""
        try:
            cur = self.get_db().execute(
                """
                SELECT g.greenhouse_id, g.gh_key, g.name, g.tb_device_id, g.device_status,
                       p.project_id, p.project_key
                FROM Greenhouses g JOIN Projects p ON p.project_id = g.project_id
                WHERE g.tb_device_id IS NOT NULL AND g.tb_device_id != ''
                ORDER BY g.greenhouse_id
                """
            )
            return [dict(row) for row in cur.fetchall()]
        except sqlite3.Error as exc:
            logger.error("list_monitored_greenhouses failed: %s", exc)
            return []

    def update_device_status(self, greenhouse_id: int, status: str, last_online_at: Optional[str] = None) -> bool:
        try:
            db = self.get_db()
            if last_online_at is not None:
                db.execute(
                    "UPDATE Greenhouses SET device_status = ?, last_online_at = ? WHERE greenhouse_id = ?",
                    (status, last_online_at, greenhouse_id),
                )
            else:
                db.execute(
                    "UPDATE Greenhouses SET device_status = ? WHERE greenhouse_id = ?",
                    (status, greenhouse_id),
                )
            db.commit()
            return True
        except sqlite3.Error as exc:
            logger.error("update_device_status failed: %s", exc)
            return False

    def user_has_project_access(self, user_id: int, project_id: int) -> bool:
        try:
            cur = self.get_db().execute(
                "SELECT 1 FROM UserProjectAccess WHERE user_id = ? AND project_id = ?",
                (user_id, project_id),
            )
            return cur.fetchone() is not None
        except sqlite3.Error as exc:
            logger.error("user_has_project_access failed: %s", exc)
            return False
