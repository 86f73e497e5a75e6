"""Database operations for Notification entities."""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any

logger = logging.getLogger(__name__)


class NotificationOperations:
    """Database operations for persisted notifications."""

    def insert_notification(self, notification: dict[str, Any]) -> int | None:
        try:
            db = self.get_db()
            metadata = notification.get("metadata")
            cur = db.execute(
                """
                INSERT INTO Notifications (
                    notification_type, severity, title, message, metadata,
                    project_id, greenhouse_id, auto_dismiss, dismiss_after_seconds, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    notification["notification_type"],
                    notification.get("severity", "info"),
                    notification["title"],
                    notification["message"],
                    json.dumps(metadata, default=str) if metadata else None,
                    notification.get("project_id"),
                    notification.get("greenhouse_id"),
                    1 if notification.get("auto_dismiss") else 0,
                    notification.get("dismiss_after_seconds"),
                    notification["created_at"],
                ),
            )
            db.commit()
            return cur.lastrowid
        except sqlite3.Error as exc:
            logger.error("Failed to insert notification: %s", exc)
            return None

    def get_recent_notifications(self, greenhouse_id: int | None = None, limit: int = 50) -> list[dict[str, Any]]:
        try:
            query = "SELECT * FROM Notifications"
            params: list[Any] = []
            if greenhouse_id is not None:
                query += " WHERE greenhouse_id = ?"
                params.append(greenhouse_id)
            query += " ORDER BY notification_id DESC LIMIT ?"
            params.append(limit)
            rows = [dict(r) for r in self.get_db().execute(query, params).fetchall()]
            for row in rows:
                if row.get("metadata"):
                    row["metadata"] = json.loads(row["metadata"])
            return rows
        except sqlite3.Error as exc:
            logger.error("Failed to get notifications: %s", exc)
            return []
