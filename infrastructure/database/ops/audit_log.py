from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class AuditOperations:
    """Database operations for the AuditLog table (append-only)."""

    def insert_audit(self, entry: Dict[str, Any]) -> Optional[int]:
        try:
            db = self.get_db()
            detail = entry.get("detail")
            cur = db.execute(
                """
                INSERT INTO AuditLog (user_id, action, project_key, gh_key, detail_json, ip_address, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.get("user_id"),
                    entry["action"],
                    entry.get("project_key"),
                    entry.get("gh_key"),
                    json.dumps(detail, default=str) if detail is not None else None,
                    entry.get("ip_address"),
                    entry["created_at"],
                ),
            )
            db.commit()
            return cur.lastrowid
        except sqlite3.Error as exc:
            logger.error("insert_audit failed: %s", exc)
            return None

    def get_recent_audit(self, limit: int = 50, action: Optional[str] = None) -> List[Dict[str, Any]]:
        try:
            query = "SELECT * FROM AuditLog"
            params: List[Any] = []
            if action:
                query += " WHERE action = ?"
                params.append(action)
            query += " ORDER BY audit_id DESC LIMIT ?"
            params.append(limit)
            results = []
            for r in self.get_db().execute(query, params).fetchall():
                row = dict(r)
                if row.get("detail_json"):
                    try:
                        row["detail"] = json.loads(row["detail_json"])
                    except ValueError:
                        row["detail"] = None
                results.append(row)
            return results
        except sqlite3.Error as exc:
            logger.error("get_recent_audit failed: %s", exc)
            return []
