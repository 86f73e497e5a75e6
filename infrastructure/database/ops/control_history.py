from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

_FILTER_COLUMNS = {
    "project_key": "p.project_key = ?",
    "gh_key": "g.gh_key = ?",
    "greenhouse_id": "h.greenhouse_id = ?",
    "source": "h.source = ?",
    "user_id": "h.user_id = ?",
    "control_key": "h.control_key = ?",
    "success": "h.success = ?",
    "start_date": "h.created_at >= ?",
    "end_date": "h.created_at <= ?",
}

_BASE_FROM = """
    FROM ControlHistory h
    JOIN Greenhouses g ON g.greenhouse_id = h.greenhouse_id
    JOIN Projects p ON p.project_id = g.project_id
"""


def _where(filters: Dict[str, Any]) -> tuple[str, List[Any]]:
    clauses: List[str] = []
    params: List[Any] = []
    for key, clause in _FILTER_COLUMNS.items():
        value = filters.get(key)
        if value is None or value == "":
            continue
        if key == "success":
            value = 1 if value else 0
        clauses.append(clause)
        params.append(value)
    if not clauses:
        return "", params
    return " WHERE " + " AND ".join(clauses), params


class ControlHistoryOperations:
    """Insert/read operations for ControlHistory. Rows are never updated or deleted."""

    def insert_control_history(self, record: Dict[str, Any]) -> Optional[int]:
        try:
            db = self.get_db()
            cur = db.execute(
                """
                INSERT INTO ControlHistory (
                    greenhouse_id, control_key, control_name, action, value,
                    source, user_id, ip_address, success, error_message, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record["greenhouse_id"],
                    record["control_key"],
                    record["control_name"],
                    record["action"],
                    record.get("value"),
                    record.get("source", "manual"),
                    record.get("user_id"),
                    record.get("ip_address"),
                    1 if record.get("success") else 0,
                    record.get("error_message"),
                    record["created_at"],
                ),
            )
            db.commit()
            return cur.lastrowid
        except sqlite3.Error as exc:
            logger.error("insert_control_history failed: %s", exc)
            return None

    def query_control_history(
        self, filters: Dict[str, Any], limit: int = 50, offset: int = 0
    ) -> tuple[List[Dict[str, Any]], int]:
        where, params = _where(filters)
        try:
            db = self.get_db()
            total = db.execute(f"SELECT COUNT(*) {_BASE_FROM}{where}", params).fetchone()[0]
            cur = db.execute(
                f"""
                SELECT h.*, g.gh_key, g.name AS greenhouse_name, p.project_key
                {_BASE_FROM}{where}
                ORDER BY h.created_at DESC, h.history_id DESC
                LIMIT ? OFFSET ?
                """,
                [*params, limit, offset],
            )
            return [dict(row) for row in cur.fetchall()], total
        except sqlite3.Error as exc:
            logger.error("query_control_history failed: %s", exc)
            return [], 0

    def get_control_history_stats(self, filters: Dict[str, Any]) -> Dict[str, Any]:
        where, params = _where(filters)
        try:
            db = self.get_db()
            row = db.execute(
                f"SELECT COUNT(*), COALESCE(SUM(h.success), 0) {_BASE_FROM}{where}", params
            ).fetchone()
            total, succeeded = row[0], row[1]
            by_source = {
                r[0]: r[1]
                for r in db.execute(f"SELECT h.source, COUNT(*) {_BASE_FROM}{where} GROUP BY h.source", params)
            }
            by_control = {
                r[0]: r[1]
                for r in db.execute(
                    f"SELECT h.control_key, COUNT(*) {_BASE_FROM}{where} GROUP BY h.control_key", params
                )
            }
            return {
                "total": total,
                "success": succeeded,
                "failed": total - succeeded,
                "by_source": by_source,
                "by_control": by_control,
            }
        except sqlite3.Error as exc:
            logger.error("get_control_history_stats failed: %s", exc)
            return {"total": 0, "success": 0, "failed": 0, "by_source": {}, "by_control": {}}
