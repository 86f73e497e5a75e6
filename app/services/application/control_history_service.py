"""Control history and audit recording.

Every dispatch attempt ends up here exactly once as a ControlHistory row, and
as one or more AuditLog entries mirrored to the JSON-lines audit file.
Recording never raises into the caller: a failed write is logged and the
dispatch continues.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from app.domain.control import ControlHistoryRecord
from app.enums import AuditAction
from app.utils.time import iso_now
from infrastructure.database.repositories.audit import AuditRepository
from infrastructure.database.repositories.control_history import ControlHistoryRepository
from infrastructure.logging.audit import AuditLogger

logger = logging.getLogger(__name__)


def history_value(value: Any) -> Optional[str]:
    """Text form of a command value as stored in ControlHistory.value."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


class ControlHistoryService:
    """Append-only recorder plus the read queries behind the history API."""

    def __init__(
        self,
        history_repo: ControlHistoryRepository,
        audit_repo: AuditRepository,
        audit_logger: Optional[AuditLogger] = None,
    ) -> None:
        self._history = history_repo
        self._audit = audit_repo
        self._audit_logger = audit_logger

    # --- Recording -------------------------------------------------------------
    def record(self, record: ControlHistoryRecord) -> Optional[int]:
        try:
            history_id = self._history.insert(record.to_row())
        except Exception as exc:
            logger.error("Failed to record control history for %s: %s", record.control_key, exc, exc_info=True)
            return None
        if history_id is None:
            logger.error("Control history for %s was not persisted", record.control_key)
        return history_id

    def audit(
        self,
        action: AuditAction,
        *,
        user_id: Optional[int],
        project_key: Optional[str],
        gh_key: Optional[str],
        detail: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> None:
        entry = {
            "user_id": user_id,
            "action": action.value,
            "project_key": project_key,
            "gh_key": gh_key,
            "detail": detail,
            "ip_address": ip_address,
            "created_at": iso_now(),
        }
        try:
            self._audit.insert(entry)
        except Exception as exc:
            logger.error("Failed to write audit entry %s: %s", action.value, exc, exc_info=True)

        if self._audit_logger is not None:
            try:
                self._audit_logger.log_event(
                    actor=str(user_id) if user_id is not None else "system",
                    action=action.value,
                    resource=f"{project_key}/{gh_key}",
                    outcome="failure" if action in (AuditAction.RPC_FAILED, AuditAction.RPC_TIMEOUT) else "success",
                    **(detail or {}),
                )
            except Exception as exc:
                logger.error("Failed to write audit log line %s: %s", action.value, exc)

    # --- Queries ---------------------------------------------------------------
    def list_history(self, filters: Dict[str, Any], limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        rows, total = self._history.query(filters, limit=limit, offset=offset)
        return {
            "items": [self._present(row) for row in rows],
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    def stats(self, filters: Dict[str, Any]) -> Dict[str, Any]:
        stats = self._history.stats(filters)
        total = stats.get("total", 0)
        stats["success_rate"] = round(stats.get("success", 0) / total, 4) if total else None
        return stats

    def recent(self, greenhouse_id: int, limit: int = 10) -> List[Dict[str, Any]]:
        return [self._present(row) for row in self._history.recent_for_greenhouse(greenhouse_id, limit=limit)]

    @staticmethod
    def _present(row: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(row)
        row["success"] = bool(row.get("success"))
        return row
