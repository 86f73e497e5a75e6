from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from infrastructure.database.ops.control_history import ControlHistoryOperations


@dataclass(frozen=True)
class ControlHistoryRepository:
    """Append-only access to ControlHistory: insert and read, nothing else."""

    _backend: ControlHistoryOperations

    def insert(self, record: dict[str, Any]) -> int | None:
        return self._backend.insert_control_history(record)

    def query(self, filters: dict[str, Any], limit: int = 50, offset: int = 0) -> tuple[list[dict[str, Any]], int]:
        return self._backend.query_control_history(filters, limit=limit, offset=offset)

    def stats(self, filters: dict[str, Any]) -> dict[str, Any]:
        return self._backend.get_control_history_stats(filters)

    def recent_for_greenhouse(self, greenhouse_id: int, limit: int = 10) -> list[dict[str, Any]]:
        rows, _ = self._backend.query_control_history({"greenhouse_id": greenhouse_id}, limit=limit)
        return rows
