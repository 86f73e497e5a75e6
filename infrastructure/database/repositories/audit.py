from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from infrastructure.database.ops.audit_log import AuditOperations


@dataclass(frozen=True)
class AuditRepository:
    _backend: AuditOperations

    def insert(self, entry: dict[str, Any]) -> int | None:
        return self._backend.insert_audit(entry)

    def recent(self, limit: int = 50, action: str | None = None) -> list[dict[str, Any]]:
        return self._backend.get_recent_audit(limit=limit, action=action)
