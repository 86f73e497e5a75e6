from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from infrastructure.database.ops.greenhouses import GreenhouseOperations


@dataclass(frozen=True)
class GreenhouseRepository:
    _backend: GreenhouseOperations

    def project(self, project_key: str) -> dict[str, Any] | None:
        return self._backend.get_project_by_key(project_key)

    def greenhouse(self, project_id: int, gh_key: str) -> dict[str, Any] | None:
        return self._backend.get_greenhouse(project_id, gh_key)

    def by_id(self, greenhouse_id: int) -> dict[str, Any] | None:
        return self._backend.get_greenhouse_by_id(greenhouse_id)

    def monitored(self) -> list[dict[str, Any]]:
        return self._backend.list_monitored_greenhouses()

    def set_device_status(self, greenhouse_id: int, status: str, last_online_at: str | None = None) -> bool:
        return self._backend.update_device_status(greenhouse_id, status, last_online_at)

    def has_access(self, user_id: int, project_id: int) -> bool:
        return self._backend.user_has_project_access(user_id, project_id)
