"""Repository for notification-related database operations."""

from __future__ import annotations

from typing import Any

from infrastructure.database.ops.notifications import NotificationOperations


class NotificationRepository:
    """Repository providing typed access to persisted notifications."""

    def __init__(self, backend: NotificationOperations) -> None:
        self._backend = backend

    def create(self, notification: dict[str, Any]) -> int | None:
        return self._backend.insert_notification(notification)

    def recent(self, greenhouse_id: int | None = None, limit: int = 50) -> list[dict[str, Any]]:
        return self._backend.get_recent_notifications(greenhouse_id=greenhouse_id, limit=limit)
