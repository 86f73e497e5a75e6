"""Repository facades exposing typed accessors over low-level mixins."""

from infrastructure.database.repositories.audit import AuditRepository
from infrastructure.database.repositories.control_history import ControlHistoryRepository
from infrastructure.database.repositories.greenhouses import GreenhouseRepository
from infrastructure.database.repositories.notifications import NotificationRepository

__all__ = [
    "AuditRepository",
    "ControlHistoryRepository",
    "GreenhouseRepository",
    "NotificationRepository",
]
