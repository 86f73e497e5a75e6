from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from app.config import AppConfig
from app.services.application.admission_gate import AdmissionGate
from app.services.application.command_dispatcher import CommandDispatcher
from app.services.application.control_history_service import ControlHistoryService
from app.services.application.notifications_service import NotificationsService
from app.services.gateway.thingsboard_client import ThingsBoardClient
from app.services.hardware.device_status_monitor import DeviceStatusMonitor
from app.utils.emitters import EmitterService
from app.utils.event_bus import EventBus
from infrastructure.database.repositories.audit import AuditRepository
from infrastructure.database.repositories.control_history import ControlHistoryRepository
from infrastructure.database.repositories.greenhouses import GreenhouseRepository
from infrastructure.database.repositories.notifications import NotificationRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler
from infrastructure.logging.audit import AuditLogger

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Aggregate and manage core backend services."""

    config: AppConfig
    database: SQLiteDatabaseHandler
    greenhouse_repo: GreenhouseRepository
    history_repo: ControlHistoryRepository
    audit_repo: AuditRepository
    notification_repo: NotificationRepository
    audit_logger: AuditLogger
    event_bus: EventBus
    emitter_service: Optional[EmitterService]
    gateway: ThingsBoardClient
    admission_gate: AdmissionGate
    history_service: ControlHistoryService
    notifications_service: NotificationsService
    command_dispatcher: CommandDispatcher
    device_monitor: DeviceStatusMonitor

    @classmethod
    def build(
        cls,
        config: AppConfig,
        *,
        socketio=None,
        start_monitor: bool = False,
    ) -> "ServiceContainer":
        """Construct the service container with all dependencies.

        Args:
            config: Application configuration
            socketio: SocketIO instance for broadcasts (None disables them)
            start_monitor: Whether to start the device status monitor thread
        """
        logger.info("Building ServiceContainer...")
        database = SQLiteDatabaseHandler(config.database_path)
        database.create_tables()

        greenhouse_repo = GreenhouseRepository(database)
        history_repo = ControlHistoryRepository(database)
        audit_repo = AuditRepository(database)
        notification_repo = NotificationRepository(database)
        audit_logger = AuditLogger(config.audit_log_path, config.log_level)
        event_bus = EventBus()
        emitter_service = EmitterService(socketio) if socketio is not None else None

        gateway = ThingsBoardClient(
            greenhouse_repo,
            request_timeout_s=config.gateway_request_timeout_s,
            token_lifetime_s=config.gateway_token_lifetime_s,
            token_refresh_buffer_s=config.gateway_token_refresh_buffer_s,
        )
        admission_gate = AdmissionGate(
            gateway,
            cache_ttl_s=config.online_cache_ttl_s,
            offline_threshold_s=config.offline_threshold_s,
            telemetry_fresh_s=config.telemetry_fresh_s,
        )
        history_service = ControlHistoryService(history_repo, audit_repo, audit_logger)
        notifications_service = NotificationsService(notification_repo, event_bus, emitter_service)
        command_dispatcher = CommandDispatcher(
            gateway,
            admission_gate,
            history_service,
            notifications_service,
            event_bus,
        )
        device_monitor = DeviceStatusMonitor(
            greenhouse_repo,
            admission_gate,
            interval_s=config.device_monitor_interval_s,
            event_bus=event_bus,
            emitter=emitter_service,
            notifications=notifications_service,
        )

        container = cls(
            config=config,
            database=database,
            greenhouse_repo=greenhouse_repo,
            history_repo=history_repo,
            audit_repo=audit_repo,
            notification_repo=notification_repo,
            audit_logger=audit_logger,
            event_bus=event_bus,
            emitter_service=emitter_service,
            gateway=gateway,
            admission_gate=admission_gate,
            history_service=history_service,
            notifications_service=notifications_service,
            command_dispatcher=command_dispatcher,
            device_monitor=device_monitor,
        )
        if start_monitor and config.device_monitor_enabled:
            device_monitor.start()

        logger.info("ServiceContainer built successfully.")
        return container

    def shutdown(self) -> None:
        """Release external resources before process exit."""
        try:
            self.device_monitor.stop()
        except Exception as e:
            logger.warning("Failed to stop device monitor: %s", e)
        self.audit_logger.close()
        self.database.close_db()
        logger.info("ServiceContainer shutdown complete.")
