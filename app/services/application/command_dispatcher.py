"""
Command Dispatcher
==================

Server-side unit of work for one operator command:

    admission gate -> one-way/two-way decision -> send -> persist -> notify

Single attempt, never retried. Every attempt produces exactly one
ControlHistory row. What is *recorded* is always the real outcome; what is
*reported* to the caller is softened for gateway timeouts, where the command
was most likely delivered and only the acknowledgement was lost.
"""

import logging
from typing import Any, Dict, Optional

from app.control.catalog import humanize_control
from app.control.classifier import classify_command, effective_timeout, is_one_way
from app.domain.control import SOFT_TIMEOUT_MESSAGE, CommandDescriptor, CommandIntent, ControlHistoryRecord, RpcOutcome
from app.domain.exceptions import DeviceOfflineError, SoftTimeoutError, classify_gateway_failure
from app.enums import AuditAction, RpcErrorKind
from app.enums.events import ControlEvent
from app.schemas.events import CommandDispatchedPayload
from app.services.application.admission_gate import AdmissionGate
from app.services.application.control_history_service import ControlHistoryService, history_value
from app.services.application.notifications_service import NotificationsService
from app.services.gateway.thingsboard_client import DeviceRef, ThingsBoardClient
from app.utils.time import iso_now

logger = logging.getLogger(__name__)

DEVICE_OFFLINE_MESSAGE = "Device offline"


class CommandDispatcher:
    """Dispatches one :class:`CommandIntent` and records its outcome."""

    def __init__(
        self,
        gateway: ThingsBoardClient,
        gate: AdmissionGate,
        history: ControlHistoryService,
        notifications: Optional[NotificationsService] = None,
        event_bus: Any = None,
    ) -> None:
        self._gateway = gateway
        self._gate = gate
        self._history = history
        self._notifications = notifications
        self._event_bus = event_bus

    def dispatch(self, intent: CommandIntent) -> RpcOutcome:
        """Run one command through the gate and the gateway.

        Raises ``NotFoundError`` when the project or greenhouse cannot be
        resolved; every other failure is returned as a classified outcome.
        """
        device = self._gateway.resolve(intent.project_key, intent.gh_key)
        descriptor = classify_command(intent.method, intent.params)
        one_way = is_one_way(intent.method)
        timeout_ms = effective_timeout(intent.method, intent.timeout_ms)

        try:
            self._gate.ensure_admitted(intent.project_key, intent.gh_key)
        except DeviceOfflineError as exc:
            self._audit(AuditAction.RPC_FAILED, intent, {"reason": DEVICE_OFFLINE_MESSAGE, "error": str(exc)})
            self._record(device, intent, descriptor, success=False, error_message=DEVICE_OFFLINE_MESSAGE)
            outcome = RpcOutcome.failed(RpcErrorKind.DEVICE_OFFLINE, DEVICE_OFFLINE_MESSAGE, descriptor, one_way=one_way)
            self._publish(device, intent, outcome)
            return outcome

        self._audit(AuditAction.RPC_SENT, intent, {"one_way": one_way, "timeout": timeout_ms})
        try:
            response = self._gateway.send_rpc(
                intent.project_key,
                intent.gh_key,
                intent.method,
                intent.params,
                timeout_ms,
            )
        except Exception as exc:
            return self._handle_failure(device, intent, descriptor, one_way, exc)

        self._record(device, intent, descriptor, success=True)
        self._audit(AuditAction.RPC_SUCCESS, intent, {"response": response})
        outcome = RpcOutcome.acknowledged_with(response, descriptor, one_way=one_way)
        self._notify(device, intent, descriptor)
        self._publish(device, intent, outcome)
        return outcome

    def _handle_failure(
        self,
        device: DeviceRef,
        intent: CommandIntent,
        descriptor: CommandDescriptor,
        one_way: bool,
        exc: BaseException,
    ) -> RpcOutcome:
        failure = classify_gateway_failure(exc)
        soft = isinstance(failure, SoftTimeoutError)
        message = str(failure) or type(exc).__name__
        logger.warning(
            "RPC %s to %s/%s failed (%s, status=%s): %s",
            intent.method,
            intent.project_key,
            intent.gh_key,
            "soft timeout" if soft else "hard failure",
            failure.status,
            message,
        )

        self._record(device, intent, descriptor, success=False, error_message=message)
        self._audit(AuditAction.RPC_FAILED, intent, {"error": message, "status": failure.status})
        if soft:
            self._audit(AuditAction.RPC_TIMEOUT, intent, {"error": message, "status": failure.status})
        else:
            # The cached online flag may be what let this command through
            self._gate.invalidate(intent.project_key, intent.gh_key)

        kind = RpcErrorKind.SOFT_TIMEOUT if soft else RpcErrorKind.HARD_TRANSPORT
        outcome = RpcOutcome.failed(kind, message, descriptor, one_way=one_way)
        self._publish(device, intent, outcome)
        return outcome

    # --- Side effects ------------------------------------------------------------
    def _record(
        self,
        device: DeviceRef,
        intent: CommandIntent,
        descriptor: CommandDescriptor,
        *,
        success: bool,
        error_message: Optional[str] = None,
    ) -> None:
        self._history.record(
            ControlHistoryRecord(
                greenhouse_id=device.greenhouse_id,
                control_key=descriptor.control_key,
                control_name=humanize_control(descriptor.control_key),
                action=descriptor.action,
                value=history_value(descriptor.value),
                source=intent.source,
                user_id=intent.user_id,
                success=success,
                error_message=error_message,
                ip_address=intent.ip_address,
            )
        )

    def _audit(self, action: AuditAction, intent: CommandIntent, extra: Dict[str, Any]) -> None:
        detail = {"method": intent.method, "params": intent.params, **extra}
        self._history.audit(
            action,
            user_id=intent.user_id,
            project_key=intent.project_key,
            gh_key=intent.gh_key,
            detail=detail,
            ip_address=intent.ip_address,
        )

    def _notify(self, device: DeviceRef, intent: CommandIntent, descriptor: CommandDescriptor) -> None:
        if self._notifications is None:
            return
        try:
            self._notifications.notify_control_action(
                control_key=descriptor.control_key,
                control_name=humanize_control(descriptor.control_key),
                action=descriptor.action,
                value=descriptor.value,
                actor=intent.username,
                project_id=device.project.project_id,
                greenhouse_id=device.greenhouse_id,
                greenhouse_name=device.greenhouse_name,
            )
        except Exception as exc:
            logger.error("Control-action notification failed: %s", exc, exc_info=True)

    def _publish(self, device: DeviceRef, intent: CommandIntent, outcome: RpcOutcome) -> None:
        if self._event_bus is None:
            return
        descriptor = outcome.descriptor
        try:
            self._event_bus.publish(
                ControlEvent.COMMAND_DISPATCHED if outcome.error is None else ControlEvent.COMMAND_FAILED,
                CommandDispatchedPayload(
                    project_key=intent.project_key,
                    gh_key=intent.gh_key,
                    greenhouse_id=device.greenhouse_id,
                    method=intent.method,
                    control_key=descriptor.control_key if descriptor else intent.method,
                    action=descriptor.action if descriptor else "set",
                    one_way=outcome.one_way,
                    success=outcome.error is None,
                    error_kind=outcome.error.value if outcome.error else None,
                    error_message=outcome.error_message,
                    user_id=intent.user_id,
                    timestamp=iso_now(),
                ),
            )
        except Exception as exc:
            logger.error("Failed to publish dispatch event: %s", exc)
