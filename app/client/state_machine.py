"""
Optimistic Control State Machine
================================

Operator-side rendering of a command's progress before the device confirms it.

Each control runs ``IDLE -> SENDING -> SYNCING -> IDLE``:

- ``SENDING`` lasts a short cosmetic delay, then the machine moves to ``SYNCING``.
- ``SYNCING`` waits for polled ground truth to equal the target.
- A TTL timer started together with ``SENDING`` rolls the control back to
  ``IDLE`` if nothing else resolved it first, so no control stays busy forever.

A ground-truth value that contradicts the target while the TTL runs is
stored but does not end the optimistic phase; only a matching value, a
rejected dispatch, the TTL or a forced clear do.

:class:`DeviceControlCoordinator` owns one machine per control of a single
greenhouse and is the only object views talk to.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from app.config import AppConfig
from app.control.catalog import auto_mode_active, derive_ground_truth
from app.domain.control import Control, ControlValue, GroundTruth, OptimisticState, RpcOutcome
from app.enums import ControlPhase, MotorCommand
from app.utils.concurrency import synchronized
from app.utils.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

DispatchFn = Callable[[Control, ControlValue], RpcOutcome]


@dataclass(frozen=True)
class ClientTimings:
    send_phase_s: float = 0.45
    relay_ttl_s: float = 6.0
    motor_ttl_s: float = 12.0
    poll_interval_s: float = 5.0
    relay_refetch_delay_s: float = 1.2
    motor_refetch_delay_s: float = 0.9

    @classmethod
    def from_config(cls, config: AppConfig) -> "ClientTimings":
        return cls(
            send_phase_s=config.client_send_phase_s,
            relay_ttl_s=config.client_relay_ttl_s,
            motor_ttl_s=config.client_motor_ttl_s,
            poll_interval_s=config.client_poll_interval_s,
            relay_refetch_delay_s=config.client_relay_refetch_delay_s,
            motor_refetch_delay_s=config.client_motor_refetch_delay_s,
        )

    def ttl_for(self, control: Control) -> float:
        # Motors need mechanical settle time
        return self.motor_ttl_s if control.is_motor else self.relay_ttl_s

    def refetch_delay_for(self, control: Control) -> float:
        return self.motor_refetch_delay_s if control.is_motor else self.relay_refetch_delay_s


def normalize_target(control: Control, value: ControlValue) -> ControlValue:
    if control.is_motor:
        return MotorCommand(int(value))
    return bool(value)


class ControlStateMachine:
    """Optimistic display state of one control.

    Timer callbacks take *lock* when one is given; the coordinator passes its
    own so timers, dispatch callbacks and polls never interleave.
    """

    def __init__(
        self,
        control: Control,
        scheduler: Scheduler,
        timings: ClientTimings,
        on_change: Optional[Callable[[str], None]] = None,
        lock: Optional[threading.RLock] = None,
    ) -> None:
        self.control = control
        self._lock = lock
        self._scheduler = scheduler
        self._timings = timings
        self._on_change = on_change
        self._state: Optional[OptimisticState] = None
        self._ground_truth: Optional[GroundTruth] = None
        self._attempts = 0
        self._send_timer: Optional[TimerHandle] = None
        self._ttl_timer: Optional[TimerHandle] = None

    # --- Introspection ---------------------------------------------------------
    @property
    def phase(self) -> ControlPhase:
        return self._state.phase if self._state else ControlPhase.IDLE

    @property
    def is_busy(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> Optional[OptimisticState]:
        return self._state

    @property
    def ground_truth(self) -> Optional[GroundTruth]:
        return self._ground_truth

    @property
    def display_value(self) -> ControlValue:
        if self._state is not None:
            return self._state.target_value
        return self._ground_truth.value if self._ground_truth else None

    def is_current(self, attempt: int) -> bool:
        return self._state is not None and self._state.attempt == attempt

    # --- Transitions -----------------------------------------------------------
    def begin(self, target: ControlValue) -> Optional[int]:
        """Enter ``SENDING`` for *target*. Returns the attempt number, or None when busy."""
        if self._state is not None:
            return None
        self._attempts += 1
        attempt = self._attempts
        now = self._scheduler.now()
        ttl = self._timings.ttl_for(self.control)
        self._state = OptimisticState(
            target_value=normalize_target(self.control, target),
            phase=ControlPhase.SENDING,
            started_at=now,
            ttl_deadline=now + ttl,
            attempt=attempt,
        )
        self._send_timer = self._scheduler.call_later(self._timings.send_phase_s, lambda: self._enter_syncing(attempt))
        self._ttl_timer = self._scheduler.call_later(ttl, lambda: self._expire(attempt))
        self._changed()
        return attempt

    @synchronized
    def _enter_syncing(self, attempt: int) -> None:
        if not self.is_current(attempt) or self._state.phase is not ControlPhase.SENDING:
            return
        self._state.phase = ControlPhase.SYNCING
        self._send_timer = None
        self._changed()

    @synchronized
    def _expire(self, attempt: int) -> None:
        if not self.is_current(attempt):
            return
        logger.info(
            "Control %s not confirmed within %.1fs, reverting to %r",
            self.control.control_key,
            self._timings.ttl_for(self.control),
            self._ground_truth.value if self._ground_truth else None,
        )
        self._clear()

    def on_ground_truth(self, value: ControlValue, observed_at: float) -> bool:
        """Store a polled value. Returns True when it reconciled an outstanding target."""
        self._ground_truth = GroundTruth(self.control.control_key, value, observed_at)
        if self._state is None:
            self._changed()
            return False
        if value == self._state.target_value:
            self._clear()
            return True
        return False

    def rollback(self, attempt: Optional[int] = None) -> bool:
        """Drop the optimistic value. With *attempt*, only if that attempt is still current."""
        if self._state is None or (attempt is not None and not self.is_current(attempt)):
            return False
        self._clear()
        return True

    def force_clear(self) -> None:
        if self._state is not None:
            self._clear()

    def _clear(self) -> None:
        for timer in (self._send_timer, self._ttl_timer):
            if timer is not None:
                timer.cancel()
        self._send_timer = None
        self._ttl_timer = None
        self._state = None
        self._changed()

    def _changed(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self.control.control_key)
        except Exception:
            logger.exception("State change listener failed for %s", self.control.control_key)


class DeviceControlCoordinator:
    """Owns the control state machines of one greenhouse.

    ``dispatch`` is called on the executor with ``(control, target)`` and must
    return an :class:`RpcOutcome`; raising counts as a rejected dispatch.
    """

    def __init__(
        self,
        controls: Iterable[Control],
        dispatch: DispatchFn,
        scheduler: Scheduler,
        *,
        executor: Optional[Executor] = None,
        timings: Optional[ClientTimings] = None,
        poller: Any = None,
        on_change: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._dispatch = dispatch
        self._scheduler = scheduler
        self._timings = timings or ClientTimings()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="control-dispatch")
        self._poller = poller
        self._lock = threading.RLock()
        self._enabled = True
        self._online = True
        # Last polled value of every attribute, for the automation locks
        self._attributes: Dict[str, Any] = {}
        self._machines: Dict[str, ControlStateMachine] = {
            control.control_key: ControlStateMachine(control, scheduler, self._timings, on_change, self._lock)
            for control in controls
        }
        self._unsubscribe: Optional[Callable[[], None]] = None
        if poller is not None:
            self._unsubscribe = poller.subscribe(self.apply_attributes)

    # --- Commands --------------------------------------------------------------
    @synchronized
    def request(self, control_key: str, target: ControlValue) -> bool:
        """Start a command. Returns False (no-op) while the control is busy, disabled or in auto mode."""
        if not self.controls_enabled:
            return False
        machine = self._machine(control_key)
        if auto_mode_active(machine.control, self._attributes):
            logger.debug("Ignoring manual command for %s: automation mode is on", control_key)
            return False
        attempt = machine.begin(target)
        if attempt is None:
            return False

        control = machine.control
        value = machine.state.target_value
        logger.debug("Dispatching %s -> %r (attempt %s)", control_key, value, attempt)
        try:
            future = self._executor.submit(self._dispatch, control, value)
        except RuntimeError as exc:
            logger.error("Cannot submit command for %s: %s", control_key, exc)
            machine.rollback(attempt)
            return False
        future.add_done_callback(lambda f: self._on_dispatch_done(control_key, attempt, f))
        return True

    def request_group(self, control_keys: Iterable[str], target: ControlValue) -> List[str]:
        """Apply one target to several controls; each is dispatched on its own."""
        return [key for key in control_keys if self.request(key, target)]

    @synchronized
    def _on_dispatch_done(self, control_key: str, attempt: int, future: Future) -> None:
        machine = self._machines[control_key]
        exc = future.exception()
        if exc is not None:
            logger.warning("Command for %s failed: %s", control_key, exc)
            machine.rollback(attempt)
            return

        outcome: RpcOutcome = future.result()
        if not outcome.ok:
            logger.info("Command for %s rejected (%s): %s", control_key, outcome.error, outcome.error_message)
            machine.rollback(attempt)
            return

        if self._poller is not None and machine.is_current(attempt):
            self._poller.schedule_refetch(self._timings.refetch_delay_for(machine.control))

    # --- Ground truth ----------------------------------------------------------
    @synchronized
    def apply_attributes(self, attributes: Mapping[str, Any]) -> List[str]:
        """Feed polled attributes to every machine. Returns the reconciled control keys."""
        now = self._scheduler.now()
        self._attributes.update(attributes)
        reconciled = []
        for key, machine in self._machines.items():
            value = derive_ground_truth(machine.control, attributes)
            if value is None:
                continue
            if machine.on_ground_truth(value, now):
                reconciled.append(key)
        return reconciled

    # --- External conditions ---------------------------------------------------
    @property
    def controls_enabled(self) -> bool:
        return self._enabled and self._online

    @synchronized
    def set_enabled(self, enabled: bool) -> None:
        self._enabled = bool(enabled)
        if not self._enabled:
            self.force_clear_all()

    @synchronized
    def set_online(self, online: bool) -> None:
        self._online = bool(online)
        if not self._online:
            self.force_clear_all()

    @synchronized
    def force_clear_all(self) -> None:
        for machine in self._machines.values():
            machine.force_clear()

    # --- Views -----------------------------------------------------------------
    @synchronized
    def display_value(self, control_key: str) -> ControlValue:
        return self._machine(control_key).display_value

    @synchronized
    def phase(self, control_key: str) -> ControlPhase:
        return self._machine(control_key).phase

    @synchronized
    def is_busy(self, control_key: str) -> bool:
        return self._machine(control_key).is_busy

    @synchronized
    def in_auto_mode(self, control_key: str) -> bool:
        """Relays follow their own ``*_auto`` flag; motors follow ``global_motor_auto``."""
        return auto_mode_active(self._machine(control_key).control, self._attributes)

    def can_request(self, control_key: str) -> bool:
        """Whether the control's button should be enabled."""
        return self.controls_enabled and not self.is_busy(control_key) and not self.in_auto_mode(control_key)

    @property
    def control_keys(self) -> List[str]:
        return list(self._machines)

    def close(self) -> None:
        with self._lock:
            self.force_clear_all()
            if self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    def _machine(self, control_key: str) -> ControlStateMachine:
        try:
            return self._machines[control_key]
        except KeyError:
            raise KeyError(f"Unknown control '{control_key}'") from None


__all__ = [
    "ClientTimings",
    "ControlStateMachine",
    "DeviceControlCoordinator",
    "normalize_target",
]
