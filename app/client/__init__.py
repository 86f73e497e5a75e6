"""Operator-side control client: optimistic state machines, attribute poller, API client."""

from app.client.api_client import ControlApiClient
from app.client.poller import AttributePoller
from app.client.state_machine import ClientTimings, ControlStateMachine, DeviceControlCoordinator

__all__ = [
    "AttributePoller",
    "ClientTimings",
    "ControlApiClient",
    "ControlStateMachine",
    "DeviceControlCoordinator",
]
