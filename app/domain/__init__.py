"""
Domain Value Objects Package
=============================
Dataclasses describing controls, commands and their outcomes, shared by the
server-side dispatcher and the operator-side state machines.
"""

from .control import (
    SOFT_TIMEOUT_MESSAGE,
    CommandDescriptor,
    CommandIntent,
    Control,
    ControlHistoryRecord,
    GroundTruth,
    OptimisticState,
    RpcOutcome,
)

__all__ = [
    # Catalog
    "Control",
    # Commands
    "CommandDescriptor",
    "CommandIntent",
    "RpcOutcome",
    "SOFT_TIMEOUT_MESSAGE",
    # History
    "ControlHistoryRecord",
    # Operator client
    "GroundTruth",
    "OptimisticState",
]
