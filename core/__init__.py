"""
Core utilities and modules.

Public API:
    - EventBus / RecorderEvent: publish/subscribe channel for recorder events
    - RecorderStateMachine / RecorderState: recorder lifecycle

Usage:
    from core import EventBus, RecorderEvent

    bus = EventBus()
    bus.subscribe(RecorderEvent.RUNTIME_CRASH, handle_crash)
"""

from core.event_bus import Event, EventBus, RecorderEvent
from core.state_machine import (
    InvalidTransitionError,
    RecorderOperation,
    RecorderState,
    RecorderStateMachine,
)

__all__ = [
    "Event",
    "EventBus",
    "InvalidTransitionError",
    "RecorderEvent",
    "RecorderOperation",
    "RecorderState",
    "RecorderStateMachine",
]
