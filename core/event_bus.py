"""
Event Bus

Small publish/subscribe channel between the recorder and its caller.

Used for failures nobody is synchronously waiting on (an encoder process
crashing in the middle of a recording) and for lifecycle notifications.
Events go to every subscriber of their type and are also kept in a bounded
queue so a caller can poll instead of subscribing.
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from config.settings import EVENT_QUEUE_SIZE


class RecorderEvent(Enum):
    """Event types published by the session controller."""

    STATE_CHANGED = "state_changed"
    SEGMENT_STARTED = "segment_started"
    SEGMENT_CLOSED = "segment_closed"
    RUNTIME_CRASH = "runtime_crash"
    SESSION_FINALIZED = "session_finalized"


@dataclass
class Event:
    event_type: RecorderEvent
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


EventCallback = Callable[[Event], None]


class EventBus:
    """
    Thread-safe publish/subscribe bus.

    Usage:
        bus = EventBus()
        bus.subscribe(RecorderEvent.RUNTIME_CRASH, lambda e: print(e.data))
        bus.publish(RecorderEvent.RUNTIME_CRASH, {"exit_code": 1})

        # Or poll
        event = bus.get_event(timeout=1.0)
    """

    def __init__(self, max_queue_size: int = EVENT_QUEUE_SIZE):
        self.logger = logging.getLogger(__name__)
        self.subscribers: Dict[RecorderEvent, List[EventCallback]] = {}
        self.event_queue: "queue.Queue[Event]" = queue.Queue(maxsize=max_queue_size)
        self._lock = threading.Lock()

    def subscribe(self, event_type: RecorderEvent, callback: EventCallback) -> None:
        """Register a handler for one event type"""
        with self._lock:
            self.subscribers.setdefault(event_type, []).append(callback)
        self.logger.debug(f"Subscribed to {event_type.value}")

    def unsubscribe(self, event_type: RecorderEvent, callback: EventCallback) -> bool:
        """Remove a handler. Returns False if it was not registered."""
        with self._lock:
            callbacks = self.subscribers.get(event_type, [])
            if callback not in callbacks:
                return False
            callbacks.remove(callback)
            return True

    def publish(self, event_type: RecorderEvent, data: Optional[Dict[str, Any]] = None) -> Event:
        """
        Queue an event and deliver it to subscribers.

        Subscriber exceptions are logged, never propagated to the publisher.
        """
        event = Event(event_type=event_type, data=dict(data or {}))
        self._enqueue(event)

        with self._lock:
            callbacks = list(self.subscribers.get(event_type, []))

        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                self.logger.error(f"Error in {event_type.value} subscriber: {e}")

        return event

    def get_event(self, timeout: Optional[float] = None) -> Optional[Event]:
        """Pop the oldest queued event, or None if nothing arrives in time"""
        try:
            if timeout is None:
                return self.event_queue.get_nowait()
            return self.event_queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[Event]:
        """Pop every queued event"""
        events = []
        while True:
            event = self.get_event()
            if event is None:
                return events
            events.append(event)

    def _enqueue(self, event: Event) -> None:
        # Bounded: drop the oldest event to make room
        while True:
            try:
                self.event_queue.put_nowait(event)
                return
            except queue.Full:
                try:
                    dropped = self.event_queue.get_nowait()
                    self.logger.warning(
                        f"Event queue full, dropped {dropped.event_type.value}",
                    )
                except queue.Empty:
                    pass
