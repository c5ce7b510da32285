import logging
import time
from enum import Enum
from typing import Callable, Dict, Optional, Tuple


class RecorderState(Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"
    STOPPING = "stopping"


class RecorderOperation(Enum):
    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"


# Which public operation may be invoked from which state
OPERATION_RULES: Dict[RecorderOperation, Tuple[RecorderState, ...]] = {
    RecorderOperation.START: (RecorderState.IDLE,),
    RecorderOperation.PAUSE: (RecorderState.RECORDING,),
    RecorderOperation.RESUME: (RecorderState.PAUSED,),
    RecorderOperation.STOP: (RecorderState.RECORDING, RecorderState.PAUSED),
}

# Legal state changes
TRANSITIONS: Dict[RecorderState, Tuple[RecorderState, ...]] = {
    RecorderState.IDLE: (RecorderState.RECORDING,),
    RecorderState.RECORDING: (RecorderState.PAUSED, RecorderState.STOPPING),
    RecorderState.PAUSED: (RecorderState.RECORDING, RecorderState.STOPPING),
    RecorderState.STOPPING: (RecorderState.IDLE,),
}


class InvalidTransitionError(Exception):
    """Raised when a state change is not in the transition table"""


class RecorderStateMachine:
    """
    State machine for one recorder.

    idle -> recording -> paused -> recording (new segment) -> ... -> stopping -> idle

    It does not start or stop anything itself: the session controller asks
    it whether an operation is allowed, then reports the resulting state.
    """

    def __init__(self):
        self.current_state = RecorderState.IDLE
        self.previous_state: Optional[RecorderState] = None
        self.state_start_time = time.time()
        self.logger = logging.getLogger(__name__)

        # Callbacks for interested components
        self.callbacks: Dict[str, Optional[Callable]] = {
            "on_state_change": None,  # Called with (old_state, new_state, reason)
        }

        self.logger.info("State machine initialized in IDLE state")

    def register_callback(self, callback_name: str, callback_func: Callable):
        """Register a callback function for state machine events"""
        if callback_name in self.callbacks:
            self.callbacks[callback_name] = callback_func
            self.logger.debug(f"Registered callback: {callback_name}")
        else:
            raise ValueError(f"Unknown callback: {callback_name}")

    def get_current_state(self) -> RecorderState:
        """Get the current recorder state"""
        return self.current_state

    def get_state_duration(self) -> float:
        """Get how long we've been in the current state (seconds)"""
        return time.time() - self.state_start_time

    def check_operation(self, operation: RecorderOperation) -> Optional[str]:
        """
        Check whether an operation is allowed right now.

        Returns None if allowed, otherwise a human-readable rejection.
        """
        if self.current_state in OPERATION_RULES[operation]:
            return None
        return f"Cannot {operation.value}: recorder is {self.current_state.value}"

    def can_transition(self, new_state: RecorderState) -> bool:
        return new_state in TRANSITIONS[self.current_state]

    def transition_to(self, new_state: RecorderState, reason: str = ""):
        """
        Transition to a new state with logging and callback notification
        """
        if new_state == self.current_state:
            self.logger.debug(f"Already in state {new_state.value}")
            return

        if not self.can_transition(new_state):
            raise InvalidTransitionError(
                f"Illegal transition: {self.current_state.value} -> {new_state.value}",
            )

        old_state = self.current_state
        self.previous_state = old_state
        self.current_state = new_state
        self.state_start_time = time.time()

        log_msg = f"State transition: {old_state.value} -> {new_state.value}"
        if reason:
            log_msg += f" ({reason})"
        self.logger.info(log_msg)

        # Notify components of state change
        if self.callbacks["on_state_change"]:
            try:
                self.callbacks["on_state_change"](old_state, new_state, reason)
            except Exception as e:
                self.logger.error(f"Error in state change callback: {e}")

    def get_status_info(self) -> Dict:
        """Get detailed status information for debugging/monitoring"""
        return {
            "current_state": self.current_state.value,
            "previous_state": (
                self.previous_state.value if self.previous_state else None
            ),
            "state_duration": self.get_state_duration(),
        }
