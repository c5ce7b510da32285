"""
Process Runner Interface

Abstract interfaces for launching the external encoder.
Defines the contract that any encoder process backend must follow.

High-level code (probe, device catalog, session controller, segment store,
post processor) depends on these abstractions, not on subprocess directly.

Why an interface?
1. Testability: MockRunner replaces FFmpeg in tests
2. Clear contract: documents exactly what the recorder needs from a process
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from recording.constants import ErrorCode
from recording.models.results import ProcessResult

OutputCallback = Callable[[str], None]
ExitCallback = Callable[[int], None]


class EncoderProcessInterface(ABC):
    """
    Handle on one live, long-running encoder process.

    Diagnostic output and the exit code are delivered through the callbacks
    given to ProcessRunnerInterface.spawn(), never by blocking the caller.
    """

    @property
    @abstractmethod
    def pid(self) -> Optional[int]:
        """OS process id (None for fakes that have none)"""

    @abstractmethod
    def send_quit(self) -> bool:
        """
        Ask the encoder to finish the file and exit.

        Writes the quit command on the control channel (stdin).

        Returns:
            True if the request was delivered, False if the control channel
            is unavailable (caller should terminate() instead)
        """

    @abstractmethod
    def terminate(self) -> None:
        """Send a termination signal. Never raises."""

    @abstractmethod
    def kill(self) -> None:
        """Force-kill the process. Never raises."""

    @abstractmethod
    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        """
        Wait for the process to exit.

        Returns:
            Exit code, or None if still running after timeout
        """

    @abstractmethod
    def poll(self) -> Optional[int]:
        """Exit code if the process has exited, otherwise None"""


class ProcessRunnerInterface(ABC):
    """
    Launches encoder invocations.

    Arguments passed to both methods exclude the executable itself;
    the runner owns binary resolution.
    """

    @property
    @abstractmethod
    def executable(self) -> str:
        """Path or name of the encoder executable"""

    @abstractmethod
    def spawn(
        self,
        args: Sequence[str],
        on_output: OutputCallback,
        on_exit: ExitCallback,
    ) -> EncoderProcessInterface:
        """
        Start a long-running process.

        on_output receives decoded diagnostic text chunks as they arrive,
        on_exit receives the exit code once. Both may be called from a
        background thread.

        Raises:
            SpawnError: If the process could not be launched
        """

    @abstractmethod
    def run(self, args: Sequence[str], timeout: float) -> ProcessResult:
        """
        Run a one-shot process to completion.

        A process still running at timeout is killed and reported with
        timed_out=True.

        Raises:
            SpawnError: If the process could not be launched
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Check whether the encoder executable can be launched"""

    def format_command(self, args: Sequence[str]) -> str:
        """Command line as text, for logs"""
        return " ".join([self.executable, *args])


# =============================================================================
# ERRORS
# =============================================================================


class RecorderError(Exception):
    """
    Base class for recorder errors.

    Raised inside components; the session controller and post processor
    turn them into RecorderResult values at their public boundary.
    """

    code = ErrorCode.UNKNOWN_ERROR


class ConfigError(RecorderError):
    """Missing output folder, operation not allowed in the current state"""

    code = ErrorCode.CONFIG_ERROR


class DeviceResolutionError(RecorderError):
    """A device label matched nothing in the platform device list"""

    code = ErrorCode.DEVICE_NOT_FOUND

    def __init__(self, message: str, label: str = "", candidates: Optional[List[str]] = None):
        super().__init__(message)
        self.label = label
        self.candidates = list(candidates or [])


class SpawnError(RecorderError):
    """Encoder process failed to launch"""

    code = ErrorCode.SPAWN_FAILED


class RuntimeCrash(RecorderError):
    """Encoder exited unexpectedly while recording"""

    code = ErrorCode.RUNTIME_CRASH

    def __init__(self, message: str, exit_code: Optional[int] = None):
        super().__init__(message)
        self.exit_code = exit_code


class ConcatenationError(RecorderError):
    """Joining segments failed; the first segment is still usable"""

    code = ErrorCode.CONCAT_FAILED

    def __init__(self, message: str, fallback_path: Optional[Path] = None):
        super().__init__(message)
        self.fallback_path = fallback_path


class PostProcessError(RecorderError):
    """Overlay pass failed; the screen-only file is still usable"""

    code = ErrorCode.POST_PROCESS_FAILED

    def __init__(self, message: str, fallback_path: Optional[Path] = None):
        super().__init__(message)
        self.fallback_path = fallback_path


class RecorderTimeoutError(RecorderError):
    """A bounded wait expired"""

    code = ErrorCode.TIMEOUT

    def __init__(self, message: str, fallback_path: Optional[Path] = None):
        super().__init__(message)
        self.fallback_path = fallback_path
