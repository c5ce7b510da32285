"""
Recording Factory

Factory pattern for creating process runners.
Automatically selects the real FFmpeg runner or the mock based on availability.

Single place to decide implementation, so controllers only ever see
ProcessRunnerInterface.
"""

import logging
from typing import Literal, Optional

from recording.implementations.ffmpeg_runner import FFmpegRunner
from recording.implementations.mock_runner import PROGRESS, MockRunner
from recording.interfaces.process_runner_interface import ProcessRunnerInterface

# Type alias for better type hints
RunnerMode = Literal["auto", "real", "mock"]


class RecordingFactory:
    """
    Factory for creating process runner implementations.

    Usage:
        # Auto-detect (uses FFmpeg if available, mock otherwise)
        runner = RecordingFactory.create_runner()

        # Force mock mode (useful for testing and dry runs)
        runner = RecordingFactory.create_runner(mode="mock")

        # Force real FFmpeg (raises error if not available)
        runner = RecordingFactory.create_runner(mode="real")
    """

    _logger = logging.getLogger(__name__)

    @classmethod
    def create_runner(
        cls,
        mode: RunnerMode = "auto",
        executable: Optional[str] = None,
        mock_behavior: str = PROGRESS,
    ) -> ProcessRunnerInterface:
        """
        Create a process runner.

        Args:
            mode: "auto" (detect), "real" (force FFmpeg), "mock" (force mock)
            executable: Explicit ffmpeg path (real runner only)
            mock_behavior: Capture behavior of the mock runner

        Raises:
            RuntimeError: If mode="real" but FFmpeg not available
        """
        if mode == "mock":
            cls._logger.info(f"Creating Mock Runner (behavior: {mock_behavior})")
            return MockRunner(behavior=mock_behavior)

        if mode == "real":
            try:
                runner = FFmpegRunner(executable)
            except Exception as e:
                raise RuntimeError(f"FFmpeg runner requested but not available: {e}") from e
            if not runner.is_available():
                raise RuntimeError(f"FFmpeg runner requested but {runner.executable} does not run")
            cls._logger.info("Creating FFmpeg Runner (forced)")
            return runner

        # mode == "auto" - try real first, fall back to mock
        try:
            runner = FFmpegRunner(executable)
        except Exception as e:
            cls._logger.warning(f"FFmpeg not available ({e}), using Mock Runner")
            return MockRunner(behavior=mock_behavior)

        if runner.is_available():
            cls._logger.info("Creating FFmpeg Runner (auto-detected)")
            return runner

        cls._logger.warning("FFmpeg not available, using Mock Runner")
        return MockRunner(behavior=mock_behavior)

    @classmethod
    def is_ffmpeg_available(cls, executable: Optional[str] = None) -> bool:
        """
        Check if the real FFmpeg binary can be launched.

        Example:
            if not RecordingFactory.is_ffmpeg_available():
                print("Warning: FFmpeg not installed")
        """
        try:
            return FFmpegRunner(executable).is_available()
        except Exception as e:
            cls._logger.debug(f"FFmpeg check failed: {e}")
            return False


# Convenience functions for quick creation


def create_runner(force_mock: bool = False) -> ProcessRunnerInterface:
    """
    Create a runner with auto-detection.

    Example:
        # Normal usage
        runner = create_runner()

        # Tests / dry runs
        runner = create_runner(force_mock=True)
    """
    mode: RunnerMode = "mock" if force_mock else "auto"
    return RecordingFactory.create_runner(mode=mode)


def create_session_controller(mode: RunnerMode = "auto", **kwargs):
    """
    Create a SessionController wired to a runner of the given mode.

    Example:
        controller = create_session_controller(mode="mock", start_timeout=0.1)
    """
    from recording.controllers.session_controller import SessionController

    return SessionController(runner=RecordingFactory.create_runner(mode=mode), **kwargs)
