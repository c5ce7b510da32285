"""
Recording Interfaces Package

Exposes abstract interfaces and errors for recording components.
"""

from recording.interfaces.process_runner_interface import (
    ConcatenationError,
    ConfigError,
    DeviceResolutionError,
    EncoderProcessInterface,
    PostProcessError,
    ProcessRunnerInterface,
    RecorderError,
    RecorderTimeoutError,
    RuntimeCrash,
    SpawnError,
)

# Public API
__all__ = [
    "ConcatenationError",
    "ConfigError",
    "DeviceResolutionError",
    # Interfaces
    "EncoderProcessInterface",
    "PostProcessError",
    "ProcessRunnerInterface",
    # Exceptions
    "RecorderError",
    "RecorderTimeoutError",
    "RuntimeCrash",
    "SpawnError",
]
