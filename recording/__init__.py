"""
Recording Module

Screen / camera recording sessions driven by an external FFmpeg process.

Provides automatic detection and graceful fallback between the real FFmpeg
runner and a mock runner for testing.

Public API:
    - SessionController: start / pause / resume / stop of a multi-segment session
    - PostProcessor: camera overlay pass on a finished recording
    - EncoderProbe / DeviceCatalog: cached encoder and device lookups
    - CommandBuilder: RecordingConfig -> FFmpeg arguments
    - RecordingFactory: Factory for creating process runners
    - RecordingConfig and friends: session configuration
    - RecorderResult: value returned by every public operation

Usage:
    from recording import CaptureMode, RecordingConfig, SessionController

    controller = SessionController()
    result = controller.start(RecordingConfig(mode=CaptureMode.SCREEN, output_folder="videos"))
    ...
    result = controller.stop()
    print(result.output_path)
"""

from recording.builders.command_builder import CommandBuilder
from recording.constants import ErrorCode, RecorderState
from recording.controllers.device_catalog import DeviceCatalog
from recording.controllers.encoder_probe import EncoderProbe
from recording.controllers.post_processor import PostProcessor
from recording.controllers.session_controller import SessionController
from recording.factory import RecordingFactory, create_runner, create_session_controller
from recording.interfaces.process_runner_interface import (
    ProcessRunnerInterface,
    RecorderError,
)
from recording.models.recording_config import (
    BackgroundLayer,
    CameraSettings,
    CameraShape,
    CaptureMode,
    OverlayGeometry,
    Point,
    RecordingConfig,
    Rect,
    ScreenSource,
    Size,
)
from recording.models.results import RecorderResult

__all__ = [
    "BackgroundLayer",
    "CameraSettings",
    "CameraShape",
    "CaptureMode",
    "CommandBuilder",
    "DeviceCatalog",
    "EncoderProbe",
    "ErrorCode",
    "OverlayGeometry",
    "Point",
    "PostProcessor",
    "ProcessRunnerInterface",
    "RecorderError",
    "RecorderResult",
    "RecorderState",
    "RecordingConfig",
    "RecordingFactory",
    "Rect",
    "ScreenSource",
    "SessionController",
    "Size",
    "create_runner",
    "create_session_controller",
]
