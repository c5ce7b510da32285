"""
Recording Models Package

Data classes shared by the recorder components.
"""

from recording.models.recording_config import (
    BackgroundLayer,
    CameraSettings,
    CameraShape,
    CaptureMode,
    DeviceList,
    EncoderInfo,
    EncoderType,
    OverlayGeometry,
    OverlayPlacement,
    Point,
    RecordingConfig,
    Rect,
    ScreenSource,
    Size,
)
from recording.models.results import ProcessResult, RecorderResult

# Public API
__all__ = [
    "BackgroundLayer",
    "CameraSettings",
    "CameraShape",
    "CaptureMode",
    "DeviceList",
    "EncoderInfo",
    "EncoderType",
    "OverlayGeometry",
    "OverlayPlacement",
    "Point",
    "ProcessResult",
    "RecorderResult",
    "RecordingConfig",
    "Rect",
    "ScreenSource",
    "Size",
]
