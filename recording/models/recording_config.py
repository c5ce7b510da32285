"""
Recording Configuration Models

Data classes describing what one recording session should capture and how
the result should look. Built by the caller (UI, CLI profile loader) and
handed to SessionController.start().

A config is treated as read-only for the whole session, except for the
device labels: they are rewritten in place once they have been resolved
against the platform device list.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from config.settings import DEFAULT_FPS
from recording.constants import SOURCE_RESOLUTION


class CaptureMode(Enum):
    SCREEN = "screen"
    CAMERA = "camera"
    SCREEN_CAMERA = "screen-camera"


class CameraShape(Enum):
    CIRCLE = "circle"
    ROUNDED = "rounded"


class EncoderType(Enum):
    HARDWARE = "hardware"
    SOFTWARE = "software"


@dataclass(frozen=True)
class Point:
    x: int
    y: int


@dataclass(frozen=True)
class Size:
    w: int
    h: int


@dataclass(frozen=True)
class Rect:
    x: int
    y: int
    w: int
    h: int


@dataclass
class ScreenSource:
    """
    Screen or window to grab.

    Attributes:
        id: Logical source id from the capture picker
        name: Window title (used when is_screen is False)
        is_screen: True = whole display, False = single window
        region: Physical bounds of the display on the virtual desktop.
                Keeps multi-monitor captures on the chosen monitor.
    """

    id: str
    name: str = ""
    is_screen: bool = True
    region: Optional[Rect] = None


@dataclass
class CameraSettings:
    """
    Camera overlay settings.

    Size and position are in preview coordinates; they are mapped to
    output pixels when the filter graph is built.
    """

    label: Optional[str] = None
    size: int = 200
    position: Point = field(default_factory=lambda: Point(0, 0))
    shape: CameraShape = CameraShape.CIRCLE
    # A floating bubble is already visible on the desktop and gets grabbed
    # with the screen, so the encoder must not composite it a second time.
    floating: bool = False


@dataclass
class BackgroundLayer:
    """
    Pre-rendered background composited behind the screen capture.

    image_data and foreground_data are encoded raster bytes (PNG) produced
    by the caller; the session writes them to temp files for the encoder.
    """

    image_data: bytes
    content_area: Rect
    output_size: Optional[Size] = None
    foreground_data: Optional[bytes] = None


@dataclass
class RecordingConfig:
    """
    Everything one session needs to know.

    Example:
        config = RecordingConfig(
            mode=CaptureMode.SCREEN_CAMERA,
            output_folder=Path("C:/Videos"),
            screen=ScreenSource(id="screen:0", is_screen=True),
            camera=CameraSettings(label="Logi Webcam®", size=180),
            microphone_label="Microphone (USB Audio)",
        )
    """

    mode: CaptureMode
    output_folder: Optional[Path]
    screen: Optional[ScreenSource] = None
    camera: Optional[CameraSettings] = None
    microphone_label: Optional[str] = None
    output_resolution: str = SOURCE_RESOLUTION
    fps: int = DEFAULT_FPS
    preview_size: Size = field(default_factory=lambda: Size(1280, 720))
    background: Optional[BackgroundLayer] = None

    def __post_init__(self):
        """Accept plain strings for mode and folder"""
        if not isinstance(self.mode, CaptureMode):
            self.mode = CaptureMode(self.mode)
        if self.output_folder is not None and not isinstance(self.output_folder, Path):
            self.output_folder = Path(self.output_folder)

    @property
    def has_screen(self) -> bool:
        return self.mode in (CaptureMode.SCREEN, CaptureMode.SCREEN_CAMERA)

    @property
    def has_camera(self) -> bool:
        """Camera is captured by the encoder itself (not a floating bubble)"""
        return (
            self.camera is not None
            and bool(self.camera.label)
            and self.mode in (CaptureMode.CAMERA, CaptureMode.SCREEN_CAMERA)
            and not self.camera.floating
        )

    @property
    def has_microphone(self) -> bool:
        return bool(self.microphone_label)


@dataclass(frozen=True)
class EncoderInfo:
    encoder: str
    type: EncoderType


@dataclass
class DeviceList:
    """Capture devices as the platform enumerates them, in listing order"""

    video: List[str] = field(default_factory=list)
    audio: List[str] = field(default_factory=list)

    def for_kind(self, kind: str) -> List[str]:
        if kind == "video":
            return self.video
        if kind == "audio":
            return self.audio
        raise ValueError(f"Unknown device kind: {kind}")


@dataclass(frozen=True)
class OverlayGeometry:
    """Camera overlay placement expressed in preview space"""

    size: int
    position: Point
    shape: CameraShape
    output_size: Size
    preview_size: Size


@dataclass(frozen=True)
class OverlayPlacement:
    """Camera overlay placement in output pixels"""

    size: int
    x: int
    y: int

    @property
    def radius(self) -> int:
        return self.size // 2
