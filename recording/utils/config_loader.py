"""
Recording Profile Loader

Reads a YAML recording profile into a RecordingConfig.

Example profile:

    mode: screen-camera
    output_folder: ~/Videos/FancyCapture
    output_resolution: 1080p
    fps: 30
    preview_size: {w: 1280, h: 720}
    screen:
      id: "screen:0"
      is_screen: true
      region: {x: 0, y: 0, w: 1920, h: 1080}
    camera:
      label: Logi Webcam
      size: 200
      position: {x: 1040, y: 480}
      shape: circle
    microphone: Microphone (USB Audio)
    background:
      image: backgrounds/gradient.png     # relative to the profile file
      content_area: {x: 80, y: 45, w: 1760, h: 990}
      output_size: {w: 1920, h: 1080}

Missing keys fall back to RecordingConfig defaults; a missing
output_folder falls back to DEFAULT_OUTPUT_FOLDER.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from config.settings import DEFAULT_OUTPUT_FOLDER
from recording.constants import RESOLUTION_PRESETS, SOURCE_RESOLUTION
from recording.interfaces.process_runner_interface import ConfigError
from recording.models.recording_config import (
    BackgroundLayer,
    CameraSettings,
    CameraShape,
    CaptureMode,
    Point,
    RecordingConfig,
    Rect,
    ScreenSource,
    Size,
)

logger = logging.getLogger(__name__)


def load_profile(path: Path) -> RecordingConfig:
    """
    Load a YAML profile.

    Raises:
        ConfigError: Unreadable file or invalid values
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load profile {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Profile {path} must be a mapping")

    config = config_from_dict(data, base_dir=path.parent)
    logger.info(f"Loaded recording profile from {path} (mode: {config.mode.value})")
    return config


def config_from_dict(data: Dict[str, Any], base_dir: Optional[Path] = None) -> RecordingConfig:
    """Build a RecordingConfig from already-parsed profile data"""
    base_dir = Path(base_dir) if base_dir else Path.cwd()

    try:
        mode = CaptureMode(data.get("mode", CaptureMode.SCREEN.value))
    except ValueError as e:
        valid = ", ".join(m.value for m in CaptureMode)
        raise ConfigError(f"Invalid mode {data.get('mode')!r} (expected one of: {valid})") from e

    resolution = str(data.get("output_resolution", SOURCE_RESOLUTION))
    if resolution != SOURCE_RESOLUTION and resolution not in RESOLUTION_PRESETS:
        raise ConfigError(f"Invalid output_resolution {resolution!r}")

    folder = data.get("output_folder")
    output_folder = Path(folder).expanduser() if folder else DEFAULT_OUTPUT_FOLDER

    kwargs: Dict[str, Any] = {
        "mode": mode,
        "output_folder": output_folder,
        "screen": _screen(data.get("screen")),
        "camera": _camera(data.get("camera")),
        "microphone_label": data.get("microphone") or None,
        "output_resolution": resolution,
        "background": _background(data.get("background"), base_dir),
    }
    if "fps" in data:
        kwargs["fps"] = _positive_int(data["fps"], "fps")
    if "preview_size" in data:
        kwargs["preview_size"] = _size(data["preview_size"], "preview_size")

    return RecordingConfig(**kwargs)


def _screen(data: Optional[Dict[str, Any]]) -> Optional[ScreenSource]:
    if not data:
        return None
    region = data.get("region")
    return ScreenSource(
        id=str(data.get("id", "screen:0")),
        name=str(data.get("name", "")),
        is_screen=bool(data.get("is_screen", True)),
        region=_rect(region, "screen.region") if region else None,
    )


def _camera(data: Optional[Dict[str, Any]]) -> Optional[CameraSettings]:
    if not data:
        return None
    try:
        shape = CameraShape(data.get("shape", CameraShape.CIRCLE.value))
    except ValueError as e:
        raise ConfigError(f"Invalid camera shape {data.get('shape')!r}") from e

    position = data.get("position") or {}
    return CameraSettings(
        label=data.get("label") or None,
        size=_positive_int(data.get("size", 200), "camera.size"),
        position=Point(int(position.get("x", 0)), int(position.get("y", 0))),
        shape=shape,
        floating=bool(data.get("floating", False)),
    )


def _background(data: Optional[Dict[str, Any]], base_dir: Path) -> Optional[BackgroundLayer]:
    if not data:
        return None
    if "image" not in data or "content_area" not in data:
        raise ConfigError("background needs both 'image' and 'content_area'")

    output_size = data.get("output_size")
    foreground = data.get("foreground")
    return BackgroundLayer(
        image_data=_read_raster(data["image"], base_dir),
        content_area=_rect(data["content_area"], "background.content_area"),
        output_size=_size(output_size, "background.output_size") if output_size else None,
        foreground_data=_read_raster(foreground, base_dir) if foreground else None,
    )


def _read_raster(value: str, base_dir: Path) -> bytes:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    try:
        return path.read_bytes()
    except OSError as e:
        raise ConfigError(f"Cannot read image {path}: {e}") from e


def _rect(data: Dict[str, Any], name: str) -> Rect:
    try:
        return Rect(int(data["x"]), int(data["y"]), int(data["w"]), int(data["h"]))
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"{name} needs integer x, y, w, h") from e


def _size(data: Dict[str, Any], name: str) -> Size:
    try:
        size = Size(int(data["w"]), int(data["h"]))
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"{name} needs integer w, h") from e
    if size.w <= 0 or size.h <= 0:
        raise ConfigError(f"{name} must be positive")
    return size


def _positive_int(value: Any, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be an integer") from e
    if number <= 0:
        raise ConfigError(f"{name} must be positive")
    return number
