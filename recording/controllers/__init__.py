"""
Recording Controllers Package

High-level recording controllers that orchestrate FFmpeg.
"""

from recording.controllers.device_catalog import (
    DeviceCatalog,
    match_device,
    normalize_device_name,
    parse_device_listing,
)
from recording.controllers.encoder_probe import EncoderProbe
from recording.controllers.post_processor import PostProcessor
from recording.controllers.session_controller import SessionController

# Public API
__all__ = [
    "DeviceCatalog",
    "EncoderProbe",
    "PostProcessor",
    "SessionController",
    "match_device",
    "normalize_device_name",
    "parse_device_listing",
]
