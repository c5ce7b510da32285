"""
Recording Constants

Enums, FFmpeg-specific constants and small lookup tables for the recorder.

Note: Tunable values (timeouts, audio offset, bitrates, paths) live in
config/settings.py. This file holds fixed protocol knowledge: encoder
names and their flag sets, output-stream markers, resolution presets.
"""

import re
from enum import Enum
from typing import Dict, List, Optional, Tuple

from config.settings import VIDEO_QUALITY
from core.state_machine import RecorderState  # noqa: F401 - re-exported


# =============================================================================
# ERROR CODES
# =============================================================================


class ErrorCode(Enum):
    """
    Error conditions a public recorder operation can report.

    Carried by RecorderResult so callers can branch without parsing text.
    """

    CONFIG_ERROR = "config_error"
    DEVICE_NOT_FOUND = "device_not_found"
    SPAWN_FAILED = "spawn_failed"
    RUNTIME_CRASH = "runtime_crash"
    CONCAT_FAILED = "concat_failed"
    POST_PROCESS_FAILED = "post_process_failed"
    TIMEOUT = "timeout"
    UNKNOWN_ERROR = "unknown_error"


# =============================================================================
# ENCODERS
# =============================================================================

SOFTWARE_ENCODER = "libx264"

# Probe order: NVIDIA -> AMD -> Intel. First one that encodes a test frame wins.
HARDWARE_ENCODER_CANDIDATES: Tuple[str, ...] = ("h264_nvenc", "h264_amf", "h264_qsv")

# Encoder ID -> (display name, quality args)
# Quality args target the same visual quality (CRF 18 equivalent) on every backend.
ENCODER_PROFILES: Dict[str, Tuple[str, List[str]]] = {
    "libx264": (
        "Software (x264)",
        ["-preset", "ultrafast", "-crf", str(VIDEO_QUALITY)],
    ),
    "h264_nvenc": (
        "NVIDIA NVENC",
        ["-preset", "p4", "-cq", str(VIDEO_QUALITY), "-rc", "vbr"],
    ),
    "h264_amf": (
        "AMD AMF",
        [
            "-quality", "speed", "-rc", "cqp",
            "-qp_i", str(VIDEO_QUALITY), "-qp_p", str(VIDEO_QUALITY),
        ],
    ),
    "h264_qsv": (
        "Intel QuickSync",
        ["-preset", "fast", "-global_quality", str(VIDEO_QUALITY)],
    ),
}

# x264 preset for offline passes (post-processing is not real-time bound)
OFFLINE_X264_PRESET = "fast"

# Synthetic source used by encoder trials
ENCODER_TRIAL_SOURCE = "nullsrc=s=256x256:d=0.1"


# =============================================================================
# CONTAINER FLAGS
# =============================================================================

# Fragmented MP4: every fragment is self-contained, so a segment stays
# playable even if the encoder is killed mid-write.
FRAGMENTED_MOVFLAGS = "+frag_keyframe+empty_moov+default_base_moof"

# Final files (concatenated or post-processed) get the index up front
FASTSTART_MOVFLAGS = "+faststart"


# =============================================================================
# OUTPUT STREAM MARKERS
# =============================================================================

# Progress line emitted once frames are being encoded: "frame=   12 fps=..."
PROGRESS_PATTERN = re.compile(r"frame=\s*\d+")

# Device / window lookup failures from the capture inputs
NOT_FOUND_MARKER = "Could not find"

# gdigrab warning: grabbing works but encoding has not caught up yet
REALTIME_BUFFER_MARKER = "real-time buffer"

# Stderr lines kept per segment once recording is under way
DIAGNOSTIC_TAIL_LINES = 200
DIAGNOSTIC_PARTIAL_LINE_LIMIT = 4096

# Lines worth showing the user when something goes wrong
ERROR_LINE_PATTERN = re.compile(
    r"error|could not|cannot|failed|invalid|not found|denied",
    re.IGNORECASE,
)

# Device listing
VIDEO_SECTION_MARKER = "DirectShow video devices"
AUDIO_SECTION_MARKER = "DirectShow audio devices"
ALTERNATIVE_NAME_MARKER = "Alternative name"
QUOTED_NAME_PATTERN = re.compile(r'"\s*(.+?)\s*"')
# Newer builds drop the section headers and tag each line instead
VIDEO_LINE_SUFFIX = "(video)"
AUDIO_LINE_SUFFIX = "(audio)"


# =============================================================================
# RESOLUTIONS
# =============================================================================

SOURCE_RESOLUTION = "source"

RESOLUTION_PRESETS: Dict[str, Tuple[int, int]] = {
    "720p": (1280, 720),
    "1080p": (1920, 1080),
    "1440p": (2560, 1440),
    "4k": (3840, 2160),
}


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def get_resolution(preset: str) -> Optional[Tuple[int, int]]:
    """
    Look up a resolution preset.

    Example:
        get_resolution("720p") -> (1280, 720)
        get_resolution("source") -> None
    """
    return RESOLUTION_PRESETS.get(preset)


def encoder_display_name(encoder: str) -> str:
    """Human-readable name for an encoder ID"""
    profile = ENCODER_PROFILES.get(encoder)
    return profile[0] if profile else encoder
