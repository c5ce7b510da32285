"""
Central Configuration File

ALL configuration values live here. This is the single source of truth.

Guidelines:
- Machine-specific overrides (binary path, log directory) go in .env
- Import these settings in modules: from config.settings import PRODUCT_NAME
- Timeouts are in seconds
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# =============================================================================
# ENCODER BINARY
# =============================================================================

# Explicit path to the ffmpeg executable. Empty = look on PATH, then fall back
# to the binary bundled with imageio-ffmpeg.
FFMPEG_BINARY = os.getenv("FFMPEG_BINARY", "")

# =============================================================================
# OUTPUT CONFIGURATION
# =============================================================================

# Final file: <folder>/<PRODUCT_NAME>_<timestamp>.mp4
PRODUCT_NAME = os.getenv("PRODUCT_NAME", "FancyCapture")
OUTPUT_EXTENSION = ".mp4"

# Default output folder used by the CLI when a profile does not set one
DEFAULT_OUTPUT_FOLDER = Path(
    os.getenv("DEFAULT_OUTPUT_FOLDER", str(Path.home() / "Videos" / PRODUCT_NAME)),
)

# Write <segment>_ffmpeg_debug.log next to every segment
WRITE_DEBUG_LOGS = os.getenv("WRITE_DEBUG_LOGS", "1") not in ("0", "false", "False")

# =============================================================================
# CAPTURE INPUTS
# =============================================================================

SCREEN_INPUT_FORMAT = "gdigrab"  # Desktop / window grabber
DEVICE_INPUT_FORMAT = "dshow"  # Camera + microphone capture subsystem
INPUT_THREAD_QUEUE_SIZE = 512
CAMERA_RTBUF_SIZE = "100M"
DEFAULT_FPS = 30

# Output size used to place the camera overlay when recording at source size
DEFAULT_TARGET_WIDTH = 1920
DEFAULT_TARGET_HEIGHT = 1080

# =============================================================================
# AUDIO
# =============================================================================

# Microphone timestamps are pushed forward by this many seconds to cover the
# measured startup gap between the screen grabber and the audio device.
AUDIO_SYNC_OFFSET_SECONDS = float(os.getenv("AUDIO_SYNC_OFFSET_SECONDS", "1.0"))
AUDIO_RESAMPLE_ASYNC = 1000  # max samples per second aresample may stretch
AUDIO_CODEC = "aac"
AUDIO_BITRATE = "192k"

# =============================================================================
# VIDEO ENCODING
# =============================================================================

VIDEO_QUALITY = 18  # CRF / CQ / QP target shared by every backend
PIXEL_FORMAT = "yuv420p"
SCALER_FLAGS = "fast_bilinear"

# =============================================================================
# TIMEOUTS (seconds)
# =============================================================================

ENCODER_TRIAL_TIMEOUT = float(os.getenv("ENCODER_TRIAL_TIMEOUT", "5"))
DEVICE_LIST_TIMEOUT = float(os.getenv("DEVICE_LIST_TIMEOUT", "5"))
START_CONFIRM_TIMEOUT = float(os.getenv("START_CONFIRM_TIMEOUT", "5"))
GRACEFUL_STOP_TIMEOUT = float(os.getenv("GRACEFUL_STOP_TIMEOUT", "5"))
CONCAT_TIMEOUT = float(os.getenv("CONCAT_TIMEOUT", "300"))
POST_PROCESS_TIMEOUT = float(os.getenv("POST_PROCESS_TIMEOUT", "300"))

# =============================================================================
# EVENTS
# =============================================================================

EVENT_QUEUE_SIZE = 100  # Oldest events are dropped beyond this

# =============================================================================
# LOGGING
# =============================================================================

LOG_DIR = os.getenv("LOG_DIR", "/var/log/recorder")
LOG_FILE = "recorder.log"
