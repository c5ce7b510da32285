"""
Recording Utilities Package

Exposes shared utility functions for recording operations.
"""

from recording.utils.cache import CachedValue
from recording.utils.recording_utils import (
    concat_list_path,
    debug_log_path,
    format_file_size,
    generate_output_path,
    resolve_ffmpeg_path,
    round_half_up,
    safe_unlink,
    segment_path,
    subprocess_kwargs,
    summarize_diagnostics,
)

# Public API
__all__ = [
    "CachedValue",
    "concat_list_path",
    "debug_log_path",
    "format_file_size",
    "generate_output_path",
    "resolve_ffmpeg_path",
    "round_half_up",
    "safe_unlink",
    "segment_path",
    "subprocess_kwargs",
    "summarize_diagnostics",
]
