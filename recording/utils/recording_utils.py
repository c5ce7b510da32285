"""
Recording Utilities

Shared utility functions for recording operations: binary lookup, file
naming, best-effort cleanup and diagnostic summaries.
"""

import logging
import math
import shutil
import subprocess
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from config.settings import FFMPEG_BINARY, OUTPUT_EXTENSION, PRODUCT_NAME
from recording.constants import ERROR_LINE_PATTERN

logger = logging.getLogger(__name__)


def resolve_ffmpeg_path(configured: str = FFMPEG_BINARY) -> str:
    """
    Find the ffmpeg executable.

    Order: explicit setting, ffmpeg on PATH, binary bundled with imageio-ffmpeg.

    Example:
        ffmpeg = resolve_ffmpeg_path()
    """
    if configured:
        return configured

    on_path = shutil.which("ffmpeg")
    if on_path:
        return on_path

    import imageio_ffmpeg

    return imageio_ffmpeg.get_ffmpeg_exe()


def subprocess_kwargs() -> dict:
    """Extra Popen kwargs to hide the console window on Windows"""
    kw: dict = {}
    if sys.platform == "win32":
        si = subprocess.STARTUPINFO()
        si.dwFlags |= subprocess.STARTF_USESHOWWINDOW
        kw["startupinfo"] = si
        kw["creationflags"] = subprocess.CREATE_NO_WINDOW
    return kw


def generate_output_path(
    folder: Path,
    product: str = PRODUCT_NAME,
    now: Optional[datetime] = None,
    extension: str = OUTPUT_EXTENSION,
) -> Path:
    """
    Generate the final output path for a session.

    The timestamp is ISO-8601 with ':' and '.' replaced so it is a valid
    filename on every platform.

    Example:
        generate_output_path(Path("/videos"))
        # -> /videos/FancyCapture_2025-01-15T14-30-22-123.mp4
    """
    now = now or datetime.now()
    timestamp = now.isoformat(timespec="milliseconds").replace(":", "-").replace(".", "-")
    return Path(folder) / f"{product}_{timestamp}{extension}"


def segment_path(output_path: Path, index: int) -> Path:
    """
    Path of segment N for a session.

    Example:
        segment_path(Path("/v/out.mp4"), 2) -> /v/out_seg2.mp4
    """
    return output_path.with_name(f"{output_path.stem}_seg{index}{output_path.suffix}")


def debug_log_path(media_path: Path) -> Path:
    """Debug log written next to a segment: <stem>_ffmpeg_debug.log"""
    return media_path.with_name(f"{media_path.stem}_ffmpeg_debug.log")


def concat_list_path(output_path: Path) -> Path:
    """Concat list written next to the output: <stem>_segments.txt"""
    return output_path.with_name(f"{output_path.stem}_segments.txt")


def safe_unlink(path: Optional[Path]) -> bool:
    """
    Delete a file, ignoring a missing file and logging other errors.

    Returns:
        True if a file was deleted
    """
    if path is None:
        return False
    try:
        Path(path).unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Could not delete {path}: {e}")
        return False


def summarize_diagnostics(text: str, max_lines: int = 5) -> str:
    """
    Pick the most useful lines of encoder diagnostic output.

    Prefers lines that look like errors; otherwise the last lines.
    ffmpeg rewrites its progress line with carriage returns, so those
    count as line breaks too.
    """
    lines = [line for line in text.replace("\r", "\n").split("\n") if line.strip()]
    error_lines = [line for line in lines if ERROR_LINE_PATTERN.search(line)]
    chosen = error_lines if error_lines else lines
    return "\n".join(chosen[-max_lines:])


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (round() rounds to even)"""
    return int(math.floor(value + 0.5))


def format_file_size(size_bytes: int) -> str:
    """
    Format bytes as a short human string.

    Example:
        format_file_size(1536) -> "1.5 KB"
    """
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"
