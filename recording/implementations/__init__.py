"""
Recording Implementations Package

Exposes concrete implementations of recording interfaces.
"""

from recording.implementations.ffmpeg_runner import FFmpegProcess, FFmpegRunner
from recording.implementations.mock_runner import MockProcess, MockRunner

# Public API
__all__ = [
    "FFmpegProcess",
    "FFmpegRunner",
    "MockProcess",
    "MockRunner",
]
