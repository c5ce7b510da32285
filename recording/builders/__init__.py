"""
Recording Builders Package

Pure functions and classes that turn a recording configuration into
FFmpeg arguments and filter graphs.
"""

from recording.builders.command_builder import (
    CommandBuilder,
    camera_filters,
    compute_overlay_placement,
    encoder_args,
)
from recording.builders.filter_graph import Filter, FilterChain, FilterGraph

# Public API
__all__ = [
    "CommandBuilder",
    "Filter",
    "FilterChain",
    "FilterGraph",
    "camera_filters",
    "compute_overlay_placement",
    "encoder_args",
]
