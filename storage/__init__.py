"""
Storage Module

File handling for finished recordings: turning per-segment files into
the final output file and cleaning up after them.
"""

from storage.segment_store import SegmentStore, concat_list_entry

# Public API
__all__ = [
    "SegmentStore",
    "concat_list_entry",
]
