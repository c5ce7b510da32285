"""
Segment Store

Turns the segment files of one session into the final output file.

Single responsibility: file operations on finished segments. It never
touches a live encoder process.

- One segment: renamed to the output path
- Several segments: joined with FFmpeg's concat demuxer (stream copy, no
  re-encode) and then deleted
"""

import logging
from pathlib import Path
from typing import List, Sequence

from config.settings import CONCAT_TIMEOUT
from recording.constants import FASTSTART_MOVFLAGS
from recording.interfaces.process_runner_interface import (
    ConcatenationError,
    ConfigError,
    ProcessRunnerInterface,
    SpawnError,
)
from recording.utils.recording_utils import (
    concat_list_path,
    format_file_size,
    safe_unlink,
    summarize_diagnostics,
)


def concat_list_entry(path: Path) -> str:
    """
    One line of a concat demuxer list.

    Forward slashes work on every platform; a single quote inside the
    quoted path is written as '\\''.
    """
    posix = Path(path).as_posix().replace("'", "'\\''")
    return f"file '{posix}'"


class SegmentStore:
    """
    Finalizes segment files.

    Usage:
        store = SegmentStore(runner)
        final_path = store.finalize([seg0, seg1], output_path)
    """

    def __init__(self, runner: ProcessRunnerInterface, timeout: float = CONCAT_TIMEOUT):
        self.logger = logging.getLogger(__name__)
        self.runner = runner
        self.timeout = timeout

    def finalize(self, segments: Sequence[Path], output_path: Path) -> Path:
        """
        Produce the final file.

        Returns:
            Path of the final file. Normally output_path; the segment's own
            path if a single segment could not be renamed.

        Raises:
            ConcatenationError: Joining failed. No segment is deleted and
                                fallback_path points at the first one.
        """
        segments = [Path(s) for s in segments]
        output_path = Path(output_path)

        if not segments:
            raise ConfigError("No segments to finalize")

        if len(segments) == 1:
            return self._rename_single(segments[0], output_path)

        self._concatenate(segments, output_path)
        return output_path

    def _rename_single(self, segment: Path, output_path: Path) -> Path:
        if segment == output_path:
            return output_path
        try:
            segment.replace(output_path)
        except OSError as e:
            # e.g. cross-device move: the segment itself is the result
            self.logger.warning(f"Could not rename {segment.name} to {output_path.name}: {e}")
            return segment

        self.logger.info(f"Recording saved: {output_path} ({self._size_text(output_path)})")
        return output_path

    def _concatenate(self, segments: List[Path], output_path: Path) -> None:
        list_path = concat_list_path(output_path)
        try:
            list_path.write_text(
                "\n".join(concat_list_entry(s) for s in segments),
                encoding="utf-8",
            )
        except OSError as e:
            raise ConcatenationError(
                f"Concatenation failed: could not write {list_path.name}: {e}. "
                f"Segments kept, first segment: {segments[0]}",
                fallback_path=segments[0],
            ) from e

        args = [
            "-y",
            "-f", "concat",
            "-safe", "0",
            "-i", str(list_path),
            "-c", "copy",
            "-movflags", FASTSTART_MOVFLAGS,
            str(output_path),
        ]
        self.logger.info(f"Concatenating {len(segments)} segments -> {output_path.name}")
        self.logger.debug(f"Concat command: {self.runner.format_command(args)}")

        try:
            result = self.runner.run(args, timeout=self.timeout)
        except SpawnError as e:
            raise ConcatenationError(f"Concatenation failed: {e}", fallback_path=segments[0]) from e

        if result.timed_out:
            raise ConcatenationError(
                f"Concatenation failed: timed out after {self.timeout:.0f}s. "
                f"Segments kept, first segment: {segments[0]}",
                fallback_path=segments[0],
            )

        if not result.succeeded:
            details = summarize_diagnostics(result.stderr)
            raise ConcatenationError(
                f"Concatenation failed: concat exited with code {result.returncode}. "
                f"Segments kept, first segment: {segments[0]}"
                + (f"\n\nDetails: {details}" if details else ""),
                fallback_path=segments[0],
            )

        for segment in segments:
            safe_unlink(segment)
        safe_unlink(list_path)

        self.logger.info(f"Recording saved: {output_path} ({self._size_text(output_path)})")

    @staticmethod
    def _size_text(path: Path) -> str:
        try:
            return format_file_size(path.stat().st_size)
        except OSError:
            return "size unknown"
