"""
Post Processor

Second encoding pass that composites a separately recorded camera clip
onto a finished screen recording.

Used when the live pipeline could not place the camera itself, e.g. a
background layout where the camera sits in the padding area outside the
captured screen. Placement uses the same preview-to-output mapping as the
live overlay, so both paths put the camera in the same spot.
"""

import logging
from pathlib import Path
from typing import Optional

from config.settings import PIXEL_FORMAT, POST_PROCESS_TIMEOUT
from recording.builders import filter_graph as fg
from recording.builders.command_builder import (
    camera_filters,
    compute_overlay_placement,
    encoder_args,
)
from recording.constants import FASTSTART_MOVFLAGS, ErrorCode
from recording.controllers.encoder_probe import EncoderProbe
from recording.interfaces.process_runner_interface import (
    ConfigError,
    PostProcessError,
    ProcessRunnerInterface,
    RecorderError,
    RecorderTimeoutError,
    SpawnError,
)
from recording.models.recording_config import OverlayGeometry
from recording.models.results import RecorderResult
from recording.utils.recording_utils import safe_unlink, summarize_diagnostics


class PostProcessor:
    """
    Camera overlay pass.

    Usage:
        processor = PostProcessor(runner, probe)
        result = processor.overlay(screen_mp4, camera_webm, screen_mp4, geometry)
        if not result:
            print(result.error)  # screen_mp4 is still there
    """

    def __init__(
        self,
        runner: ProcessRunnerInterface,
        probe: Optional[EncoderProbe] = None,
        timeout: float = POST_PROCESS_TIMEOUT,
    ):
        self.logger = logging.getLogger(__name__)
        self.runner = runner
        self.probe = probe or EncoderProbe(runner)
        self.timeout = timeout

    def overlay(
        self,
        screen_path: Path,
        overlay_clip_path: Path,
        output_path: Path,
        geometry: OverlayGeometry,
    ) -> RecorderResult:
        """
        Composite overlay_clip_path onto screen_path, writing output_path.

        output_path may equal screen_path: the screen file is then moved
        to <stem>_screen_temp<ext> first and moved back if the pass fails.

        Returns:
            Success with output_path, or failure whose output_path is the
            untouched screen recording
        """
        screen_path = Path(screen_path)
        overlay_clip_path = Path(overlay_clip_path)
        output_path = Path(output_path)

        try:
            self._validate(geometry)
        except ConfigError as e:
            self.logger.error(str(e))
            e.fallback_path = screen_path
            return RecorderResult.from_error(e)

        source = screen_path
        in_place = screen_path.resolve() == output_path.resolve()
        if in_place:
            source = screen_path.with_name(f"{screen_path.stem}_screen_temp{screen_path.suffix}")
            try:
                screen_path.replace(source)
            except OSError as e:
                return RecorderResult.failure(
                    f"Failed to rename screen file for post-processing: {e}",
                    ErrorCode.POST_PROCESS_FAILED,
                    output_path=screen_path,
                )
            self.logger.debug(f"Renamed screen file for post-processing: {screen_path.name} -> {source.name}")

        try:
            self._encode(source, overlay_clip_path, output_path, geometry)
        except RecorderError as e:
            self.logger.error(str(e))
            safe_unlink(output_path)  # partial output, if any
            e.fallback_path = self._restore(source, screen_path) if in_place else screen_path
            return RecorderResult.from_error(e)
        except Exception as e:
            self.logger.exception("Unexpected error during post-processing")
            safe_unlink(output_path)
            return RecorderResult.failure(
                f"Unexpected error during post-processing: {e}",
                ErrorCode.POST_PROCESS_FAILED,
                output_path=self._restore(source, screen_path) if in_place else screen_path,
            )

        safe_unlink(source)
        safe_unlink(overlay_clip_path)
        self.logger.info(f"Post-processing complete: {output_path}")
        return RecorderResult.ok(output_path)

    def build_args(
        self,
        source: Path,
        overlay_clip_path: Path,
        output_path: Path,
        geometry: OverlayGeometry,
        encoder: str,
    ) -> list:
        placement = compute_overlay_placement(geometry)
        graph = fg.FilterGraph()
        graph.add(
            [fg.video_stream(1)],
            camera_filters(placement, geometry.shape, normalize_pts=False),
            "cam",
        )
        graph.add([fg.video_stream(0), "cam"], [fg.overlay(placement.x, placement.y)], "out")

        return [
            "-y",
            "-i", str(source),
            "-i", str(overlay_clip_path),
            "-filter_complex", graph.render(),
            "-map", "[out]",
            "-map", "0:a?",
            "-c:v", encoder,
            *encoder_args(encoder, offline=True),
            "-pix_fmt", PIXEL_FORMAT,
            "-c:a", "copy",
            "-movflags", FASTSTART_MOVFLAGS,
            str(output_path),
        ]

    def _encode(
        self,
        source: Path,
        overlay_clip_path: Path,
        output_path: Path,
        geometry: OverlayGeometry,
    ) -> None:
        encoder = self.probe.detect()
        args = self.build_args(source, overlay_clip_path, output_path, geometry, encoder.encoder)
        self.logger.info(f"Post-processing camera overlay -> {output_path.name}")
        self.logger.debug(f"Post-process command: {self.runner.format_command(args)}")

        try:
            result = self.runner.run(args, timeout=self.timeout)
        except SpawnError as e:
            raise PostProcessError(f"Failed to spawn FFmpeg for post-processing: {e}") from e

        if result.timed_out:
            raise RecorderTimeoutError(
                f"Post-processing timed out after {self.timeout / 60:g} minutes",
            )

        if not result.succeeded:
            raise PostProcessError(
                f"Post-process failed (code {result.returncode}): "
                f"{summarize_diagnostics(result.stderr)}",
            )

    @staticmethod
    def _validate(geometry: OverlayGeometry) -> None:
        if geometry.size <= 0:
            raise ConfigError(f"Camera size must be positive, got {geometry.size}")
        for name, size in (("output", geometry.output_size), ("preview", geometry.preview_size)):
            if size.w <= 0 or size.h <= 0:
                raise ConfigError(f"Invalid {name} size {size.w}x{size.h}: width and height must be positive")

    def _restore(self, source: Path, screen_path: Path) -> Path:
        """Put the screen recording back; returns where it ended up"""
        try:
            source.replace(screen_path)
        except OSError as e:
            self.logger.error(f"Could not restore {screen_path.name} from {source.name}: {e}")
            return source
        return screen_path
