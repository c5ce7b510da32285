"""
Command Builder

Translates a RecordingConfig plus the probed encoder into the FFmpeg
argument list for one capture segment.

Pure: no process is started and no file is touched, so every branch can be
tested by comparing argument lists.

Input order is fixed (background, screen, camera, microphone). Filter
graph references are by input index, so they must follow the order in
which inputs are added to the command line.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from config.settings import (
    AUDIO_BITRATE,
    AUDIO_CODEC,
    AUDIO_SYNC_OFFSET_SECONDS,
    CAMERA_RTBUF_SIZE,
    DEFAULT_TARGET_HEIGHT,
    DEFAULT_TARGET_WIDTH,
    DEVICE_INPUT_FORMAT,
    INPUT_THREAD_QUEUE_SIZE,
    PIXEL_FORMAT,
    SCALER_FLAGS,
    SCREEN_INPUT_FORMAT,
)
from recording.builders import filter_graph as fg
from recording.constants import (
    ENCODER_PROFILES,
    FRAGMENTED_MOVFLAGS,
    OFFLINE_X264_PRESET,
    SOFTWARE_ENCODER,
    get_resolution,
)
from recording.models.recording_config import (
    CameraShape,
    CaptureMode,
    EncoderInfo,
    OverlayGeometry,
    OverlayPlacement,
    RecordingConfig,
    Size,
)
from recording.utils.recording_utils import round_half_up


# =============================================================================
# SHARED HELPERS (also used by the post processor)
# =============================================================================


def compute_overlay_placement(geometry: OverlayGeometry) -> OverlayPlacement:
    """
    Map the camera overlay from preview space to output pixels.

    Size scales with the smaller of the two axis ratios so the overlay
    stays square; the position scales per axis.

    Example:
        geometry = OverlayGeometry(
            size=200, position=Point(100, 50), shape=CameraShape.CIRCLE,
            output_size=Size(1920, 1080), preview_size=Size(960, 540),
        )
        compute_overlay_placement(geometry)
        # -> OverlayPlacement(size=400, x=200, y=100)
    """
    out, preview = geometry.output_size, geometry.preview_size
    scale_x = out.w / preview.w
    scale_y = out.h / preview.h
    scale_factor = min(scale_x, scale_y)

    return OverlayPlacement(
        size=round_half_up(geometry.size * scale_factor),
        x=round_half_up(geometry.position.x * scale_x),
        y=round_half_up(geometry.position.y * scale_y),
    )


def camera_filters(
    placement: OverlayPlacement,
    shape: CameraShape,
    normalize_pts: bool = True,
) -> List[fg.Filter]:
    """Mirror, center-crop to a square, scale, and mask to a circle if asked"""
    filters: List[fg.Filter] = []
    if normalize_pts:
        filters.append(fg.reset_pts())
    filters += [
        fg.hflip(),
        fg.crop_square(),
        fg.scale(placement.size, placement.size),
    ]
    if shape == CameraShape.CIRCLE:
        filters += fg.circle_mask(placement.radius)
    return filters


def encoder_args(encoder: str, offline: bool = False) -> List[str]:
    """
    Quality flags for an encoder backend.

    offline=True is for passes that do not race a live source: x264 can
    afford a slower preset there.
    """
    profile = ENCODER_PROFILES.get(encoder)
    if profile is None:
        return []
    args = list(profile[1])
    if offline and encoder == SOFTWARE_ENCODER:
        args[args.index("-preset") + 1] = OFFLINE_X264_PRESET
    return args


@dataclass
class _Inputs:
    """Input indices in spawn order (None = input not used)"""

    background: Optional[int] = None
    screen: Optional[int] = None
    camera: Optional[int] = None
    microphone: Optional[int] = None


class CommandBuilder:
    """
    Builds FFmpeg capture arguments.

    Usage:
        builder = CommandBuilder()
        args = builder.build(config, encoder, Path("out_seg0.mp4"))
        runner.spawn(args, on_output, on_exit)
    """

    def __init__(
        self,
        audio_offset: float = AUDIO_SYNC_OFFSET_SECONDS,
        thread_queue_size: int = INPUT_THREAD_QUEUE_SIZE,
        camera_rtbuf_size: str = CAMERA_RTBUF_SIZE,
        default_target: Tuple[int, int] = (DEFAULT_TARGET_WIDTH, DEFAULT_TARGET_HEIGHT),
    ):
        self.logger = logging.getLogger(__name__)
        self.audio_offset = audio_offset
        self.thread_queue_size = thread_queue_size
        self.camera_rtbuf_size = camera_rtbuf_size
        self.default_target = Size(*default_target)

    def build(
        self,
        config: RecordingConfig,
        encoder: EncoderInfo,
        output_path: Path,
        background_path: Optional[Path] = None,
    ) -> List[str]:
        """
        Build the argument list (without the ffmpeg executable).

        Args:
            config: Session configuration (device labels already resolved)
            encoder: Probed encoder
            output_path: Segment file to write
            background_path: Background raster persisted by the session,
                             None when no background is active
        """
        args: List[str] = ["-y", "-sws_flags", SCALER_FLAGS]
        has_background = background_path is not None and config.background is not None

        inputs = self._add_inputs(args, config, background_path if has_background else None)

        if has_background and inputs.screen is not None:
            self._add_background_composition(args, config, inputs)
        elif (
            config.mode == CaptureMode.SCREEN_CAMERA
            and inputs.screen is not None
            and inputs.camera is not None
        ):
            self._add_screen_camera_composition(args, config, inputs)
        elif config.mode == CaptureMode.CAMERA and inputs.camera is not None:
            self._add_camera_only(args, inputs)
        else:
            self._add_screen_only(args, inputs)

        if not has_background:
            self._apply_output_resolution(args, config)

        self._add_encoding(args, encoder, has_microphone=inputs.microphone is not None)
        args.append(str(output_path))
        return args

    # =========================================================================
    # INPUTS
    # =========================================================================

    def _add_inputs(
        self,
        args: List[str],
        config: RecordingConfig,
        background_path: Optional[Path],
    ) -> _Inputs:
        inputs = _Inputs()
        index = 0

        if background_path is not None:
            # Static image looped as the base layer
            args += ["-loop", "1", "-framerate", str(config.fps), "-i", str(background_path)]
            inputs.background = index
            index += 1

        if config.has_screen:
            self._add_screen_input(args, config)
            inputs.screen = index
            index += 1

        if config.has_camera:
            # No -video_size / -framerate: some cameras reject explicit
            # settings with I/O errors. The filter graph handles sizing.
            args += [
                "-thread_queue_size", str(self.thread_queue_size),
                "-f", DEVICE_INPUT_FORMAT,
                "-rtbufsize", self.camera_rtbuf_size,
                "-i", f"video={config.camera.label}",
            ]
            inputs.camera = index
            index += 1

        if config.has_microphone:
            args += [
                "-thread_queue_size", str(self.thread_queue_size),
                "-f", DEVICE_INPUT_FORMAT,
                "-i", f"audio={config.microphone_label}",
            ]
            inputs.microphone = index
            index += 1

        return inputs

    def _add_screen_input(self, args: List[str], config: RecordingConfig) -> None:
        args += [
            "-thread_queue_size", str(self.thread_queue_size),
            "-f", SCREEN_INPUT_FORMAT,
            "-framerate", str(config.fps),
            "-draw_mouse", "1",
        ]

        screen = config.screen
        if screen is not None and not screen.is_screen:
            args += ["-i", f"title={screen.name}"]
            return

        # Constrain to one monitor on multi-monitor desktops
        if screen is not None and screen.region is not None:
            region = screen.region
            args += [
                "-offset_x", str(region.x),
                "-offset_y", str(region.y),
                "-video_size", f"{region.w}x{region.h}",
            ]
        args += ["-i", "desktop"]

    # =========================================================================
    # COMPOSITION
    # =========================================================================

    def _add_background_composition(
        self,
        args: List[str],
        config: RecordingConfig,
        inputs: _Inputs,
    ) -> None:
        area = config.background.content_area
        graph = fg.FilterGraph()
        graph.add(
            [fg.video_stream(inputs.screen)],
            [fg.reset_pts(), fg.scale(area.w, area.h)],
            "screen",
        )
        graph.add(
            [fg.video_stream(inputs.background), "screen"],
            [fg.overlay(area.x, area.y, shortest=True)],
            "bg_out",
        )
        last_label = "bg_out"

        if inputs.camera is not None:
            target = config.background.output_size or self._resolution_target(config)
            self._add_camera_overlay(graph, config, inputs.camera, last_label, target)
            last_label = "out"

        self._finish_complex(args, graph, last_label, inputs)

    def _add_screen_camera_composition(
        self,
        args: List[str],
        config: RecordingConfig,
        inputs: _Inputs,
    ) -> None:
        resolution = get_resolution(config.output_resolution)
        graph = fg.FilterGraph()

        screen_filters = [fg.reset_pts()]
        if resolution:
            screen_filters += fg.letterbox(*resolution)
        graph.add([fg.video_stream(inputs.screen)], screen_filters, "screen")

        self._add_camera_overlay(
            graph, config, inputs.camera, "screen", self._resolution_target(config),
        )
        self._finish_complex(args, graph, "out", inputs)

    def _add_camera_overlay(
        self,
        graph: fg.FilterGraph,
        config: RecordingConfig,
        camera_index: int,
        base_label: str,
        target: Size,
    ) -> None:
        camera = config.camera
        placement = compute_overlay_placement(
            OverlayGeometry(
                size=camera.size,
                position=camera.position,
                shape=camera.shape,
                output_size=target,
                preview_size=config.preview_size,
            ),
        )
        graph.add(
            [fg.video_stream(camera_index)],
            camera_filters(placement, camera.shape),
            "cam",
        )
        graph.add([base_label, "cam"], [fg.overlay(placement.x, placement.y)], "out")

    def _finish_complex(
        self,
        args: List[str],
        graph: fg.FilterGraph,
        video_label: str,
        inputs: _Inputs,
    ) -> None:
        if inputs.microphone is not None:
            graph.add(
                [fg.audio_stream(inputs.microphone)],
                fg.audio_sync(self.audio_offset),
                "aout",
            )

        args += ["-filter_complex", graph.render(), "-map", f"[{video_label}]"]
        if inputs.microphone is not None:
            args += ["-map", "[aout]", "-shortest"]

    def _add_camera_only(self, args: List[str], inputs: _Inputs) -> None:
        args += [
            "-vf", fg.render_chain([fg.reset_pts(), fg.hflip()]),
            "-map", fg.video_stream(inputs.camera),
        ]
        if inputs.microphone is not None:
            # Camera and microphone share one capture subsystem: no offset
            args += [
                "-map", fg.audio_stream(inputs.microphone),
                "-af", fg.render_chain(fg.audio_sync(0.0)),
                "-shortest",
            ]

    def _add_screen_only(self, args: List[str], inputs: _Inputs) -> None:
        if inputs.screen is not None:
            args += [
                "-map", fg.video_stream(inputs.screen),
                "-vf", fg.render_chain([fg.reset_pts()]),
            ]
        if inputs.microphone is not None:
            args += [
                "-map", fg.audio_stream(inputs.microphone),
                "-af", fg.render_chain(fg.audio_sync(self.audio_offset)),
                "-shortest",
            ]

    def _apply_output_resolution(self, args: List[str], config: RecordingConfig) -> None:
        """Append letterbox scaling to the simple video filter, once"""
        resolution = get_resolution(config.output_resolution)
        if not resolution or "-vf" not in args:
            return
        vf_index = args.index("-vf") + 1
        args[vf_index] = ",".join([args[vf_index], fg.render_chain(fg.letterbox(*resolution))])

    def _resolution_target(self, config: RecordingConfig) -> Size:
        resolution = get_resolution(config.output_resolution)
        if resolution:
            return Size(*resolution)
        return self.default_target

    # =========================================================================
    # ENCODING
    # =========================================================================

    def _add_encoding(self, args: List[str], encoder: EncoderInfo, has_microphone: bool) -> None:
        args += ["-threads", "0", "-c:v", encoder.encoder]
        args += encoder_args(encoder.encoder)
        args += ["-pix_fmt", PIXEL_FORMAT]

        # Fragmented MP4 keeps the segment playable if the encoder is killed
        args += ["-movflags", FRAGMENTED_MOVFLAGS]

        if has_microphone:
            args += ["-c:a", AUDIO_CODEC, "-b:a", AUDIO_BITRATE]
