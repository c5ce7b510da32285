#!/usr/bin/env python3
"""
Recorder CLI

Command-line entry point for the recording session controller.

Usage:
    python recorder_cli.py devices                  # List capture devices
    python recorder_cli.py encoder                  # Show the detected encoder
    python recorder_cli.py record profile.yaml      # Interactive: pause / resume / stop
    python recorder_cli.py record profile.yaml --duration 60
    python recorder_cli.py overlay screen.mp4 camera.webm out.mp4 \\
        --size 200 --x 1040 --y 480 --output-size 1920x1080 --preview-size 1280x720

Add --mock to any command to run against the simulated FFmpeg.
"""

import argparse
import logging
import logging.handlers
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

from config.settings import LOG_DIR, LOG_FILE
from core.event_bus import Event, RecorderEvent
from recording.constants import encoder_display_name
from recording.controllers.device_catalog import DeviceCatalog
from recording.controllers.encoder_probe import EncoderProbe
from recording.controllers.post_processor import PostProcessor
from recording.controllers.session_controller import SessionController
from recording.factory import RecordingFactory
from recording.implementations.mock_runner import MockRunner
from recording.interfaces.process_runner_interface import ConfigError, ProcessRunnerInterface
from recording.models.recording_config import (
    CameraShape,
    OverlayGeometry,
    Point,
    RecordingConfig,
    Size,
)
from recording.utils.config_loader import load_profile

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """
    Setup logging with rotation.

    Logs to both console and file with rotation:
    - Daily rotation
    - Keep 7 days of logs
    """
    level = logging.DEBUG if verbose else logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(message)s | %(name)s"))
    root.addHandler(console_handler)

    file_format = logging.Formatter("%(asctime)s %(levelname)s %(message)s | %(name)s")
    log_file = Path(LOG_DIR) / LOG_FILE
    try:
        file_handler = logging.handlers.TimedRotatingFileHandler(
            str(log_file),
            when="midnight",
            interval=1,
            backupCount=7,
            encoding="utf-8",
        )
    except (PermissionError, FileNotFoundError):
        # Fallback to local logs directory if LOG_DIR is not writable
        logs_dir = Path("logs")
        logs_dir.mkdir(exist_ok=True)
        fallback_log = logs_dir / LOG_FILE
        root.warning(f"Cannot write to {log_file}, using fallback: {fallback_log}")

        file_handler = logging.handlers.TimedRotatingFileHandler(
            str(fallback_log),
            when="midnight",
            interval=1,
            backupCount=7,
            encoding="utf-8",
        )

    file_handler.setLevel(level)
    file_handler.setFormatter(file_format)
    root.addHandler(file_handler)


def parse_size(value: str) -> Size:
    """argparse type for WIDTHxHEIGHT"""
    try:
        width, height = value.lower().split("x")
        size = Size(int(width), int(height))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Expected WIDTHxHEIGHT, got {value!r}") from e
    if size.w <= 0 or size.h <= 0:
        raise argparse.ArgumentTypeError(f"Size must be positive: {value!r}")
    return size


def create_runner(args: argparse.Namespace, config: Optional[RecordingConfig] = None) -> ProcessRunnerInterface:
    if not args.mock:
        return RecordingFactory.create_runner(mode="real")

    runner = MockRunner()
    if config is not None:
        # Simulated devices named after the profile so labels resolve
        lines = ["[dshow @ mock] DirectShow video devices"]
        if config.camera and config.camera.label:
            lines.append(f'[dshow @ mock]  "{config.camera.label}"')
        lines.append("[dshow @ mock] DirectShow audio devices")
        if config.microphone_label:
            lines.append(f'[dshow @ mock]  "{config.microphone_label}"')
        runner.device_listing = "\n".join(lines)
    return runner


# =============================================================================
# COMMANDS
# =============================================================================


def cmd_devices(args: argparse.Namespace) -> int:
    devices = DeviceCatalog(create_runner(args)).list_devices()

    print("Video devices:")
    for name in devices.video or ["(none)"]:
        print(f"  {name}")
    print("Audio devices:")
    for name in devices.audio or ["(none)"]:
        print(f"  {name}")
    return 0


def cmd_encoder(args: argparse.Namespace) -> int:
    encoder = EncoderProbe(create_runner(args)).detect()
    print(f"Encoder: {encoder.encoder} ({encoder_display_name(encoder.encoder)}, {encoder.type.value})")
    return 0


def cmd_record(args: argparse.Namespace) -> int:
    try:
        config = load_profile(args.profile)
    except ConfigError as e:
        print(f"❌ {e}")
        return 1

    controller = SessionController(runner=create_runner(args, config))
    controller.event_bus.subscribe(RecorderEvent.RUNTIME_CRASH, _print_crash)

    result = controller.start(config)
    if not result:
        print(f"❌ Could not start recording:\n{result.error}")
        return 1
    print(f"✅ Recording to {result.output_path}")

    if args.duration:
        _wait_for_duration(args.duration)
    else:
        _interactive_loop(controller)

    result = controller.stop()
    if not result:
        print(f"❌ {result.error}")
        if result.output_path:
            print(f"Usable file: {result.output_path}")
        return 1

    print(f"✅ Saved: {result.output_path}")
    return 0


def cmd_overlay(args: argparse.Namespace) -> int:
    runner = create_runner(args)
    geometry = OverlayGeometry(
        size=args.size,
        position=Point(args.x, args.y),
        shape=CameraShape(args.shape),
        output_size=args.output_size,
        preview_size=args.preview_size,
    )

    result = PostProcessor(runner).overlay(args.screen, args.clip, args.output, geometry)
    if not result:
        print(f"❌ {result.error}")
        return 1

    print(f"✅ Saved: {result.output_path}")
    return 0


def _print_crash(event: Event) -> None:
    print(f"\n❌ {event.data['error']}\n{event.data.get('details', '')}")
    print("Recording paused. Type 'resume' to continue or 'stop' to save.")


def _wait_for_duration(duration: float) -> None:
    """Sleep for duration, returning early on Ctrl+C / SIGTERM"""
    done = threading.Event()

    def _signal_handler(signum, _frame):
        logger.info(f"Received signal {signal.Signals(signum).name}, stopping...")
        done.set()

    previous = {
        signum: signal.signal(signum, _signal_handler)
        for signum in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        done.wait(duration)
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


def _interactive_loop(controller: SessionController) -> None:
    commands = {
        "pause": controller.pause,
        "resume": controller.resume,
    }
    print("Commands: pause, resume, status, stop")

    while True:
        try:
            line = input("> ").strip().lower()
        except (EOFError, KeyboardInterrupt):
            print()
            return

        if line == "stop":
            return
        if line == "status":
            for key, value in controller.get_status().items():
                print(f"  {key}: {value}")
            continue

        action = commands.get(line)
        if action is None:
            print(f"Unknown command: {line!r}")
            continue

        result = action()
        print(f"✅ {controller.state.value}" if result else f"❌ {result.error}")


# =============================================================================
# ENTRY POINT
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Record screen, camera and microphone with FFmpeg",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--mock", action="store_true", help="Use the simulated FFmpeg")

    sub = parser.add_subparsers(dest="command", required=True)

    devices = sub.add_parser("devices", parents=[common], help="List capture devices")
    devices.set_defaults(func=cmd_devices)

    encoder = sub.add_parser("encoder", parents=[common], help="Show the detected encoder")
    encoder.set_defaults(func=cmd_encoder)

    record = sub.add_parser("record", parents=[common], help="Record using a YAML profile")
    record.add_argument("profile", type=Path)
    record.add_argument("--duration", type=float, help="Stop after this many seconds")
    record.set_defaults(func=cmd_record)

    overlay = sub.add_parser("overlay", parents=[common], help="Overlay a camera clip on a recording")
    overlay.add_argument("screen", type=Path)
    overlay.add_argument("clip", type=Path)
    overlay.add_argument("output", type=Path)
    overlay.add_argument("--size", type=int, required=True, help="Camera size in preview pixels")
    overlay.add_argument("--x", type=int, required=True)
    overlay.add_argument("--y", type=int, required=True)
    overlay.add_argument("--shape", choices=[s.value for s in CameraShape], default=CameraShape.CIRCLE.value)
    overlay.add_argument("--output-size", type=parse_size, required=True, help="WIDTHxHEIGHT")
    overlay.add_argument("--preview-size", type=parse_size, required=True, help="WIDTHxHEIGHT")
    overlay.set_defaults(func=cmd_overlay)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        return args.func(args)
    except RuntimeError as e:
        # Factory: real FFmpeg requested but missing
        print(f"❌ {e}")
        return 1
    except Exception as e:
        logger.critical(f"Fatal error in main: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
