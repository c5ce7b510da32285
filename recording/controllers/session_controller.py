"""
Session Controller

Drives one recording session through start / pause / resume / stop.

Each span between a start (or resume) and the next pause (or stop) is
its own FFmpeg process writing its own segment file. Stopping joins the
segments into the final output file.

    idle -> recording -> paused -> recording (new segment) -> ... -> stopping -> idle

Public operations never raise: they return a RecorderResult. A crash
while recording has no caller waiting on it, so it is published on the
event bus instead (RecorderEvent.RUNTIME_CRASH).

Threading:
- Public operations run on the caller's thread and are serialized by a
  non-blocking lock: a concurrent call is rejected, not queued.
- Encoder output and exit codes arrive on the runner's reader thread.
- Shared state is only touched under _state_lock.
"""

import logging
import threading
import time
from collections import deque
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Optional

from config.settings import (
    GRACEFUL_STOP_TIMEOUT,
    PRODUCT_NAME,
    START_CONFIRM_TIMEOUT,
    WRITE_DEBUG_LOGS,
)
from core.event_bus import EventBus, RecorderEvent
from core.state_machine import RecorderOperation, RecorderState, RecorderStateMachine
from recording.builders.command_builder import CommandBuilder
from recording.constants import (
    DIAGNOSTIC_PARTIAL_LINE_LIMIT,
    DIAGNOSTIC_TAIL_LINES,
    NOT_FOUND_MARKER,
    PROGRESS_PATTERN,
    REALTIME_BUFFER_MARKER,
    ErrorCode,
)
from recording.controllers.device_catalog import DeviceCatalog
from recording.controllers.encoder_probe import EncoderProbe
from recording.factory import create_runner
from recording.interfaces.process_runner_interface import (
    ConcatenationError,
    ConfigError,
    DeviceResolutionError,
    EncoderProcessInterface,
    ProcessRunnerInterface,
    RecorderError,
    RuntimeCrash,
    SpawnError,
)
from recording.models.recording_config import RecordingConfig
from recording.models.results import RecorderResult
from recording.utils.recording_utils import (
    debug_log_path,
    generate_output_path,
    safe_unlink,
    segment_path,
    summarize_diagnostics,
)
from storage.segment_store import SegmentStore


class _SegmentMonitor:
    """
    Output of one segment's encoder process.

    Collects diagnostic text, spots the first progress line and records
    the exit code. `wake` is set on either, so start confirmation can wait
    on a single event.

    Startup output is kept whole. Once the start is confirmed only the last
    DIAGNOSTIC_TAIL_LINES lines are kept, so a long recording does not pile
    up progress lines in memory.
    """

    def __init__(self, index: int, path: Path, log_path: Optional[Path]):
        self.logger = logging.getLogger(__name__)
        self.index = index
        self.path = path
        self.log_path = log_path

        self.lock = threading.RLock()
        self.wake = threading.Event()
        self._chunks: List[str] = []
        self._tail: Deque[str] = deque(maxlen=DIAGNOSTIC_TAIL_LINES)
        self._partial = ""
        self.dropped_lines = 0

        self.progress_seen = False
        self.exit_code: Optional[int] = None
        self.confirmed = False  # Start was reported to the caller as successful
        self.stopping = False  # We asked the process to exit

    @property
    def text(self) -> str:
        with self.lock:
            if not self.confirmed:
                return "".join(self._chunks)
            header = f"[{self.dropped_lines} earlier lines dropped]\n" if self.dropped_lines else ""
            return header + "".join(self._tail) + self._partial

    def feed(self, chunk: str) -> None:
        with self.lock:
            if self.confirmed:
                self._keep_tail(chunk)
                return
            self._chunks.append(chunk)
            if not self.progress_seen and PROGRESS_PATTERN.search(self.text):
                self.progress_seen = True
                self.wake.set()

    def confirm(self) -> None:
        """Start reported as successful: switch to tail-only buffering"""
        with self.lock:
            startup = "".join(self._chunks)
            self._chunks = []
            self.confirmed = True
            self._keep_tail(startup)

    def _keep_tail(self, text: str) -> None:
        lines = (self._partial + text).splitlines(keepends=True)
        if lines and not lines[-1].endswith(("\n", "\r")):
            self._partial = lines.pop()[-DIAGNOSTIC_PARTIAL_LINE_LIMIT:]
        else:
            self._partial = ""
        self.dropped_lines += max(0, len(self._tail) + len(lines) - DIAGNOSTIC_TAIL_LINES)
        self._tail.extend(lines)

    def write_log(self, text: str, append: bool = True) -> None:
        """Best-effort debug log next to the segment"""
        if self.log_path is None:
            return
        try:
            with open(self.log_path, "a" if append else "w", encoding="utf-8") as f:
                f.write(text)
        except OSError as e:
            self.logger.debug(f"Could not write debug log {self.log_path}: {e}")


class SessionController:
    """
    Recording session state machine.

    Usage:
        controller = SessionController(runner)
        controller.event_bus.subscribe(RecorderEvent.RUNTIME_CRASH, on_crash)

        result = controller.start(config)
        if not result:
            print(result.error)

        controller.pause()
        controller.resume()
        result = controller.stop()
        print(result.output_path)
    """

    def __init__(
        self,
        runner: Optional[ProcessRunnerInterface] = None,
        probe: Optional[EncoderProbe] = None,
        catalog: Optional[DeviceCatalog] = None,
        builder: Optional[CommandBuilder] = None,
        segment_store: Optional[SegmentStore] = None,
        event_bus: Optional[EventBus] = None,
        start_timeout: float = START_CONFIRM_TIMEOUT,
        stop_timeout: float = GRACEFUL_STOP_TIMEOUT,
        product_name: str = PRODUCT_NAME,
        write_debug_logs: bool = WRITE_DEBUG_LOGS,
    ):
        """
        Initialize the controller.

        Every collaborator can be injected; missing ones are built around
        the runner (which defaults to the factory's auto-detected one).

        Example:
            # Normal usage
            controller = SessionController()

            # Testing with fakes
            controller = SessionController(runner=MockRunner(), start_timeout=0.1)
        """
        self.logger = logging.getLogger(__name__)

        self.runner = runner or create_runner()
        self.probe = probe or EncoderProbe(self.runner)
        self.catalog = catalog or DeviceCatalog(self.runner)
        self.builder = builder or CommandBuilder()
        self.segment_store = segment_store or SegmentStore(self.runner)
        self.event_bus = event_bus or EventBus()

        self.start_timeout = start_timeout
        self.stop_timeout = stop_timeout
        self.product_name = product_name
        self.write_debug_logs = write_debug_logs

        self.state_machine = RecorderStateMachine()
        self.state_machine.register_callback("on_state_change", self._on_state_change)

        self._operation_lock = threading.Lock()
        self._state_lock = threading.RLock()

        # Session state
        self._config: Optional[RecordingConfig] = None
        self._output_path: Optional[Path] = None
        self._segments: List[Path] = []
        self._segment_index = 0
        self._process: Optional[EncoderProcessInterface] = None
        self._monitor: Optional[_SegmentMonitor] = None
        self._background_path: Optional[Path] = None
        self._foreground_path: Optional[Path] = None

        self.logger.info("Session Controller initialized")

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def state(self) -> RecorderState:
        return self.state_machine.get_current_state()

    @property
    def segments(self) -> List[Path]:
        """Copy of the current segment list"""
        with self._state_lock:
            return list(self._segments)

    @property
    def output_path(self) -> Optional[Path]:
        return self._output_path

    @property
    def segment_index(self) -> int:
        return self._segment_index

    # =========================================================================
    # PUBLIC OPERATIONS
    # =========================================================================

    def start(self, config: RecordingConfig) -> RecorderResult:
        """
        Start a new session (only from idle).

        Validates the output folder and resolves device labels before
        anything is written to disk, then starts the first segment.
        """
        return self._run_exclusive(RecorderOperation.START, lambda: self._start(config))

    def pause(self) -> RecorderResult:
        """Close the current segment (only from recording)"""
        return self._run_exclusive(RecorderOperation.PAUSE, self._pause)

    def resume(self) -> RecorderResult:
        """Start a new segment (only from paused)"""
        return self._run_exclusive(RecorderOperation.RESUME, self._resume)

    def stop(self) -> RecorderResult:
        """
        End the session (from recording or paused).

        Returns:
            Success with the final output path, or a failure. On a failed
            concatenation output_path is the first segment, which is left
            on disk as a usable fallback.
        """
        return self._run_exclusive(RecorderOperation.STOP, self._stop)

    def get_status(self) -> Dict[str, Any]:
        """Status snapshot for logging and the CLI"""
        with self._state_lock:
            encoder = self.probe.cache.get()
            return {
                **self.state_machine.get_status_info(),
                "output_path": str(self._output_path) if self._output_path else None,
                "segments": [str(s) for s in self._segments],
                "segment_index": self._segment_index,
                "encoder": encoder.encoder if encoder else None,
                "process_pid": self._process.pid if self._process else None,
            }

    def reset_caches(self) -> None:
        """Forget the probed encoder and the device list"""
        self.probe.invalidate()
        self.catalog.invalidate()
        self.logger.info("Encoder and device caches cleared")

    def cleanup(self) -> None:
        """Stop an active session, if any"""
        if self.state in (RecorderState.RECORDING, RecorderState.PAUSED):
            self.logger.info("Cleanup: stopping active session")
            result = self.stop()
            if not result:
                self.logger.error(f"Cleanup stop failed: {result.error}")

    # =========================================================================
    # OPERATION GUARD
    # =========================================================================

    def _run_exclusive(
        self,
        operation: RecorderOperation,
        action: Callable[[], RecorderResult],
    ) -> RecorderResult:
        if not self._operation_lock.acquire(blocking=False):
            message = f"Cannot {operation.value}: another operation is in progress"
            self.logger.warning(message)
            return RecorderResult.failure(message, ErrorCode.CONFIG_ERROR)

        try:
            with self._state_lock:
                rejection = self.state_machine.check_operation(operation)
            if rejection:
                self.logger.warning(rejection)
                return RecorderResult.failure(rejection, ErrorCode.CONFIG_ERROR)

            return action()

        except RecorderError as e:
            self.logger.error(f"{operation.value} failed: {e}")
            return RecorderResult.from_error(e)
        except Exception as e:
            self.logger.exception(f"Unexpected error during {operation.value}")
            return RecorderResult.failure(
                f"Unexpected error during {operation.value}: {e}",
                ErrorCode.UNKNOWN_ERROR,
            )
        finally:
            self._operation_lock.release()

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def _start(self, config: RecordingConfig) -> RecorderResult:
        self._prepare_session(config)

        try:
            self._start_segment()
        except Exception:
            self._abort_session()
            raise

        return RecorderResult.ok(self._output_path)

    def _pause(self) -> RecorderResult:
        with self._state_lock:
            # Re-check: a crash may have paused us since the guard ran
            rejection = self.state_machine.check_operation(RecorderOperation.PAUSE)
            if rejection:
                return RecorderResult.failure(rejection, ErrorCode.CONFIG_ERROR)

            process, monitor = self._process, self._monitor
            if monitor is not None:
                monitor.stopping = True
            self.state_machine.transition_to(RecorderState.PAUSED, "pause requested")

        if process is not None:
            self._shutdown_process(process)

        with self._state_lock:
            self._process = None
            self._monitor = None
            self._segment_index += 1

        if monitor is not None:
            self._publish_segment_closed(monitor, "paused")
        return RecorderResult.ok(self._output_path)

    def _resume(self) -> RecorderResult:
        try:
            self._start_segment()
        except Exception:
            with self._state_lock:
                failed = self._segments.pop()
                self._segment_index += 1
            safe_unlink(failed)
            raise

        return RecorderResult.ok(self._output_path)

    def _stop(self) -> RecorderResult:
        with self._state_lock:
            rejection = self.state_machine.check_operation(RecorderOperation.STOP)
            if rejection:
                return RecorderResult.failure(rejection, ErrorCode.CONFIG_ERROR)

            process, monitor = self._process, self._monitor
            if monitor is not None:
                monitor.stopping = True
            self.state_machine.transition_to(RecorderState.STOPPING, "stop requested")

        try:
            if process is not None:
                self._shutdown_process(process)
                with self._state_lock:
                    self._process = None
                    self._monitor = None
                self._publish_segment_closed(monitor, "stopped")

            segments = self.segments
            try:
                final_path = self.segment_store.finalize(segments, self._output_path)
            except ConcatenationError as e:
                self.logger.error(str(e))
                return RecorderResult.from_error(e)

            self._output_path = final_path
            self.event_bus.publish(
                RecorderEvent.SESSION_FINALIZED,
                {"output_path": str(final_path), "segment_count": len(segments)},
            )
            return RecorderResult.ok(final_path)

        finally:
            self._remove_temp_files()
            with self._state_lock:
                self._segments.clear()
                self._segment_index = 0
                self._config = None
                self.state_machine.transition_to(RecorderState.IDLE, "session finished")

    # =========================================================================
    # SESSION SETUP / TEARDOWN
    # =========================================================================

    def _prepare_session(self, config: RecordingConfig) -> None:
        """
        Validate, resolve devices, create the output folder, persist rasters.

        Device resolution runs before any file is written, so a bad label
        leaves no trace on disk.
        """
        if not config.output_folder or not str(config.output_folder).strip():
            raise ConfigError("Output folder is not set")

        self.logger.info(
            f"Starting session: mode={config.mode.value}, "
            f"camera={config.camera.label if config.has_camera else None}, "
            f"microphone={config.microphone_label}, fps={config.fps}",
        )

        if config.has_camera:
            config.camera.label = self.catalog.resolve(config.camera.label, "video")
        if config.has_microphone:
            config.microphone_label = self.catalog.resolve(config.microphone_label, "audio")

        folder = Path(config.output_folder)
        try:
            folder.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigError(f"Cannot create output folder: {e}") from e

        with self._state_lock:
            self._config = config
            self._segments = []
            self._segment_index = 0
            self._output_path = generate_output_path(folder, self.product_name)

        self._persist_rasters(config, folder)

    def _persist_rasters(self, config: RecordingConfig, folder: Path) -> None:
        """Write background / foreground images to temp files for the encoder"""
        self._background_path = None
        self._foreground_path = None

        background = config.background
        if background is None or not background.image_data:
            return

        stamp = int(time.time() * 1000)
        try:
            bg_path = folder / f"_bg_temp_{stamp}.png"
            bg_path.write_bytes(background.image_data)
            self._background_path = bg_path
            self.logger.debug(f"Background saved to: {bg_path}")

            if background.foreground_data:
                fg_path = folder / f"_fg_temp_{stamp}.png"
                fg_path.write_bytes(background.foreground_data)
                self._foreground_path = fg_path
                self.logger.debug(f"Foreground saved to: {fg_path}")
        except OSError as e:
            # Recording still works, just without the background layer
            self.logger.error(f"Failed to save background/foreground temp files: {e}")

    def _abort_session(self) -> None:
        """Undo a start whose first segment failed"""
        with self._state_lock:
            failed = list(self._segments)
            self._segments.clear()
            self._segment_index = 0
            self._config = None
        for path in failed:
            safe_unlink(path)
        self._remove_temp_files()

    def _remove_temp_files(self) -> None:
        for path in (self._background_path, self._foreground_path):
            safe_unlink(path)
        self._background_path = None
        self._foreground_path = None

    # =========================================================================
    # SEGMENTS
    # =========================================================================

    def _start_segment(self) -> None:
        """
        Spawn the encoder for a new segment and wait for it to get going.

        Confirmed by the first of: a progress line, or the start timeout
        passing without a "not found" error. The timeout case is a guess:
        some capture paths print no progress for several seconds.

        Raises:
            SpawnError: Could not launch, or exited before confirmation
            DeviceResolutionError: Window or device lookup failed
        """
        with self._state_lock:
            index = self._segment_index
            path = segment_path(self._output_path, index)
            self._segments.append(path)

        encoder = self.probe.detect()
        args = self.builder.build(self._config, encoder, path, self._background_path)
        command = self.runner.format_command(args)

        self.logger.info(f"Starting segment {index}: {path.name} (encoder: {encoder.encoder})")
        self.logger.debug(f"FFmpeg command: {command}")

        monitor = _SegmentMonitor(
            index,
            path,
            debug_log_path(path) if self.write_debug_logs else None,
        )
        monitor.write_log(f"FFmpeg command:\n{command}\n\n", append=False)

        process = self.runner.spawn(
            args,
            on_output=monitor.feed,
            on_exit=lambda code: self._on_process_exit(monitor, code),
        )
        with self._state_lock:
            self._process = process
            self._monitor = monitor

        monitor.wake.wait(self.start_timeout)

        error: Optional[RecorderError] = None
        kill = False
        presumed = False
        with self._state_lock:
            with monitor.lock:
                if monitor.exit_code is not None:
                    error = self._early_exit_error(monitor)
                elif monitor.progress_seen:
                    monitor.confirm()
                elif NOT_FOUND_MARKER in monitor.text:
                    error = DeviceResolutionError("Window or device not found.")
                    kill = True
                else:
                    presumed = True
                    monitor.confirm()

            if error is None:
                self.state_machine.transition_to(RecorderState.RECORDING, f"segment {index} started")
            else:
                self._process = None
                self._monitor = None

        if kill:
            monitor.stopping = True
            process.kill()
            process.wait(self.stop_timeout)

        if error is not None:
            raise error

        if presumed:
            if REALTIME_BUFFER_MARKER in monitor.text:
                self.logger.info("Grabber running but no frame encoded yet, assuming started")
            else:
                self.logger.warning(
                    f"No progress after {self.start_timeout:.0f}s, assuming capture started",
                )

        self.event_bus.publish(
            RecorderEvent.SEGMENT_STARTED,
            {"index": index, "path": str(path), "presumed": presumed},
        )

    def _early_exit_error(self, monitor: _SegmentMonitor) -> RecorderError:
        """Error for a process that exited before start was confirmed"""
        text = monitor.text
        details = summarize_diagnostics(text)

        if NOT_FOUND_MARKER in text:
            if "window" in text:
                message = "Window not found. The window title may have changed."
            else:
                message = "Device not found. Check camera/microphone settings."
            return DeviceResolutionError(f"{message}\n\nDetails: {details}")

        return SpawnError(f"FFmpeg exited with code {monitor.exit_code}.\n\nDetails: {details}")

    def _on_process_exit(self, monitor: _SegmentMonitor, code: int) -> None:
        """Exit callback, runs on the runner's reader thread"""
        monitor.write_log(f"\nExit code: {code}\nStderr:\n{monitor.text}\n")

        with monitor.lock:
            monitor.exit_code = code
            confirmed = monitor.confirmed
        monitor.wake.set()

        if confirmed:
            self._handle_unexpected_exit(monitor, code)

    def _handle_unexpected_exit(self, monitor: _SegmentMonitor, code: int) -> None:
        with self._state_lock:
            if monitor.stopping or self._monitor is not monitor:
                return
            self._process = None
            self._monitor = None
            self._segment_index += 1
            self.state_machine.transition_to(
                RecorderState.PAUSED, f"encoder exited with code {code}",
            )

        if code != 0:
            crash = RuntimeCrash(f"FFmpeg crashed with code {code}", exit_code=code)
            self.logger.error(str(crash))
            self.event_bus.publish(
                RecorderEvent.RUNTIME_CRASH,
                {
                    "crash": crash,
                    "error": str(crash),
                    "error_code": crash.code.value,
                    "exit_code": crash.exit_code,
                    "segment": str(monitor.path),
                    "details": summarize_diagnostics(monitor.text),
                },
            )
        else:
            self.logger.warning("FFmpeg exited on its own while recording")

        self._publish_segment_closed(monitor, "encoder exited")

    def _shutdown_process(self, process: EncoderProcessInterface) -> None:
        """Ask FFmpeg to finish the file; force it after stop_timeout"""
        if not process.send_quit():
            self.logger.debug("Quit command not delivered, terminating")
            process.terminate()

        if process.wait(self.stop_timeout) is None:
            self.logger.warning(
                f"FFmpeg did not exit within {self.stop_timeout:.0f}s, killing",
            )
            process.kill()
            process.wait(self.stop_timeout)

    # =========================================================================
    # EVENTS
    # =========================================================================

    def _on_state_change(self, old_state: RecorderState, new_state: RecorderState, reason: str) -> None:
        self.event_bus.publish(
            RecorderEvent.STATE_CHANGED,
            {"old_state": old_state.value, "new_state": new_state.value, "reason": reason},
        )

    def _publish_segment_closed(self, monitor: _SegmentMonitor, reason: str) -> None:
        self.event_bus.publish(
            RecorderEvent.SEGMENT_CLOSED,
            {"index": monitor.index, "path": str(monitor.path), "reason": reason},
        )
