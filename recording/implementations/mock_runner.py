"""
Mock Process Runner Implementation

Simulated FFmpeg for testing without the binary or capture devices.
Mimics FFmpeg behavior for unit tests: device listings, encoder trials,
capture processes that print progress, crash or hang, concatenation and
post-processing passes.

This is a "Fake" (test double) - it has working logic but no real process.
"""

import logging
import threading
from pathlib import Path
from typing import List, Optional, Sequence, Set

from recording.interfaces.process_runner_interface import (
    EncoderProcessInterface,
    ExitCallback,
    OutputCallback,
    ProcessRunnerInterface,
    SpawnError,
)
from recording.models.results import ProcessResult

FAKE_MP4_HEADER = b"\x00\x00\x00\x20ftypmp42"

# Capture behaviors for spawn()
PROGRESS = "progress"  # Prints a frame= line right away
SILENT = "silent"  # Prints nothing, keeps running
REALTIME_BUFFER = "realtime_buffer"  # Prints the gdigrab buffer warning, keeps running
NOT_FOUND = "not_found"  # Prints a device lookup failure, keeps running
WINDOW_NOT_FOUND = "window_not_found"  # Window lookup failure, exits 1
EXIT_ERROR = "exit_error"  # Prints an error, exits 1
SPAWN_ERROR = "spawn_error"  # Launch fails

SAMPLE_OUTPUT = {
    PROGRESS: "frame=    1 fps=0.0 q=0.0 size=       0kB time=00:00:00.00 bitrate=N/A speed=   0x\r",
    REALTIME_BUFFER: (
        "[gdigrab @ 0000021d] real-time buffer [desktop] too full or near too full "
        "(101% of size: 3041280 [rtbufsize parameter])! frame dropped!\n"
    ),
    NOT_FOUND: (
        "[dshow @ 0000021d] Could not find video device with name [Missing Cam] "
        "among source devices of type video.\n"
        "video=Missing Cam: I/O error\n"
    ),
    WINDOW_NOT_FOUND: (
        "[gdigrab @ 0000021d] Could not find window 'Untitled - Notepad'\n"
        "title=Untitled - Notepad: I/O error\n"
    ),
    EXIT_ERROR: "Unrecognized option 'bogus'.\nError splitting the argument list: Option not found\n",
}


class MockProcess(EncoderProcessInterface):
    """
    Fake live encoder process.

    Exits through send_quit(), terminate(), kill() or the crash() helper.
    on_exit fires exactly once, synchronously, from whichever call ends it.
    """

    def __init__(
        self,
        args: Sequence[str],
        on_output: OutputCallback,
        on_exit: ExitCallback,
        pid: int,
        quit_supported: bool = True,
        ignore_quit: bool = False,
    ):
        self.logger = logging.getLogger(__name__)
        self.args = list(args)
        self._on_output = on_output
        self._on_exit = on_exit
        self._pid = pid
        self.quit_supported = quit_supported
        self.ignore_quit = ignore_quit

        self.returncode: Optional[int] = None
        self._exited = threading.Event()
        self._lock = threading.Lock()

        # Inspection for tests
        self.quit_requests = 0
        self.terminated = False
        self.killed = False

    @property
    def pid(self) -> Optional[int]:
        return self._pid

    def emit(self, text: str) -> None:
        """Deliver diagnostic text as if FFmpeg had printed it"""
        if not self._exited.is_set():
            self._on_output(text)

    def exit(self, code: int) -> None:
        """End the process with an exit code (no-op if already ended)"""
        with self._lock:
            if self._exited.is_set():
                return
            self.returncode = code
            self._exited.set()
        self.logger.debug(f"[MOCK] Process {self._pid} exited with code {code}")
        self._on_exit(code)

    def send_quit(self) -> bool:
        if not self.quit_supported or self._exited.is_set():
            return False
        self.quit_requests += 1
        if not self.ignore_quit:
            self.exit(0)
        return True

    def terminate(self) -> None:
        self.terminated = True
        if not self.ignore_quit:
            self.exit(1)

    def kill(self) -> None:
        self.killed = True
        self.exit(-9)

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        self._exited.wait(timeout)
        return self.returncode

    def poll(self) -> Optional[int]:
        return self.returncode

    # =========================================================================
    # TESTING HELPER METHODS (not part of EncoderProcessInterface)
    # =========================================================================

    def crash(self, code: int = 1, message: str = "Error while processing the stream\n") -> None:
        """Simulate the encoder dying on its own"""
        self.emit(message)
        self.exit(code)

    @property
    def is_running(self) -> bool:
        return not self._exited.is_set()


class MockRunner(ProcessRunnerInterface):
    """
    Mock FFmpeg runner for testing.

    Usage:
        runner = MockRunner(device_listing=LISTING, working_encoders={"h264_nvenc"})
        runner.spawn_behaviors = ["progress", "exit_error"]  # per spawn, then default
        proc = runner.spawn(args, on_output, on_exit)
        runner.last_process.crash(1)
    """

    def __init__(
        self,
        behavior: str = PROGRESS,
        device_listing: str = "",
        working_encoders: Optional[Set[str]] = None,
        write_outputs: bool = True,
    ):
        self.logger = logging.getLogger(__name__)

        # Capture behavior
        self.behavior = behavior
        self.spawn_behaviors: List[str] = []
        self.quit_supported = True
        self.ignore_quit = False
        self.write_outputs = write_outputs

        # One-shot behavior
        self.device_listing = device_listing
        self.list_devices_error = False
        self.list_devices_timeout = False
        self.working_encoders: Set[str] = set(working_encoders or ())
        self.timeout_encoders: Set[str] = set()
        self.trial_spawn_error = False
        self.concat_returncode: Optional[int] = 0  # None = time out
        self.post_process_returncode: Optional[int] = 0  # None = time out
        self.post_process_spawn_error = False

        # Inspection for tests
        self.spawned: List[List[str]] = []
        self.processes: List[MockProcess] = []
        self.run_calls: List[List[str]] = []
        self.probe_calls: List[str] = []
        self.list_calls = 0
        self._next_pid = 1000

        self.logger.info(f"Mock Runner initialized (behavior: {behavior})")

    @property
    def executable(self) -> str:
        return "ffmpeg"

    @property
    def last_process(self) -> Optional[MockProcess]:
        return self.processes[-1] if self.processes else None

    def spawn(
        self,
        args: Sequence[str],
        on_output: OutputCallback,
        on_exit: ExitCallback,
    ) -> EncoderProcessInterface:
        behavior = self.spawn_behaviors.pop(0) if self.spawn_behaviors else self.behavior
        self.spawned.append(list(args))

        if behavior == SPAWN_ERROR:
            self.logger.error("[MOCK] Simulated spawn failure")
            raise SpawnError("Failed to spawn FFmpeg: [MOCK] executable not found")

        self._next_pid += 1
        process = MockProcess(
            args,
            on_output,
            on_exit,
            pid=self._next_pid,
            quit_supported=self.quit_supported,
            ignore_quit=self.ignore_quit,
        )
        self.processes.append(process)

        if behavior in (PROGRESS, SILENT, REALTIME_BUFFER) and args:
            self._write_fake_media(Path(args[-1]))

        self.logger.info(f"[MOCK] Spawned process {process.pid} ({behavior})")

        if behavior in SAMPLE_OUTPUT:
            process.emit(SAMPLE_OUTPUT[behavior])
        if behavior in (WINDOW_NOT_FOUND, EXIT_ERROR):
            process.exit(1)

        return process

    def run(self, args: Sequence[str], timeout: float) -> ProcessResult:
        args = list(args)
        self.run_calls.append(args)

        if "-list_devices" in args:
            return self._run_list_devices()
        if "lavfi" in args:
            return self._run_encoder_trial(args)
        if "concat" in args:
            return self._run_to_file(args, self.concat_returncode, "concat")
        if self.post_process_spawn_error:
            raise SpawnError("Failed to spawn FFmpeg: [MOCK] executable not found")
        return self._run_to_file(args, self.post_process_returncode, "post-process")

    def is_available(self) -> bool:
        """Mock runner is always available"""
        return True

    def _run_list_devices(self) -> ProcessResult:
        self.list_calls += 1
        if self.list_devices_error:
            raise SpawnError("Failed to spawn FFmpeg: [MOCK] executable not found")
        if self.list_devices_timeout:
            return ProcessResult(returncode=None, timed_out=True)
        # dshow listing always "fails" because the dummy input cannot be opened
        return ProcessResult(returncode=1, stderr=self.device_listing)

    def _run_encoder_trial(self, args: List[str]) -> ProcessResult:
        encoder = args[args.index("-c:v") + 1]
        self.probe_calls.append(encoder)
        if self.trial_spawn_error:
            raise SpawnError("Failed to spawn FFmpeg: [MOCK] executable not found")
        if encoder in self.timeout_encoders:
            return ProcessResult(returncode=None, timed_out=True)
        if encoder in self.working_encoders:
            return ProcessResult(returncode=0)
        return ProcessResult(
            returncode=1,
            stderr=f"[{encoder} @ 0000021d] Cannot load {encoder} library\nError initializing output stream\n",
        )

    def _run_to_file(self, args: List[str], returncode: Optional[int], label: str) -> ProcessResult:
        if returncode is None:
            self.logger.warning(f"[MOCK] Simulated {label} timeout")
            return ProcessResult(returncode=None, timed_out=True)
        if returncode != 0:
            return ProcessResult(
                returncode=returncode,
                stderr=f"[{label}] Invalid data found when processing input\nConversion failed!\n",
            )
        self._write_fake_media(Path(args[-1]))
        return ProcessResult(returncode=0)

    def _write_fake_media(self, path: Path) -> None:
        if not self.write_outputs:
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            f.write(FAKE_MP4_HEADER)

    # =========================================================================
    # TESTING HELPER METHODS (not part of ProcessRunnerInterface)
    # =========================================================================

    def reset_test_config(self) -> None:
        """Reset failure scenarios to normal operation"""
        self.behavior = PROGRESS
        self.spawn_behaviors = []
        self.quit_supported = True
        self.ignore_quit = False
        self.list_devices_error = False
        self.list_devices_timeout = False
        self.trial_spawn_error = False
        self.concat_returncode = 0
        self.post_process_returncode = 0
        self.post_process_spawn_error = False
        self.logger.debug("[MOCK] Test configuration reset")

    def calls_matching(self, marker: str) -> List[List[str]]:
        """run() invocations whose arguments contain marker"""
        return [call for call in self.run_calls if marker in call]


ALL_BEHAVIORS = (
    PROGRESS,
    SILENT,
    REALTIME_BUFFER,
    NOT_FOUND,
    WINDOW_NOT_FOUND,
    EXIT_ERROR,
    SPAWN_ERROR,
)
