"""
FFmpeg Process Runner

Real encoder processes using FFmpeg subprocesses.

Long-running captures get a daemon reader thread that forwards stderr
(FFmpeg writes all diagnostics and progress there) to a callback, so the
control thread never blocks on the pipe. One-shot invocations (encoder
trials, device listing, concatenation, post-processing) run to completion
with a hard timeout.
"""

import codecs
import logging
import subprocess
import threading
from typing import Optional, Sequence

from recording.interfaces.process_runner_interface import (
    EncoderProcessInterface,
    ExitCallback,
    OutputCallback,
    ProcessRunnerInterface,
    SpawnError,
)
from recording.models.results import ProcessResult
from recording.utils.recording_utils import resolve_ffmpeg_path, subprocess_kwargs

READ_CHUNK_SIZE = 4096


class FFmpegProcess(EncoderProcessInterface):
    """
    Live FFmpeg process.

    stdin stays open as the control channel: writing "q" makes FFmpeg
    flush and close the output file, which is the clean way to stop it.
    """

    def __init__(
        self,
        popen: subprocess.Popen,
        on_output: OutputCallback,
        on_exit: ExitCallback,
    ):
        self.logger = logging.getLogger(__name__)
        self._popen = popen
        self._on_output = on_output
        self._on_exit = on_exit

        self._reader = threading.Thread(
            target=self._read_worker,
            daemon=True,
            name=f"FFmpegReader-{popen.pid}",
        )
        self._reader.start()

    @property
    def pid(self) -> Optional[int]:
        return self._popen.pid

    def _read_worker(self) -> None:
        """Forward stderr chunks until EOF, then report the exit code"""
        stream = self._popen.stderr
        # Multi-byte characters may straddle two reads
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            if stream is not None:
                while True:
                    chunk = stream.read1(READ_CHUNK_SIZE)
                    if not chunk:
                        break
                    self._forward(decoder.decode(chunk))
        except (OSError, ValueError) as e:
            self.logger.debug(f"stderr reader stopped: {e}")
        self._forward(decoder.decode(b"", final=True))

        code = self._popen.wait()
        try:
            self._on_exit(code)
        except Exception as e:
            self.logger.error(f"Error in exit callback: {e}")

    def _forward(self, text: str) -> None:
        if not text:
            return
        try:
            self._on_output(text)
        except Exception as e:
            self.logger.error(f"Error in output callback: {e}")

    def send_quit(self) -> bool:
        stdin = self._popen.stdin
        if stdin is None or stdin.closed:
            return False
        try:
            stdin.write(b"q\n")
            stdin.flush()
            return True
        except (BrokenPipeError, OSError, ValueError):
            return False

    def terminate(self) -> None:
        try:
            self._popen.terminate()
        except OSError as e:
            self.logger.debug(f"terminate failed: {e}")

    def kill(self) -> None:
        try:
            self._popen.kill()
        except OSError as e:
            self.logger.debug(f"kill failed: {e}")

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        try:
            return self._popen.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            return None

    def poll(self) -> Optional[int]:
        return self._popen.poll()


class FFmpegRunner(ProcessRunnerInterface):
    """
    Launches FFmpeg.

    Usage:
        runner = FFmpegRunner()
        result = runner.run(["-hide_banner", "-encoders"], timeout=5.0)
        proc = runner.spawn(args, on_output=print, on_exit=print)
    """

    def __init__(self, executable: Optional[str] = None):
        self.logger = logging.getLogger(__name__)
        self._executable = executable or resolve_ffmpeg_path()
        self.logger.info(f"FFmpeg runner initialized (binary: {self._executable})")

    @property
    def executable(self) -> str:
        return self._executable

    def spawn(
        self,
        args: Sequence[str],
        on_output: OutputCallback,
        on_exit: ExitCallback,
    ) -> EncoderProcessInterface:
        command = [self._executable, *args]
        try:
            popen = subprocess.Popen(
                command,
                stdin=subprocess.PIPE,  # Control channel for "q"
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                **subprocess_kwargs(),
            )
        except OSError as e:
            raise SpawnError(f"Failed to spawn FFmpeg: {e}") from e

        self.logger.debug(f"Spawned FFmpeg (PID: {popen.pid})")
        return FFmpegProcess(popen, on_output, on_exit)

    def run(self, args: Sequence[str], timeout: float) -> ProcessResult:
        command = [self._executable, *args]
        try:
            completed = subprocess.run(
                command,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                timeout=timeout,
                check=False,
                **subprocess_kwargs(),
            )
        except subprocess.TimeoutExpired as e:
            self.logger.warning(f"FFmpeg timed out after {timeout}s")
            return ProcessResult(
                returncode=None,
                stdout=_decode(e.stdout),
                stderr=_decode(e.stderr),
                timed_out=True,
            )
        except OSError as e:
            raise SpawnError(f"Failed to spawn FFmpeg: {e}") from e

        return ProcessResult(
            returncode=completed.returncode,
            stdout=_decode(completed.stdout),
            stderr=_decode(completed.stderr),
        )

    def is_available(self) -> bool:
        try:
            result = self.run(["-hide_banner", "-version"], timeout=5.0)
        except SpawnError as e:
            self.logger.warning(f"FFmpeg not available: {e}")
            return False
        return result.succeeded


def _decode(data) -> str:
    if data is None:
        return ""
    if isinstance(data, str):
        return data
    return data.decode("utf-8", errors="replace")
