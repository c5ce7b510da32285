"""
Encoder Probe

Finds the best H.264 encoder this machine can actually use.

Listing encoders is not enough: a build may ship h264_nvenc while the
machine has no NVIDIA GPU. Each candidate is tried on a tiny synthetic
clip instead, and the first one that exits cleanly wins.
"""

import logging
from typing import List, Optional

from config.settings import ENCODER_TRIAL_TIMEOUT
from recording.constants import (
    ENCODER_TRIAL_SOURCE,
    HARDWARE_ENCODER_CANDIDATES,
    SOFTWARE_ENCODER,
    encoder_display_name,
)
from recording.interfaces.process_runner_interface import (
    ProcessRunnerInterface,
    SpawnError,
)
from recording.models.recording_config import EncoderInfo, EncoderType
from recording.utils.cache import CachedValue


class EncoderProbe:
    """
    Detects and caches the encoder to use.

    Usage:
        probe = EncoderProbe(runner)
        encoder = probe.detect()   # trials run once
        encoder = probe.detect()   # cached
        probe.invalidate()         # next detect() trials again
    """

    def __init__(
        self,
        runner: ProcessRunnerInterface,
        cache: Optional[CachedValue] = None,
        trial_timeout: float = ENCODER_TRIAL_TIMEOUT,
        candidates: tuple = HARDWARE_ENCODER_CANDIDATES,
    ):
        self.logger = logging.getLogger(__name__)
        self.runner = runner
        self.cache: CachedValue = cache if cache is not None else CachedValue()
        self.trial_timeout = trial_timeout
        self.candidates = candidates

    def detect(self) -> EncoderInfo:
        """
        Return the encoder to use, probing on first call.

        Never fails: libx264 is the fallback when no hardware encoder works.
        """
        if self.cache.is_set:
            return self.cache.get()

        for candidate in self.candidates:
            if self._trial(candidate):
                self.logger.info(f"Detected hardware encoder: {encoder_display_name(candidate)}")
                info = EncoderInfo(candidate, EncoderType.HARDWARE)
                self.cache.set(info)
                return info

        self.logger.info("No hardware encoder found, falling back to libx264")
        info = EncoderInfo(SOFTWARE_ENCODER, EncoderType.SOFTWARE)
        self.cache.set(info)
        return info

    def invalidate(self) -> None:
        self.cache.invalidate()

    @staticmethod
    def trial_args(encoder: str) -> List[str]:
        """One frame of a 256x256 null source, encoded and discarded"""
        return [
            "-f", "lavfi", "-i", ENCODER_TRIAL_SOURCE,
            "-frames:v", "1",
            "-c:v", encoder,
            "-f", "null", "-",
        ]

    def _trial(self, encoder: str) -> bool:
        try:
            result = self.runner.run(self.trial_args(encoder), timeout=self.trial_timeout)
        except SpawnError as e:
            self.logger.debug(f"Encoder trial {encoder} could not start: {e}")
            return False

        if result.timed_out:
            self.logger.debug(f"Encoder trial {encoder} timed out")
            return False

        self.logger.debug(f"Encoder trial {encoder}: exit code {result.returncode}")
        return result.succeeded
