"""
Device Catalog

Lists DirectShow capture devices and maps the labels the UI knows them by
onto the names FFmpeg expects.

The capture-request layer and dshow often disagree on spelling
("Logi Webcam®" vs "Logi Webcam (R)"), so labels go through a tiered
match instead of a plain lookup.
"""

import logging
import re
from typing import List, Optional

from config.settings import DEVICE_INPUT_FORMAT, DEVICE_LIST_TIMEOUT
from recording.constants import (
    ALTERNATIVE_NAME_MARKER,
    AUDIO_LINE_SUFFIX,
    AUDIO_SECTION_MARKER,
    QUOTED_NAME_PATTERN,
    VIDEO_LINE_SUFFIX,
    VIDEO_SECTION_MARKER,
)
from recording.interfaces.process_runner_interface import (
    DeviceResolutionError,
    ProcessRunnerInterface,
    SpawnError,
)
from recording.models.recording_config import DeviceList
from recording.utils.cache import CachedValue

_STRIP_PATTERN = re.compile(r"[^\w\s()]")
_PAREN_PATTERN = re.compile(r"\s*\(")
_SPACE_PATTERN = re.compile(r"\s+")

DEVICE_KIND_LABELS = {
    "video": "Camera",
    "audio": "Microphone",
}


def normalize_device_name(name: str) -> str:
    """
    Canonical form of a device name for loose comparison.

    Example:
        normalize_device_name("Logi Webcam®")     -> "logi webcam (r)"
        normalize_device_name("Logi  Webcam (R)") -> "logi webcam (r)"
    """
    text = name.lower().replace("®", "(r)").replace("™", "(tm)")
    text = _STRIP_PATTERN.sub("", text)
    text = _PAREN_PATTERN.sub(" (", text)
    text = _SPACE_PATTERN.sub(" ", text)
    return text.strip()


def match_device(label: str, candidates: List[str]) -> Optional[str]:
    """
    Find the catalog entry a label refers to.

    Tiers, first hit wins:
    1. exact match
    2. equal after normalize_device_name()
    3. one normalized name contains the other

    Returns:
        Catalog entry, or None if nothing matches
    """
    if label in candidates:
        return label

    wanted = normalize_device_name(label)
    if not wanted:
        return None

    normalized = [(candidate, normalize_device_name(candidate)) for candidate in candidates]

    for candidate, name in normalized:
        if name == wanted:
            return candidate

    for candidate, name in normalized:
        if name and (wanted in name or name in wanted):
            return candidate

    return None


def parse_device_listing(text: str) -> DeviceList:
    """
    Parse `ffmpeg -list_devices true -f dshow -i dummy` output.

    Older builds group devices under "DirectShow video devices" /
    "DirectShow audio devices" headers; newer ones tag each line with
    "(video)" or "(audio)". Both layouts are understood.
    """
    devices = DeviceList()
    section: Optional[List[str]] = None

    for line in text.splitlines():
        if VIDEO_SECTION_MARKER in line:
            section = devices.video
            continue
        if AUDIO_SECTION_MARKER in line:
            section = devices.audio
            continue
        if ALTERNATIVE_NAME_MARKER in line:
            continue

        match = QUOTED_NAME_PATTERN.search(line)
        if not match:
            continue

        target = section
        tail = line[match.end():].strip()
        if tail.endswith(VIDEO_LINE_SUFFIX):
            target = devices.video
        elif tail.endswith(AUDIO_LINE_SUFFIX):
            target = devices.audio

        name = match.group(1)
        if target is not None and name not in target:
            target.append(name)

    return devices


class DeviceCatalog:
    """
    Cached device listing with label resolution.

    Usage:
        catalog = DeviceCatalog(runner)
        devices = catalog.list_devices()
        name = catalog.resolve("Logi Webcam®", "video")  # -> "Logi Webcam (R)"
    """

    def __init__(
        self,
        runner: ProcessRunnerInterface,
        cache: Optional[CachedValue] = None,
        timeout: float = DEVICE_LIST_TIMEOUT,
    ):
        self.logger = logging.getLogger(__name__)
        self.runner = runner
        self.cache: CachedValue = cache if cache is not None else CachedValue()
        self.timeout = timeout

    def list_devices(self) -> DeviceList:
        """
        Enumerate capture devices.

        A failed listing returns empty lists and is not cached, so the next
        call tries again.
        """
        if self.cache.is_set:
            return self.cache.get()

        args = ["-hide_banner", "-list_devices", "true", "-f", DEVICE_INPUT_FORMAT, "-i", "dummy"]
        try:
            result = self.runner.run(args, timeout=self.timeout)
        except SpawnError as e:
            self.logger.error(f"Device listing failed: {e}")
            return DeviceList()

        if result.timed_out:
            self.logger.error(f"Device listing timed out after {self.timeout}s")
            return DeviceList()

        # Exit code is non-zero by design (the "dummy" input never opens)
        devices = parse_device_listing(result.stderr)
        self.logger.info(
            f"Found {len(devices.video)} video and {len(devices.audio)} audio devices",
        )
        self.cache.set(devices)
        return devices

    def invalidate(self) -> None:
        self.cache.invalidate()

    def resolve(self, label: str, kind: str) -> str:
        """
        Resolve a label to the exact device name FFmpeg expects.

        Args:
            label: Device label from the caller
            kind: "video" or "audio"

        Raises:
            DeviceResolutionError: No match; message lists every device of that kind
        """
        candidates = self.list_devices().for_kind(kind)
        match = match_device(label, candidates)

        if match is None:
            available = ", ".join(f'"{name}"' for name in candidates) or "none"
            raise DeviceResolutionError(
                f'{DEVICE_KIND_LABELS[kind]} "{label}" not found in {DEVICE_INPUT_FORMAT} devices.'
                f"\n\nAvailable {kind} devices: {available}",
                label=label,
                candidates=candidates,
            )

        if match != label:
            self.logger.info(f'Resolved {kind} device "{label}" -> "{match}"')
        return match
