"""
Recording Test Configuration and Fixtures

Shared fixtures for recording module tests.
"""

import shutil
import tempfile
from pathlib import Path

import pytest

from core.event_bus import RecorderEvent
from recording.controllers.session_controller import SessionController
from recording.implementations.mock_runner import MockRunner
from recording.models.recording_config import (
    CameraSettings,
    CameraShape,
    CaptureMode,
    Point,
    RecordingConfig,
    ScreenSource,
)

# Listing as printed by older FFmpeg builds (section headers)
DEVICE_LISTING = """\
[dshow @ 0000021d] DirectShow video devices (some may be both video and audio devices)
[dshow @ 0000021d]  "Logi Webcam (R)"
[dshow @ 0000021d]     Alternative name "@device_pnp_\\\\?\\usb#vid_046d&pid_0893"
[dshow @ 0000021d]  "OBS Virtual Camera"
[dshow @ 0000021d]     Alternative name "@device_sw_{860BB310-5D01-11D0-BD3B-00A0C911CE86}"
[dshow @ 0000021d] DirectShow audio devices
[dshow @ 0000021d]  "Microphone (USB Audio)"
[dshow @ 0000021d]     Alternative name "@device_cm_{33D9A762-90C8-11D0-BD43-00A0C911CE86}"
dummy: Immediate exit requested
"""

# Listing as printed by newer FFmpeg builds (per-line type suffix)
DEVICE_LISTING_TAGGED = """\
[dshow @ 000001f2] "Logi Webcam (R)" (video)
[dshow @ 000001f2]   Alternative name "@device_pnp_\\\\?\\usb#vid_046d&pid_0893"
[dshow @ 000001f2] "Microphone (USB Audio)" (audio)
[dshow @ 000001f2]   Alternative name "@device_cm_{33D9A762-90C8-11D0-BD43-00A0C911CE86}"
[dshow @ 000001f2] "Line In (Realtek Audio)" (audio)
"""


# =============================================================================
# RUNNER FIXTURES
# =============================================================================


@pytest.fixture
def device_listing():
    return DEVICE_LISTING


@pytest.fixture
def device_listing_tagged():
    return DEVICE_LISTING_TAGGED


@pytest.fixture
def mock_runner():
    """
    Provide a MockRunner with a populated device listing.

    No hardware encoder works, so probing falls back to libx264.

    Usage:
        def test_spawn(mock_runner):
            mock_runner.spawn_behaviors = ["exit_error"]
    """
    return MockRunner(device_listing=DEVICE_LISTING)


# =============================================================================
# SESSION CONTROLLER FIXTURES
# =============================================================================


@pytest.fixture
def controller(mock_runner, temp_recording_dir):
    """
    Provide SessionController wired to the mock runner with short timeouts.

    Depends on temp_recording_dir so an active session is stopped before
    the directory is removed.

    Usage:
        def test_session(controller, screen_config):
            result = controller.start(screen_config)
    """
    session = SessionController(
        runner=mock_runner,
        start_timeout=0.05,
        stop_timeout=0.2,
    )
    yield session
    session.cleanup()


@pytest.fixture
def recorded_events(controller):
    """
    Provide a list that collects every event the controller publishes.

    Usage:
        def test_events(controller, recorded_events):
            ...
            assert recorded_events[-1].event_type == RecorderEvent.SESSION_FINALIZED
    """
    events = []
    for event_type in RecorderEvent:
        controller.event_bus.subscribe(event_type, events.append)
    return events


# =============================================================================
# CONFIG FIXTURES
# =============================================================================


@pytest.fixture
def screen_config(temp_recording_dir):
    """Screen-only config writing into a temp directory"""
    return RecordingConfig(
        mode=CaptureMode.SCREEN,
        output_folder=temp_recording_dir,
        screen=ScreenSource(id="screen:0"),
    )


@pytest.fixture
def screen_camera_config(temp_recording_dir):
    """Screen + camera + microphone config using labels from DEVICE_LISTING"""
    return RecordingConfig(
        mode=CaptureMode.SCREEN_CAMERA,
        output_folder=temp_recording_dir,
        screen=ScreenSource(id="screen:0"),
        camera=CameraSettings(
            label="Logi Webcam®",
            size=200,
            position=Point(1040, 480),
            shape=CameraShape.CIRCLE,
        ),
        microphone_label="Microphone (USB Audio)",
    )


# =============================================================================
# TEMPORARY FILE/DIRECTORY FIXTURES
# =============================================================================


@pytest.fixture
def temp_recording_dir():
    """
    Provide temporary directory for recordings.

    Directory is automatically cleaned up after test.
    """
    temp_dir = Path(tempfile.mkdtemp())

    yield temp_dir

    # Cleanup
    if temp_dir.exists():
        shutil.rmtree(temp_dir)


# =============================================================================
# CALLBACK TRACKING FIXTURES
# =============================================================================


@pytest.fixture
def callback_tracker():
    """
    Provide helper for tracking callback calls.

    Usage:
        def test_callback(controller, callback_tracker):
            controller.event_bus.subscribe(RecorderEvent.RUNTIME_CRASH, callback_tracker.track)
            # ... trigger crash ...
            assert callback_tracker.was_called()
    """

    class CallbackTracker:
        def __init__(self):
            self.calls = []

        def track(self, *args, **kwargs):
            """Record a callback invocation"""
            self.calls.append({"args": args, "kwargs": kwargs})

        def was_called(self) -> bool:
            """Check if callback was called"""
            return len(self.calls) > 0

        def get_call_count(self) -> int:
            """Get number of times callback was called"""
            return len(self.calls)

        def get_last_call(self):
            """Get arguments from last call"""
            return self.calls[-1] if self.calls else None

        def reset(self):
            """Clear call history"""
            self.calls.clear()

    return CallbackTracker()


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """
    Configure pytest with custom markers for recording tests.
    """
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "unit_integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")
    config.addinivalue_line("markers", "requires_ffmpeg: Tests requiring FFmpeg")
