"""
Session Controller Tests

Tests for SessionController showing:
- Lifecycle: start / pause / resume / stop with segment files
- Invalid operations rejected without side effects
- Start confirmation (progress, presumed start, not-found, early exit)
- Crash reporting through the event bus
- Shutdown escalation (quit -> terminate -> kill)
- Finalization success and concat fallback

To run:
    pytest tests/recording/controllers/test_session_controller.py -v
"""

import pytest

from core.event_bus import RecorderEvent
from core.state_machine import RecorderState
from recording.constants import DIAGNOSTIC_TAIL_LINES, ErrorCode
from recording.implementations.mock_runner import (
    EXIT_ERROR,
    NOT_FOUND,
    REALTIME_BUFFER,
    SILENT,
    SPAWN_ERROR,
    WINDOW_NOT_FOUND,
)
from recording.interfaces.process_runner_interface import RuntimeCrash
from recording.models.recording_config import (
    BackgroundLayer,
    CaptureMode,
    RecordingConfig,
    Rect,
    ScreenSource,
)


def events_of(events, event_type):
    return [e for e in events if e.event_type == event_type]


# =============================================================================
# INVALID OPERATION TESTS
# =============================================================================


@pytest.mark.unit
@pytest.mark.parametrize("operation", ["pause", "resume", "stop"])
def test_operations_rejected_when_idle(controller, mock_runner, temp_recording_dir, operation):
    """Test pause / resume / stop from idle fail without side effects."""
    result = getattr(controller, operation)()

    assert not result
    assert result.error_code == ErrorCode.CONFIG_ERROR
    assert "recorder is idle" in result.error
    assert controller.state == RecorderState.IDLE
    assert mock_runner.spawned == []
    assert list(temp_recording_dir.iterdir()) == []


@pytest.mark.unit
def test_resume_rejected_while_recording(controller, mock_runner, screen_config):
    controller.start(screen_config)

    result = controller.resume()

    assert not result
    assert result.error_code == ErrorCode.CONFIG_ERROR
    assert controller.state == RecorderState.RECORDING
    assert len(mock_runner.spawned) == 1
    assert len(controller.segments) == 1


@pytest.mark.unit
def test_start_rejected_while_recording(controller, screen_config):
    controller.start(screen_config)

    result = controller.start(screen_config)

    assert not result
    assert "Cannot start" in result.error
    assert controller.state == RecorderState.RECORDING


@pytest.mark.unit
def test_concurrent_operation_rejected(controller, screen_config):
    """Test a call while another operation runs fails immediately."""
    controller._operation_lock.acquire()
    try:
        result = controller.start(screen_config)
    finally:
        controller._operation_lock.release()

    assert not result
    assert "another operation is in progress" in result.error
    assert controller.state == RecorderState.IDLE


@pytest.mark.unit
def test_start_without_output_folder(controller, mock_runner):
    config = RecordingConfig(mode=CaptureMode.SCREEN, output_folder=None)

    result = controller.start(config)

    assert not result
    assert result.error_code == ErrorCode.CONFIG_ERROR
    assert result.error == "Output folder is not set"
    assert mock_runner.spawned == []


# =============================================================================
# LIFECYCLE TESTS
# =============================================================================


@pytest.mark.unit
def test_start_records_first_segment(controller, mock_runner, screen_config, temp_recording_dir):
    """Test start spawns the encoder for segment 0 and enters recording."""
    result = controller.start(screen_config)

    assert result
    assert controller.state == RecorderState.RECORDING
    assert result.output_path == controller.output_path
    assert result.output_path.parent == temp_recording_dir
    assert result.output_path.name.startswith("FancyCapture_")
    assert result.output_path.suffix == ".mp4"

    segment = controller.segments[0]
    assert segment.name == f"{result.output_path.stem}_seg0.mp4"
    assert segment.exists()
    assert mock_runner.spawned[0][-1] == str(segment)


@pytest.mark.unit
def test_single_segment_is_renamed(controller, screen_config, recorded_events):
    """Test start -> stop produces the final file without concatenation."""
    output_path = controller.start(screen_config).output_path
    segment = controller.segments[0]

    result = controller.stop()

    assert result
    assert result.output_path == output_path
    assert output_path.exists()
    assert not segment.exists()
    assert controller.state == RecorderState.IDLE
    assert controller.segments == []
    assert controller.runner.calls_matching("concat") == []

    finalized = events_of(recorded_events, RecorderEvent.SESSION_FINALIZED)
    assert finalized[0].data == {"output_path": str(output_path), "segment_count": 1}


@pytest.mark.unit_integration
def test_pause_resume_cycles_produce_one_file(controller, mock_runner, screen_config, temp_recording_dir):
    """Test start, pause, resume, pause, resume, stop: 3 segments, 1 output."""
    output_path = controller.start(screen_config).output_path
    assert controller.pause()
    assert controller.state == RecorderState.PAUSED
    assert controller.resume()
    assert controller.pause()
    assert controller.resume()

    segments = controller.segments
    assert [s.name for s in segments] == [
        f"{output_path.stem}_seg0.mp4",
        f"{output_path.stem}_seg1.mp4",
        f"{output_path.stem}_seg2.mp4",
    ]

    result = controller.stop()

    assert result
    assert result.output_path == output_path
    assert sorted(temp_recording_dir.glob("*.mp4")) == [output_path]
    assert not (temp_recording_dir / f"{output_path.stem}_segments.txt").exists()
    assert len(mock_runner.calls_matching("concat")) == 1


@pytest.mark.unit
def test_pause_sends_quit(controller, mock_runner, screen_config, recorded_events):
    """Test pause closes the segment gracefully and reports no crash."""
    controller.start(screen_config)
    process = mock_runner.last_process

    controller.pause()

    assert process.quit_requests == 1
    assert process.returncode == 0
    assert controller.segment_index == 1
    assert events_of(recorded_events, RecorderEvent.RUNTIME_CRASH) == []
    closed = events_of(recorded_events, RecorderEvent.SEGMENT_CLOSED)
    assert closed[0].data["reason"] == "paused"


@pytest.mark.unit
def test_stop_from_paused(controller, mock_runner, screen_config):
    controller.start(screen_config)
    controller.pause()

    result = controller.stop()

    assert result
    assert result.output_path.exists()
    assert len(mock_runner.processes) == 1


@pytest.mark.unit
def test_state_change_events(controller, screen_config, recorded_events):
    controller.start(screen_config)
    controller.pause()
    controller.resume()
    controller.stop()

    changes = [
        (e.data["old_state"], e.data["new_state"])
        for e in events_of(recorded_events, RecorderEvent.STATE_CHANGED)
    ]
    assert changes == [
        ("idle", "recording"),
        ("recording", "paused"),
        ("paused", "recording"),
        ("recording", "stopping"),
        ("stopping", "idle"),
    ]


@pytest.mark.unit
def test_debug_log_written_per_segment(controller, screen_config):
    controller.start(screen_config)
    segment = controller.segments[0]
    log_path = segment.with_name(f"{segment.stem}_ffmpeg_debug.log")

    controller.stop()

    text = log_path.read_text(encoding="utf-8")
    assert text.startswith("FFmpeg command:\nffmpeg -y -sws_flags")
    assert "Exit code: 0" in text
    assert "frame=" in text


@pytest.mark.unit
def test_long_recording_keeps_only_recent_output(controller, mock_runner, screen_config, callback_tracker):
    """Test progress output after start is bounded to the last lines."""
    controller.event_bus.subscribe(RecorderEvent.RUNTIME_CRASH, callback_tracker.track)
    controller.start(screen_config)
    segment = controller.segments[0]
    log_path = segment.with_name(f"{segment.stem}_ffmpeg_debug.log")
    process = mock_runner.last_process

    for n in range(DIAGNOSTIC_TAIL_LINES * 3):
        process.emit(f"frame={n:>6} fps= 30 q=23.0 size=    1024kB time=00:00:01.00\r")
    process.crash(1, "Error writing trailer: No space left on device\n")

    text = log_path.read_text(encoding="utf-8")
    assert "earlier lines dropped]" in text
    assert "frame=     0 " not in text
    assert f"frame={DIAGNOSTIC_TAIL_LINES * 3 - 1:>6}" in text
    assert "No space left on device" in text
    assert text.count("frame=") <= DIAGNOSTIC_TAIL_LINES

    event = callback_tracker.get_last_call()["args"][0]
    assert "No space left on device" in event.data["details"]


@pytest.mark.unit
def test_debug_logs_can_be_disabled(mock_runner, screen_config, temp_recording_dir):
    from recording.controllers.session_controller import SessionController

    controller = SessionController(runner=mock_runner, start_timeout=0.05, write_debug_logs=False)
    controller.start(screen_config)
    controller.stop()

    assert list(temp_recording_dir.glob("*.log")) == []


# =============================================================================
# DEVICE RESOLUTION TESTS
# =============================================================================


@pytest.mark.unit
def test_device_labels_resolved_in_place(controller, mock_runner, screen_camera_config):
    """Test labels are rewritten to catalog names before the command is built."""
    result = controller.start(screen_camera_config)

    assert result
    assert screen_camera_config.camera.label == "Logi Webcam (R)"
    args = mock_runner.spawned[0]
    assert "video=Logi Webcam (R)" in args
    assert "audio=Microphone (USB Audio)" in args


@pytest.mark.unit
def test_unknown_device_fails_before_touching_disk(controller, mock_runner, screen_camera_config, temp_recording_dir):
    screen_camera_config.camera.label = "Missing Cam"

    result = controller.start(screen_camera_config)

    assert not result
    assert result.error_code == ErrorCode.DEVICE_NOT_FOUND
    assert '"Logi Webcam (R)", "OBS Virtual Camera"' in result.error
    assert controller.state == RecorderState.IDLE
    assert mock_runner.spawned == []
    assert list(temp_recording_dir.iterdir()) == []


# =============================================================================
# START CONFIRMATION TESTS
# =============================================================================


@pytest.mark.unit
def test_silent_encoder_is_presumed_started(controller, mock_runner, screen_config, recorded_events):
    """Test no progress and no error within the timeout counts as started."""
    mock_runner.behavior = SILENT

    result = controller.start(screen_config)

    assert result
    assert controller.state == RecorderState.RECORDING
    started = events_of(recorded_events, RecorderEvent.SEGMENT_STARTED)
    assert started[0].data["presumed"] is True


@pytest.mark.unit
def test_realtime_buffer_warning_is_presumed_started(controller, mock_runner, screen_config):
    mock_runner.behavior = REALTIME_BUFFER

    assert controller.start(screen_config)
    assert controller.state == RecorderState.RECORDING


@pytest.mark.unit
def test_not_found_kills_process(controller, mock_runner, screen_config):
    """Test a lookup failure at the deadline kills the encoder."""
    mock_runner.behavior = NOT_FOUND

    result = controller.start(screen_config)

    assert not result
    assert result.error_code == ErrorCode.DEVICE_NOT_FOUND
    assert result.error == "Window or device not found."
    assert mock_runner.last_process.killed is True
    assert controller.state == RecorderState.IDLE
    assert controller.segments == []


@pytest.mark.unit
def test_window_not_found_exit(controller, mock_runner, screen_config):
    mock_runner.behavior = WINDOW_NOT_FOUND

    result = controller.start(screen_config)

    assert not result
    assert result.error_code == ErrorCode.DEVICE_NOT_FOUND
    assert result.error.startswith("Window not found. The window title may have changed.")
    assert "Could not find window 'Untitled - Notepad'" in result.error


@pytest.mark.unit
def test_early_exit_reports_diagnostics(controller, mock_runner, screen_config):
    mock_runner.behavior = EXIT_ERROR

    result = controller.start(screen_config)

    assert not result
    assert result.error_code == ErrorCode.SPAWN_FAILED
    assert result.error.startswith("FFmpeg exited with code 1.")
    assert "Option not found" in result.error
    assert controller.state == RecorderState.IDLE


@pytest.mark.unit
def test_spawn_failure(controller, mock_runner, screen_config, temp_recording_dir):
    mock_runner.behavior = SPAWN_ERROR

    result = controller.start(screen_config)

    assert not result
    assert result.error_code == ErrorCode.SPAWN_FAILED
    assert controller.state == RecorderState.IDLE
    assert controller.segments == []
    assert list(temp_recording_dir.glob("*.mp4")) == []


@pytest.mark.unit
def test_failed_resume_stays_paused(controller, mock_runner, screen_config):
    """Test a resume that cannot start leaves the session paused and usable."""
    output_path = controller.start(screen_config).output_path
    controller.pause()
    mock_runner.spawn_behaviors = [EXIT_ERROR]

    result = controller.resume()

    assert not result
    assert controller.state == RecorderState.PAUSED
    assert [s.name for s in controller.segments] == [f"{output_path.stem}_seg0.mp4"]

    assert controller.resume()
    assert controller.segments[-1].name == f"{output_path.stem}_seg2.mp4"
    assert controller.stop()
    assert output_path.exists()


# =============================================================================
# CRASH TESTS
# =============================================================================


@pytest.mark.unit
def test_crash_publishes_event_and_pauses(controller, mock_runner, screen_config, callback_tracker):
    """Test an encoder dying mid-recording is reported asynchronously."""
    controller.event_bus.subscribe(RecorderEvent.RUNTIME_CRASH, callback_tracker.track)
    controller.start(screen_config)
    segment = controller.segments[0]

    mock_runner.last_process.crash(1, "Error while decoding stream #0:0\n")

    assert controller.state == RecorderState.PAUSED
    assert callback_tracker.get_call_count() == 1
    event = callback_tracker.get_last_call()["args"][0]
    assert event.data["error"] == "FFmpeg crashed with code 1"
    assert event.data["exit_code"] == 1
    assert event.data["segment"] == str(segment)
    assert "Error while decoding" in event.data["details"]
    assert isinstance(event.data["crash"], RuntimeCrash)
    assert event.data["crash"].exit_code == 1
    assert event.data["error_code"] == ErrorCode.RUNTIME_CRASH.value


@pytest.mark.unit
def test_recording_continues_after_crash(controller, mock_runner, screen_config):
    """Test the crashed segment is kept and a resume starts the next one."""
    output_path = controller.start(screen_config).output_path
    mock_runner.last_process.crash(1)

    assert controller.resume()
    assert len(controller.segments) == 2

    result = controller.stop()
    assert result
    assert result.output_path == output_path
    assert len(mock_runner.calls_matching("concat")) == 1


@pytest.mark.unit
def test_clean_exit_while_recording_is_not_a_crash(controller, mock_runner, screen_config, recorded_events):
    controller.start(screen_config)

    mock_runner.last_process.exit(0)

    assert controller.state == RecorderState.PAUSED
    assert events_of(recorded_events, RecorderEvent.RUNTIME_CRASH) == []


# =============================================================================
# SHUTDOWN TESTS
# =============================================================================


@pytest.mark.unit
def test_terminate_when_quit_unavailable(controller, mock_runner, screen_config):
    mock_runner.quit_supported = False
    controller.start(screen_config)
    process = mock_runner.last_process

    assert controller.stop()
    assert process.terminated is True
    assert process.killed is False


@pytest.mark.unit
def test_kill_when_encoder_ignores_quit(controller, mock_runner, screen_config, recorded_events):
    """Test escalation to kill after the graceful stop timeout."""
    mock_runner.ignore_quit = True
    controller.start(screen_config)
    process = mock_runner.last_process

    result = controller.stop()

    assert result
    assert process.quit_requests == 1
    assert process.killed is True
    assert events_of(recorded_events, RecorderEvent.RUNTIME_CRASH) == []


# =============================================================================
# FINALIZATION TESTS
# =============================================================================


@pytest.mark.unit
def test_concat_failure_returns_first_segment(controller, mock_runner, screen_config):
    controller.start(screen_config)
    controller.pause()
    controller.resume()
    first_segment = controller.segments[0]
    mock_runner.concat_returncode = 1

    result = controller.stop()

    assert not result
    assert result.error_code == ErrorCode.CONCAT_FAILED
    assert result.output_path == first_segment
    assert first_segment.exists()
    assert controller.state == RecorderState.IDLE


@pytest.mark.unit
def test_unwritable_segment_list_returns_first_segment(controller, screen_config):
    controller.start(screen_config)
    controller.pause()
    controller.resume()
    first_segment = controller.segments[0]
    output = controller.output_path
    output.with_name(f"{output.stem}_segments.txt").mkdir()

    result = controller.stop()

    assert not result
    assert result.error_code == ErrorCode.CONCAT_FAILED
    assert result.output_path == first_segment
    assert first_segment.exists()
    assert controller.state == RecorderState.IDLE


@pytest.mark.unit
def test_background_rasters_removed_on_stop(controller, mock_runner, temp_recording_dir):
    config = RecordingConfig(
        mode=CaptureMode.SCREEN,
        output_folder=temp_recording_dir,
        screen=ScreenSource(id="screen:0"),
        background=BackgroundLayer(
            image_data=b"\x89PNG background",
            foreground_data=b"\x89PNG foreground",
            content_area=Rect(80, 45, 1760, 990),
        ),
    )

    controller.start(config)

    backgrounds = list(temp_recording_dir.glob("_bg_temp_*.png"))
    assert len(backgrounds) == 1
    assert backgrounds[0].read_bytes() == b"\x89PNG background"
    assert len(list(temp_recording_dir.glob("_fg_temp_*.png"))) == 1
    assert str(backgrounds[0]) in mock_runner.spawned[0]

    controller.stop()

    assert list(temp_recording_dir.glob("_*_temp_*.png")) == []


# =============================================================================
# STATUS / CACHE TESTS
# =============================================================================


@pytest.mark.unit
def test_get_status(controller, mock_runner, screen_config):
    controller.start(screen_config)

    status = controller.get_status()

    assert status["current_state"] == "recording"
    assert status["encoder"] == "libx264"
    assert status["segment_index"] == 0
    assert status["process_pid"] == mock_runner.last_process.pid
    assert len(status["segments"]) == 1


@pytest.mark.unit
def test_reset_caches(controller, screen_config):
    controller.start(screen_config)
    controller.stop()
    assert controller.probe.cache.is_set
    assert controller.catalog.cache.is_set is False  # screen-only: no lookup

    controller.reset_caches()

    assert controller.probe.cache.is_set is False


@pytest.mark.unit
def test_cleanup_stops_active_session(controller, screen_config):
    output_path = controller.start(screen_config).output_path

    controller.cleanup()

    assert controller.state == RecorderState.IDLE
    assert output_path.exists()
