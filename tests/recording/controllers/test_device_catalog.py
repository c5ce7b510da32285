"""
Device Catalog Tests

Tests for DeviceCatalog showing:
- Listing parsing (sectioned and tagged layouts)
- Label normalization and matching tiers
- Caching (failures are not cached)
- Resolution errors that enumerate every device

To run:
    pytest tests/recording/controllers/test_device_catalog.py -v
"""

import pytest

from recording.controllers.device_catalog import (
    DeviceCatalog,
    match_device,
    normalize_device_name,
    parse_device_listing,
)
from recording.implementations.mock_runner import MockRunner
from recording.interfaces.process_runner_interface import DeviceResolutionError


# =============================================================================
# PARSING TESTS
# =============================================================================


@pytest.mark.unit
def test_parse_sectioned_listing(device_listing):
    """Test names are read per section and alternative names skipped."""
    devices = parse_device_listing(device_listing)

    assert devices.video == ["Logi Webcam (R)", "OBS Virtual Camera"]
    assert devices.audio == ["Microphone (USB Audio)"]


@pytest.mark.unit
def test_parse_tagged_listing(device_listing_tagged):
    """Test newer builds that tag each line with (video) / (audio)."""
    devices = parse_device_listing(device_listing_tagged)

    assert devices.video == ["Logi Webcam (R)"]
    assert devices.audio == ["Microphone (USB Audio)", "Line In (Realtek Audio)"]


@pytest.mark.unit
def test_parse_ignores_names_outside_sections():
    devices = parse_device_listing('[dshow @ 01] "Stray Device"\n')

    assert devices.video == []
    assert devices.audio == []


@pytest.mark.unit
def test_parse_lists_duplicate_names_once():
    text = (
        "[dshow] DirectShow video devices\n"
        '[dshow]  "USB Camera"\n'
        '[dshow]  "USB Camera"\n'
    )

    assert parse_device_listing(text).video == ["USB Camera"]


# =============================================================================
# MATCHING TESTS
# =============================================================================


@pytest.mark.unit
def test_normalize_device_name():
    assert normalize_device_name("Logi Webcam®") == "logi webcam (r)"
    assert normalize_device_name("Logi  Webcam (R)") == "logi webcam (r)"
    assert normalize_device_name("Brio™ 4K, Stream!") == "brio (tm) 4k stream"


@pytest.mark.unit
def test_match_exact():
    """Test exact equality is the first tier."""
    assert match_device("OBS Virtual Camera", ["OBS Virtual Camera"]) == "OBS Virtual Camera"


@pytest.mark.unit
def test_match_normalized():
    """Test registered glyph maps onto the catalog's ASCII spelling."""
    assert match_device("Logi Webcam®", ["Integrated Camera", "Logi Webcam (R)"]) == "Logi Webcam (R)"


@pytest.mark.unit
def test_match_substring_both_directions():
    """Test containment in either direction on normalized names."""
    assert match_device("Microphone", ["Microphone (USB Audio)"]) == "Microphone (USB Audio)"
    assert match_device("HD Pro Webcam C920 (USB)", ["HD Pro Webcam C920"]) == "HD Pro Webcam C920"


@pytest.mark.unit
def test_match_prefers_normalized_over_substring():
    candidates = ["Logi Webcam (R) Virtual", "Logi Webcam (R)"]

    assert match_device("Logi Webcam®", candidates) == "Logi Webcam (R)"


@pytest.mark.unit
def test_no_match_returns_none():
    assert match_device("Missing Cam", ["Logi Webcam (R)"]) is None
    assert match_device("!!!", ["Logi Webcam (R)"]) is None


# =============================================================================
# CATALOG TESTS
# =============================================================================


@pytest.mark.unit
def test_list_devices_is_cached(device_listing):
    runner = MockRunner(device_listing=device_listing)
    catalog = DeviceCatalog(runner)

    first = catalog.list_devices()
    second = catalog.list_devices()

    assert first is second
    assert runner.list_calls == 1
    assert runner.run_calls[0] == [
        "-hide_banner", "-list_devices", "true", "-f", "dshow", "-i", "dummy",
    ]


@pytest.mark.unit
def test_invalidate_lists_again(device_listing):
    runner = MockRunner(device_listing=device_listing)
    catalog = DeviceCatalog(runner)
    catalog.list_devices()

    catalog.invalidate()
    catalog.list_devices()

    assert runner.list_calls == 2


@pytest.mark.unit
def test_failed_listing_is_not_cached(device_listing):
    """Test a spawn failure yields empty lists and a later call retries."""
    runner = MockRunner(device_listing=device_listing)
    runner.list_devices_error = True
    catalog = DeviceCatalog(runner)

    devices = catalog.list_devices()
    assert devices.video == [] and devices.audio == []
    assert catalog.cache.is_set is False

    runner.list_devices_error = False
    assert catalog.list_devices().video == ["Logi Webcam (R)", "OBS Virtual Camera"]
    assert runner.list_calls == 2


@pytest.mark.unit
def test_timed_out_listing_is_not_cached(device_listing):
    runner = MockRunner(device_listing=device_listing)
    runner.list_devices_timeout = True
    catalog = DeviceCatalog(runner)

    assert catalog.list_devices().audio == []
    assert catalog.cache.is_set is False


@pytest.mark.unit
def test_resolve_returns_catalog_name(device_listing):
    catalog = DeviceCatalog(MockRunner(device_listing=device_listing))

    assert catalog.resolve("Logi Webcam®", "video") == "Logi Webcam (R)"
    assert catalog.resolve("Microphone (USB Audio)", "audio") == "Microphone (USB Audio)"


@pytest.mark.unit
def test_resolve_error_lists_every_device(device_listing):
    """Test an unmatched label reports all devices of that kind."""
    catalog = DeviceCatalog(MockRunner(device_listing=device_listing))

    with pytest.raises(DeviceResolutionError) as exc_info:
        catalog.resolve("Missing Cam", "video")

    error = exc_info.value
    assert error.label == "Missing Cam"
    assert error.candidates == ["Logi Webcam (R)", "OBS Virtual Camera"]
    assert str(error) == (
        'Camera "Missing Cam" not found in dshow devices.\n\n'
        'Available video devices: "Logi Webcam (R)", "OBS Virtual Camera"'
    )


@pytest.mark.unit
def test_resolve_error_with_empty_catalog():
    catalog = DeviceCatalog(MockRunner(device_listing=""))

    with pytest.raises(DeviceResolutionError, match="Available audio devices: none"):
        catalog.resolve("Microphone", "audio")
