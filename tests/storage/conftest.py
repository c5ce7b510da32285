"""
Storage Test Configuration and Fixtures

This file contains pytest fixtures shared across storage tests.
Mirrors the pattern from recording/conftest.py.

To use pytest:
    pip install pytest
    pytest tests/storage/
"""

import tempfile
from pathlib import Path

import pytest

from recording.implementations.mock_runner import MockRunner
from storage.segment_store import SegmentStore


# =============================================================================
# STORE FIXTURES
# =============================================================================


@pytest.fixture
def mock_runner():
    """Provide a MockRunner whose concat pass succeeds"""
    return MockRunner()


@pytest.fixture
def segment_store(mock_runner):
    """
    Provide a SegmentStore backed by the mock runner.

    Usage:
        def test_finalize(segment_store, segment_files):
            segment_store.finalize(segment_files, output)
    """
    return SegmentStore(mock_runner, timeout=1.0)


# =============================================================================
# FILE FIXTURES
# =============================================================================


@pytest.fixture
def temp_storage_dir():
    """
    Provide a temporary directory for storage tests.

    Automatically cleaned up after test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def output_path(temp_storage_dir):
    return temp_storage_dir / "FancyCapture_2025-01-15T14-30-22-123.mp4"


@pytest.fixture
def segment_files(output_path):
    """
    Provide three segment files named after output_path.

    Usage:
        def test_segments(segment_files):
            assert len(segment_files) == 3
    """
    segments = []
    for index in range(3):
        path = output_path.with_name(f"{output_path.stem}_seg{index}.mp4")
        path.write_bytes(f"segment {index}".encode())
        segments.append(path)
    return segments
