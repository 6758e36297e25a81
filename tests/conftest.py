"""Shared fixtures for the pydirsync test suite."""

import tempfile
from pathlib import Path

import pytest


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def endpoints(temp_dir):
    """Create the "path" (A) and "destination" (B) endpoint directories."""
    a = temp_dir / "A"
    b = temp_dir / "B"
    a.mkdir()
    b.mkdir()
    return a, b
