"""
Pytest configuration and shared fixtures for cjcatalog tests.

This module provides common fixtures that can be used across all test
modules in the project.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from tests.fakes import FakeClock, FakeSession, FakeSessionManager

# Keep a developer's real key out of the test run
os.environ.pop("CJ_API_KEY", None)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to the temporary directory.
    """
    with tempfile.TemporaryDirectory() as temp_path:
        yield Path(temp_path)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def session_manager(fake_session: FakeSession) -> FakeSessionManager:
    return FakeSessionManager(fake_session)
