"""Pytest configuration and fixtures."""

import sys
import threading
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for ccloud_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from ccloud_mock import FakeClock, MockApiKeys, MockControlPlane, make_session  # noqa: E402


@pytest.fixture
def control_plane() -> MockControlPlane:
    return MockControlPlane()


@pytest.fixture
def api_keys() -> MockApiKeys:
    return MockApiKeys()


@pytest.fixture
def session(control_plane: MockControlPlane, api_keys: MockApiKeys):
    return make_session(control_plane, api_keys)


@pytest.fixture
def cancel() -> threading.Event:
    return threading.Event()


@pytest.fixture
def clock(cancel: threading.Event) -> FakeClock:
    return FakeClock(cancel=cancel)
