"""
Global pytest fixtures for the cloudasset test suite.
"""
import os

import pytest

# Set test environment BEFORE any cloudasset imports
os.environ["TESTING"] = "true"

from tests.utils import FakeClock, InMemoryPublisher  # noqa: E402


@pytest.fixture
def publisher() -> InMemoryPublisher:
    return InMemoryPublisher()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
