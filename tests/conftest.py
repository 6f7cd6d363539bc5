"""Shared test fixtures and utilities for pytest."""

import pytest
from fastapi.testclient import TestClient

from tests.test_util import MONDAY_MORNING


@pytest.fixture
def client(monkeypatch):
    """TestClient over the service with a pinned clock and no API key."""
    # pylint: disable=import-outside-toplevel
    from habit_schedule import main as main_module

    monkeypatch.delenv("API_KEY", raising=False)
    monkeypatch.setattr(main_module, "clock", MONDAY_MORNING)
    return TestClient(main_module.app)
