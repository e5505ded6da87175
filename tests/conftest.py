"""Shared fixtures for the flightguard suite.

Tests import from ``src/`` directly so a stale installed copy never wins.
Every non-integration test runs under a timeout: a guard that never releases
its key shows up as a hang, not a pass.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

UNIT_TEST_TIMEOUT_SECONDS = 30


def pytest_configure() -> None:
    src_path = str(Path(__file__).resolve().parents[1] / "src")
    if src_path not in sys.path:
        sys.path.insert(0, src_path)


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if item.get_closest_marker("integration") is None:
            item.add_marker(pytest.mark.timeout(UNIT_TEST_TIMEOUT_SECONDS))


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def guard():
    """A guard over a fresh registry, emptied again after the test."""

    # imported here so pytest_configure has already put src/ on sys.path
    from flightguard.core.operations import FlightRegistry, SingleFlightGuard

    registry = FlightRegistry()
    yield SingleFlightGuard(registry)
    registry.clear()
