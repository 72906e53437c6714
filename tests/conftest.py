"""
Pytest configuration and fixtures for task poller tests.
"""

from collections.abc import Callable
from typing import Any

import pytest

from task_poller.config import Settings
from task_poller.poller import TaskPoller
from task_poller.registry import ManagerRegistry, reset_default_registry


@pytest.fixture(autouse=True)
def clean_default_registry():
    """Give every test a fresh process-wide registry."""
    reset_default_registry()
    yield
    reset_default_registry()


@pytest.fixture
def mock_settings() -> Settings:
    """Mock settings for testing."""
    return Settings(
        concurrency=2,
        interval_ms=100,
        max_attempts=3,
        default_manager="api",
        manager_concurrency=5,
        managers="queue:10:100",
        log_level="DEBUG",
        log_format="console",
    )


@pytest.fixture
def registry() -> ManagerRegistry:
    """Fresh manager registry for testing."""
    return ManagerRegistry()


@pytest.fixture
def poller(registry: ManagerRegistry) -> TaskPoller:
    """Poller matching the reference scenarios."""
    return TaskPoller(concurrency=2, interval=100, max_attempts=3, registry=registry)


@pytest.fixture
def fast_poller(registry: ManagerRegistry) -> TaskPoller:
    """Poller without status request spacing."""
    return TaskPoller(concurrency=2, interval=0, max_attempts=3, registry=registry)


@pytest.fixture
def status_sequence() -> Callable[..., Callable[[Any, bool], dict[str, Any]]]:
    """Build a checker hook that replays the given status records in order."""

    def factory(*records: dict[str, Any]) -> Callable[[Any, bool], dict[str, Any]]:
        remaining = list(records)

        def checker(response: Any, cancelled: bool) -> dict[str, Any]:
            if len(remaining) > 1:
                return remaining.pop(0)
            return remaining[0]

        return checker

    return factory


@pytest.fixture
def sample_task_response() -> dict[str, Any]:
    """Sample initial response body for testing."""
    return {"id": "task-123", "status": "PENDING", "queue": "render"}
