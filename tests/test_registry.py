"""
Tests for the named manager registry.

Covers lazy creation, replacement and removal semantics, configuration from
settings, and manager sharing between pollers.
"""

import asyncio
import threading
from unittest.mock import AsyncMock

import pytest

from task_poller.config import Settings
from task_poller.exceptions import LimiterExhaustedError
from task_poller.limiter import ConcurrentLimiter
from task_poller.poller import TaskPoller
from task_poller.registry import (
    ManagerRegistry,
    get_default_registry,
    reset_default_registry,
)


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Wait until ``predicate`` returns True."""

    async def _wait() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_wait(), timeout)


class TestManagerRegistry:
    """Test registry lookups and mutations."""

    def setup_method(self):
        """Set up test fixtures."""
        self.registry = ManagerRegistry()

    def test_get_or_create_builds_default_manager(self):
        limiter = self.registry.get_or_create("api")

        assert isinstance(limiter, ConcurrentLimiter)
        assert limiter.max_concurrent == 1
        assert limiter.max_tasks == 0
        assert "api" in self.registry
        assert self.registry.get_or_create("api") is limiter

    def test_get_does_not_create(self):
        assert self.registry.get("missing") is None
        assert len(self.registry) == 0

    def test_init_replaces_mapping(self):
        original = self.registry.get_or_create("queue")

        replacement = self.registry.init("queue", concurrency=10, max_tasks=100)

        assert replacement is not original
        assert self.registry.get_or_create("queue") is replacement
        assert replacement.max_concurrent == 10
        assert replacement.max_tasks == 100

    def test_remove_and_clear(self):
        self.registry.init("api", 5)
        self.registry.init("queue", 10, 100)

        self.registry.remove("api")
        self.registry.remove("never-registered")

        assert self.registry.names() == ["queue"]

        self.registry.clear()

        assert self.registry.names() == []
        assert len(self.registry) == 0

    def test_custom_default_concurrency(self):
        registry = ManagerRegistry(default_concurrency=4)

        assert registry.get_or_create().max_concurrent == 4

    def test_from_settings(self, mock_settings: Settings):
        registry = ManagerRegistry.from_settings(mock_settings)

        assert registry.names() == ["api", "queue"]
        assert registry.get("api").max_concurrent == 5
        assert registry.get("queue").max_concurrent == 10
        assert registry.get("queue").max_tasks == 100

    def test_configure_adds_missing_managers_only(self, mock_settings: Settings):
        existing = self.registry.init("api", concurrency=2)

        assert self.registry.configure(mock_settings) is self.registry

        assert self.registry.names() == ["api", "queue"]
        assert self.registry.get("api") is existing
        assert self.registry.get("queue").max_tasks == 100

    def test_concurrent_lookups_share_one_limiter(self):
        results = []

        def lookup():
            results.append(self.registry.get_or_create("shared"))

        threads = [threading.Thread(target=lookup) for _ in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len({id(limiter) for limiter in results}) == 1


class TestDefaultRegistry:
    """Test the process-wide registry helpers."""

    def test_default_registry_is_shared(self):
        assert get_default_registry() is get_default_registry()

    def test_reset_drops_managers(self):
        get_default_registry().init("api", 3)

        reset_default_registry()

        assert "api" not in get_default_registry()


class TestManagerSharing:
    """Manager admission shared between pollers."""

    @pytest.mark.asyncio
    async def test_in_flight_work_survives_replacement(self, registry):
        """Replacing a manager does not disturb sessions already admitted."""
        old = registry.init("api", concurrency=1)
        poller = TaskPoller(
            interval=0, max_attempts=1, manager="api", registry=registry
        )
        initial = asyncio.get_running_loop().create_future()

        task = asyncio.create_task(
            poller.poll(lambda: initial, AsyncMock(return_value={"status": "SUCCESS"}))
        )
        await wait_until(lambda: old.active == 1)

        new = registry.init("api", concurrency=1)
        registry.remove("api")
        initial.set_result({"id": "t"})

        assert await task == {"status": "SUCCESS"}
        assert old.active == 0
        assert new.active == 0
        assert new.submitted == 0

    @pytest.mark.asyncio
    async def test_same_manager_pollers_contend(self, registry):
        """Two pollers on one manager share its single slot."""
        shared = registry.init("api", concurrency=1)
        registry.init("other", concurrency=1)
        first = TaskPoller(
            interval=0, max_attempts=1, manager="api", registry=registry
        )
        second = TaskPoller(
            interval=0, max_attempts=1, manager="api", registry=registry
        )
        third = TaskPoller(
            interval=0, max_attempts=1, manager="other", registry=registry
        )

        loop = asyncio.get_running_loop()
        blocking_initial = loop.create_future()
        second_initial = AsyncMock(return_value={})
        status_request = AsyncMock(return_value={"status": "SUCCESS"})

        first_task = asyncio.create_task(
            first.poll(lambda: blocking_initial, status_request)
        )
        await wait_until(lambda: shared.active == 1)
        second_task = asyncio.create_task(second.poll(second_initial, status_request))
        await wait_until(lambda: shared.pending == 1)

        # A poller on another manager is not held back
        assert await third.poll(AsyncMock(return_value={}), status_request) == {
            "status": "SUCCESS"
        }
        second_initial.assert_not_called()

        blocking_initial.set_result({})
        await asyncio.gather(first_task, second_task)

        second_initial.assert_awaited_once()
        assert shared.active == 0

    @pytest.mark.asyncio
    async def test_manager_lifetime_cap_rejects_sessions(self, registry):
        registry.init("batch", concurrency=2, max_tasks=1)
        poller = TaskPoller(interval=0, max_attempts=1, registry=registry)
        poller.set_manager("batch")
        status_request = AsyncMock(return_value={"status": "SUCCESS"})

        await poller.poll(AsyncMock(return_value={}), status_request)

        second_initial = AsyncMock()
        with pytest.raises(LimiterExhaustedError) as exc_info:
            await poller.poll(second_initial, status_request)

        assert exc_info.value.code == "LIMITER_EXHAUSTED"
        second_initial.assert_not_called()
        assert poller.metrics.failures_by_kind["LimiterExhaustedError"] == 1

    @pytest.mark.asyncio
    async def test_manager_switch_applies_to_later_polls(self, registry):
        api = registry.init("api", concurrency=1)
        queue = registry.init("queue", concurrency=1)
        poller = TaskPoller(
            interval=0, max_attempts=1, manager="api", registry=registry
        )
        status_request = AsyncMock(return_value={"status": "SUCCESS"})

        await poller.poll(AsyncMock(return_value={}), status_request)
        poller.set_manager("queue")
        await poller.poll(AsyncMock(return_value={}), status_request)

        assert api.submitted == 1
        assert queue.submitted == 1
