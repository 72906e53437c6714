"""
Named manager registry for the task poller.

A manager is a shared ``ConcurrentLimiter`` that bounds how many initial
requests run at once across every poller configured with the same name.
Replacing or removing an entry only affects later lookups; pollers that
already captured a limiter keep using it until their work completes.
"""

import threading
from typing import TYPE_CHECKING

import structlog

from .limiter import ConcurrentLimiter

if TYPE_CHECKING:
    from .config import Settings

logger = structlog.get_logger(__name__)

DEFAULT_MANAGER = "default"


class ManagerRegistry:
    """Thread-safe mapping of manager names to shared limiters."""

    def __init__(self, default_concurrency: int = 1) -> None:
        """
        Initialize an empty registry.

        Args:
            default_concurrency: Width of lazily created managers
        """
        self.default_concurrency = default_concurrency
        self._managers: dict[str, ConcurrentLimiter] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ManagerRegistry":
        """Create a registry with every configured manager initialized."""
        registry = cls()
        for config in settings.manager_configs:
            registry.init(config.name, config.concurrency, config.max_tasks)
        return registry

    def configure(self, settings: "Settings") -> "ManagerRegistry":
        """
        Register the configured managers that are not registered yet.

        Managers already present are left alone, so limiters shared by
        running pollers are never replaced.

        Args:
            settings: Application settings

        Returns:
            This registry
        """
        for config in settings.manager_configs:
            with self._lock:
                if config.name in self._managers:
                    continue
                self._managers[config.name] = ConcurrentLimiter(
                    config.concurrency, config.max_tasks
                )

            logger.info(
                "Configured manager",
                manager=config.name,
                concurrency=config.concurrency,
                max_tasks=config.max_tasks,
            )
        return self

    def get_or_create(self, name: str = DEFAULT_MANAGER) -> ConcurrentLimiter:
        """
        Get a manager's limiter, creating a default one if missing.

        Args:
            name: Manager name

        Returns:
            The shared limiter registered under ``name``
        """
        with self._lock:
            limiter = self._managers.get(name)
            if limiter is None:
                limiter = ConcurrentLimiter(self.default_concurrency)
                self._managers[name] = limiter
                logger.debug(
                    "Created default manager",
                    manager=name,
                    concurrency=self.default_concurrency,
                )
            return limiter

    def get(self, name: str) -> ConcurrentLimiter | None:
        """Get a manager's limiter without creating it."""
        with self._lock:
            return self._managers.get(name)

    def init(
        self,
        name: str = DEFAULT_MANAGER,
        concurrency: int = 1,
        max_tasks: int = 0,
    ) -> ConcurrentLimiter:
        """
        Create or replace a manager.

        Args:
            name: Manager name
            concurrency: Maximum concurrent initial requests
            max_tasks: Lifetime admission cap (0 for unlimited)

        Returns:
            The newly registered limiter
        """
        limiter = ConcurrentLimiter(concurrency, max_tasks)
        with self._lock:
            replaced = name in self._managers
            self._managers[name] = limiter

        logger.info(
            "Initialized manager",
            manager=name,
            concurrency=concurrency,
            max_tasks=max_tasks,
            replaced=replaced,
        )
        return limiter

    def remove(self, name: str) -> None:
        """Remove a manager; unknown names are ignored."""
        with self._lock:
            removed = self._managers.pop(name, None)

        if removed is not None:
            logger.info("Removed manager", manager=name)

    def clear(self) -> None:
        """Remove every manager."""
        with self._lock:
            count = len(self._managers)
            self._managers.clear()

        logger.info("Cleared managers", count=count)

    def names(self) -> list[str]:
        """Get the registered manager names."""
        with self._lock:
            return sorted(self._managers)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._managers

    def __len__(self) -> int:
        with self._lock:
            return len(self._managers)


# Process-wide registry - initialized lazily on first use
_default_registry: ManagerRegistry | None = None
_default_registry_lock = threading.Lock()


def get_default_registry() -> ManagerRegistry:
    """Get the process-wide registry, creating it if necessary."""
    global _default_registry
    with _default_registry_lock:
        if _default_registry is None:
            _default_registry = ManagerRegistry()
        return _default_registry


def reset_default_registry() -> None:
    """Drop the process-wide registry (for testing)."""
    global _default_registry
    with _default_registry_lock:
        _default_registry = None
