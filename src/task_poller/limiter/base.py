"""
Admission gate abstraction for the task poller.

A limiter admits zero-argument units of work and forwards each unit's
result or exception unchanged to the submitter.
"""

import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

T = TypeVar("T")

Unit = Callable[[], Awaitable[T] | T]


async def resolve(value: Any) -> Any:
    """Await ``value`` if it is awaitable, otherwise return it as is."""
    if inspect.isawaitable(value):
        return await value
    return value


class ConcurrencyLimiter(ABC):
    """Abstract base class for admission gates."""

    @abstractmethod
    async def submit(self, unit: Unit[T]) -> T:
        """
        Run ``unit`` once the gate admits it.

        Args:
            unit: Zero-argument callable returning an awaitable (or a value)

        Returns:
            Whatever the unit produced
        """
        pass

    @property
    @abstractmethod
    def active(self) -> int:
        """Number of units currently holding a slot."""
        pass

    @property
    @abstractmethod
    def pending(self) -> int:
        """Number of units waiting for a slot."""
        pass

    def get_stats(self) -> dict[str, Any]:
        """Get limiter statistics."""
        return {
            "active": self.active,
            "pending": self.pending,
        }
