"""
Task Poller

Asynchronous polling of long-running remote tasks that follow a
submit-then-poll pattern, with shared and per-poller admission control.
"""

__version__ = "0.1.0"

from .config import Settings, get_settings
from .exceptions import (
    ConfigurationError,
    InvalidStatusError,
    LimiterExhaustedError,
    TaskCancelledError,
    TaskFailedError,
    TaskMaxAttemptsError,
    TaskPollerError,
)
from .limiter import ConcurrencyLimiter, ConcurrentLimiter, RateLimitedLimiter
from .poller import TaskPoller
from .registry import ManagerRegistry, get_default_registry, reset_default_registry
from .session import PollState, TaskStatus

__all__ = [
    "Settings",
    "get_settings",
    "TaskPoller",
    "ManagerRegistry",
    "get_default_registry",
    "reset_default_registry",
    "ConcurrencyLimiter",
    "ConcurrentLimiter",
    "RateLimitedLimiter",
    "PollState",
    "TaskStatus",
    "TaskPollerError",
    "TaskCancelledError",
    "TaskFailedError",
    "TaskMaxAttemptsError",
    "InvalidStatusError",
    "LimiterExhaustedError",
    "ConfigurationError",
]
