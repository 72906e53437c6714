"""
Custom exceptions for the task poller.

This module defines the error taxonomy raised by limiters, the manager
registry and the polling state machine.
"""

from typing import Any


class TaskPollerError(Exception):
    """Base exception for task poller errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code or "TASK_POLLER_ERROR"
        self.context = context or {}


class TaskCancelledError(TaskPollerError):
    """Raised when polling observes the cooperative cancellation flag."""

    def __init__(
        self,
        message: str = "Polling cancelled",
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "TASK_CANCELLED", context)


class TaskFailedError(TaskPollerError):
    """Exception for tasks the status checker reported as failed."""

    def __init__(
        self,
        payload: str,
        result: Any = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(payload, "TASK_FAILED", context)
        self.payload = payload
        self.result = result


class TaskMaxAttemptsError(TaskPollerError):
    """Exception for sessions that ran out of status attempts."""

    def __init__(
        self,
        message: str = "Max attempts reached",
        attempts: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "MAX_ATTEMPTS", context)
        self.attempts = attempts


class InvalidStatusError(TaskPollerError):
    """Exception for status checker results without a status field."""

    def __init__(
        self,
        message: str = "Status field is required in response",
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "INVALID_STATUS", context)


class LimiterExhaustedError(TaskPollerError):
    """Exception for limiters that used up their lifetime admissions."""

    def __init__(
        self,
        message: str,
        max_tasks: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "LIMITER_EXHAUSTED", context)
        self.max_tasks = max_tasks


class ConfigurationError(TaskPollerError):
    """Exception for configuration related errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "CONFIGURATION_ERROR", context)


class PollStateError(TaskPollerError):
    """Exception for illegal poll session state transitions."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "POLL_STATE_ERROR", context)
