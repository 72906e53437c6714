"""
Task poller for submit-then-poll remote tasks.

This module drives a remote task from its initial request to a terminal
status. The initial request runs under a named manager shared between
pollers; status requests run under the poller's own rate-limited gate.
"""

import asyncio
import json
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any, TypedDict

import structlog

from .exceptions import (
    ConfigurationError,
    InvalidStatusError,
    TaskCancelledError,
    TaskFailedError,
    TaskMaxAttemptsError,
)
from .limiter import RateLimitedLimiter
from .limiter.base import resolve
from .metrics import PollerMetrics
from .registry import DEFAULT_MANAGER, ManagerRegistry, get_default_registry
from .response import normalize_response
from .session import PollSession, PollState, TaskStatus

if TYPE_CHECKING:
    from .config import Settings

logger = structlog.get_logger(__name__)


class ExtractedTask(TypedDict, total=False):
    """Task-identifying data produced by the extractor hook."""

    taskId: Any
    extraData: dict[str, Any]


class StatusResult(TypedDict, total=False):
    """Status record produced by the checker hook."""

    status: str
    result: Any


ExtractorHook = Callable[[Any, bool], ExtractedTask | Awaitable[ExtractedTask]]
CheckerHook = Callable[[Any, bool], StatusResult | Awaitable[StatusResult]]
InitialRequest = Callable[[], Awaitable[Any]]
StatusRequest = Callable[[Any], Awaitable[Any]]
SuccessHandler = Callable[[Any], Any]


def default_status_data_extractor(response: Any, cancelled: bool) -> ExtractedTask:
    """
    Extract the task id from an initial response.

    Args:
        response: Response returned by the initial request
        cancelled: Current cancellation flag of the poller

    Returns:
        ``taskId`` from the ``id`` field and the whole body as ``extraData``

    Raises:
        TaskCancelledError: If the poller was cancelled
    """
    if cancelled:
        raise TaskCancelledError()

    data = normalize_response(response)
    return {"taskId": data.get("id"), "extraData": data}


def default_status_checker(response: Any, cancelled: bool) -> StatusResult:
    """
    Read the task status from a status response.

    Args:
        response: Response returned by the status request
        cancelled: Current cancellation flag of the poller

    Returns:
        ``status`` from the body (``PENDING`` if absent) and the body as ``result``

    Raises:
        TaskCancelledError: If the poller was cancelled
    """
    if cancelled:
        raise TaskCancelledError()

    data = normalize_response(response)
    status = data.get("status")
    if status is None:
        status = TaskStatus.PENDING.value
    return {"status": status, "result": data}


def _serialize_result(result: Any) -> str:
    return json.dumps(result, default=str)


class TaskPoller:
    """
    Poller for long-running remote tasks.

    A poller is created once and reused for many ``poll()`` calls. Hooks and
    the manager name are read when ``poll()`` starts, so changing them only
    affects later calls. Cancellation is cooperative: ``cancel()`` sets a
    flag that is passed to every subsequent hook invocation, and the default
    hooks refuse to proceed once it is set.
    """

    def __init__(
        self,
        concurrency: int = 1,
        interval: float = 1000,
        max_attempts: int = 100,
        status_checker: CheckerHook | None = None,
        *,
        manager: str = DEFAULT_MANAGER,
        registry: ManagerRegistry | None = None,
    ):
        """
        Initialize the poller.

        Args:
            concurrency: Maximum concurrent status requests of this poller
            interval: Minimum spacing between status request starts, in ms
            max_attempts: Maximum status requests per poll session
            status_checker: Checker hook, defaults to ``default_status_checker``
            manager: Name of the manager gating initial requests
            registry: Manager registry, defaults to the process-wide registry
        """
        if max_attempts < 1:
            raise ConfigurationError(
                f"max_attempts must be at least 1, got {max_attempts}",
                context={"max_attempts": max_attempts},
            )

        self.concurrency = concurrency
        self.interval = interval
        self.max_attempts = max_attempts
        self.limiter = RateLimitedLimiter(concurrency, interval)
        self.registry = registry if registry is not None else get_default_registry()
        self.metrics = PollerMetrics()

        self._status_checker: CheckerHook = status_checker or default_status_checker
        self._status_data_extractor: ExtractorHook = default_status_data_extractor
        self._manager = manager
        self._cancelled = False

    @classmethod
    def from_settings(
        cls, settings: "Settings", registry: ManagerRegistry | None = None
    ) -> "TaskPoller":
        """
        Create a poller from application settings.

        Without an explicit registry, the configured managers are registered
        in the process-wide registry before it is used.
        """
        if registry is None:
            registry = get_default_registry().configure(settings)

        config = settings.poller_config
        return cls(
            concurrency=config.concurrency,
            interval=config.interval_ms,
            max_attempts=config.max_attempts,
            manager=config.manager,
            registry=registry,
        )

    @property
    def manager(self) -> str:
        return self._manager

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def set_status_data_extractor(self, extractor: ExtractorHook) -> "TaskPoller":
        self._status_data_extractor = extractor
        return self

    def set_status_checker(self, checker: CheckerHook) -> "TaskPoller":
        self._status_checker = checker
        return self

    def set_manager(self, name: str) -> "TaskPoller":
        self._manager = name
        return self

    def cancel(self) -> None:
        """
        Request cooperative cancellation.

        In-flight requests and queued admissions are left alone; the next
        hook that honors the flag stops the session.
        """
        if not self._cancelled:
            logger.info("Poller cancelled", manager=self._manager)
        self._cancelled = True

    def reset(self) -> None:
        """Clear the cancellation flag so the poller can be reused."""
        self._cancelled = False

    async def poll(
        self,
        initial_request: InitialRequest,
        status_request: StatusRequest,
        success_handler: SuccessHandler | None = None,
    ) -> Any:
        """
        Start a remote task and poll it until it reaches a terminal status.

        Args:
            initial_request: Starts the task and returns its response
            status_request: Fetches the task status given the extracted data
            success_handler: Optional transform applied to the success result

        Returns:
            The checker's ``result`` for the successful status, passed through
            ``success_handler`` when given

        Raises:
            TaskCancelledError: If the poller is or becomes cancelled
            TaskFailedError: If the task reported ``FAIL``
            TaskMaxAttemptsError: If no terminal status arrived in time
            InvalidStatusError: If the checker returned no ``status``
        """
        session = PollSession(manager=self._manager)
        extractor = self._status_data_extractor
        checker = self._status_checker
        log = logger.bind(session_id=session.session_id, manager=session.manager)

        if self._cancelled:
            error = TaskCancelledError(context={"session_id": session.session_id})
            session.fail(error)
            log.info("Polling cancelled before start")
            raise error

        self.metrics.record_started()
        manager_limiter = self.registry.get_or_create(session.manager)
        session.transition(PollState.AWAITING_INITIAL)

        try:
            result = await manager_limiter.submit(
                lambda: self._run_session(
                    session,
                    initial_request,
                    status_request,
                    success_handler,
                    extractor,
                    checker,
                    log,
                )
            )
        except (Exception, asyncio.CancelledError) as e:
            session.fail(e)
            self._log_failure(log, session, e)
            raise
        finally:
            self.metrics.record_finished(session)

        log.info(
            "Polling succeeded",
            task_id=session.task_id,
            attempts=session.attempt + 1,
            duration_seconds=session.duration_seconds,
        )
        return result

    async def _run_session(
        self,
        session: PollSession,
        initial_request: InitialRequest,
        status_request: StatusRequest,
        success_handler: SuccessHandler | None,
        extractor: ExtractorHook,
        checker: CheckerHook,
        log: Any,
    ) -> Any:
        self.metrics.record_initial_request()
        response = await resolve(initial_request())
        extracted = await resolve(extractor(response, self._cancelled))

        if isinstance(extracted, Mapping):
            session.task_id = extracted.get("taskId")
        session.transition(PollState.POLLING)
        log.debug("Task started", task_id=session.task_id)

        result = await self._poll_status(
            session, extracted, status_request, success_handler, checker, log
        )
        session.transition(PollState.SUCCEEDED)
        return result

    async def _poll_status(
        self,
        session: PollSession,
        data: Any,
        status_request: StatusRequest,
        success_handler: SuccessHandler | None,
        checker: CheckerHook,
        log: Any,
    ) -> Any:
        """Submit status requests one at a time until a terminal status."""
        attempt = 0
        while True:
            session.attempt = attempt
            if attempt >= self.max_attempts:
                raise TaskMaxAttemptsError(
                    f"Max attempts reached ({self.max_attempts})",
                    attempts=attempt,
                    context={"task_id": session.task_id},
                )

            self.metrics.record_status_request()
            response = await self.limiter.submit(lambda: status_request(data))
            status = await resolve(checker(response, self._cancelled))

            if not isinstance(status, Mapping) or status.get("status") is None:
                raise InvalidStatusError(
                    context={"task_id": session.task_id, "attempt": attempt}
                )

            value = status["status"]
            result = status.get("result")
            log.debug("Status checked", attempt=attempt, status=value)

            if value == TaskStatus.SUCCESS:
                if success_handler is not None:
                    return await resolve(success_handler(result))
                return result

            if value == TaskStatus.FAIL:
                raise TaskFailedError(
                    _serialize_result(result),
                    result=result,
                    context={"task_id": session.task_id, "attempt": attempt},
                )

            attempt += 1

    def _log_failure(
        self, log: Any, session: PollSession, error: BaseException
    ) -> None:
        fields = {
            "task_id": session.task_id,
            "attempt": session.attempt,
            "error_kind": session.error_kind,
        }
        if isinstance(error, TaskCancelledError | asyncio.CancelledError):
            log.info("Polling cancelled", **fields)
        elif isinstance(error, TaskFailedError | TaskMaxAttemptsError):
            log.warning("Polling failed", error=str(error), **fields)
        else:
            log.error("Polling raised an error", error=str(error), **fields)
