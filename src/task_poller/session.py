"""
Poll session state for the task poller.

Each ``poll()`` call owns one ``PollSession`` that moves through
NOT_STARTED -> AWAITING_INITIAL -> POLLING -> SUCCEEDED | FAILED.
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .exceptions import PollStateError


class TaskStatus(str, Enum):
    """Status values with special meaning to the poller."""

    SUCCESS = "SUCCESS"
    FAIL = "FAIL"
    PENDING = "PENDING"


class PollState(str, Enum):
    """Lifecycle states of a poll session."""

    NOT_STARTED = "not_started"
    AWAITING_INITIAL = "awaiting_initial"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PollState.SUCCEEDED, PollState.FAILED)


_TRANSITIONS: dict[PollState, set[PollState]] = {
    PollState.NOT_STARTED: {PollState.AWAITING_INITIAL, PollState.FAILED},
    PollState.AWAITING_INITIAL: {PollState.POLLING, PollState.FAILED},
    PollState.POLLING: {PollState.SUCCEEDED, PollState.FAILED},
    PollState.SUCCEEDED: set(),
    PollState.FAILED: set(),
}


@dataclass
class PollSession:
    """State of a single poll() call."""

    manager: str
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: PollState = PollState.NOT_STARTED
    attempt: int = 0
    task_id: Any = None
    error_kind: str | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None

    def transition(self, new_state: PollState) -> None:
        """Move to ``new_state``, rejecting transitions the lifecycle forbids."""
        if new_state not in _TRANSITIONS[self.state]:
            raise PollStateError(
                f"Cannot move poll session from {self.state.value} "
                f"to {new_state.value}",
                context={"session_id": self.session_id},
            )
        self.state = new_state
        if new_state.is_terminal:
            self.finished_at = datetime.now(UTC)

    def fail(self, error: BaseException) -> None:
        """Record a terminal failure unless the session already finished."""
        if self.state.is_terminal:
            return
        self.error_kind = type(error).__name__
        self.transition(PollState.FAILED)

    @property
    def duration_seconds(self) -> float:
        """Get session duration in seconds."""
        end = self.finished_at or datetime.now(UTC)
        return (end - self.started_at).total_seconds()
