"""
Metrics collection for task pollers.

Each poller keeps in-memory counters of its sessions and status attempts,
useful for health checks and tests.
"""

from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any

from .session import PollSession, PollState


@dataclass
class PollerMetrics:
    """Counters for one poller's sessions."""

    max_history: int = 100
    sessions_started: int = 0
    sessions_succeeded: int = 0
    sessions_failed: int = 0
    initial_requests: int = 0
    status_requests: int = 0
    failures_by_kind: Counter[str] = field(default_factory=Counter)
    recent_durations: deque[float] = field(init=False)

    def __post_init__(self) -> None:
        self.recent_durations = deque(maxlen=self.max_history)

    def record_started(self) -> None:
        self.sessions_started += 1

    def record_initial_request(self) -> None:
        self.initial_requests += 1

    def record_status_request(self) -> None:
        self.status_requests += 1

    def record_finished(self, session: PollSession) -> None:
        """Record a session that reached a terminal state."""
        if session.state == PollState.SUCCEEDED:
            self.sessions_succeeded += 1
        elif session.state == PollState.FAILED:
            self.sessions_failed += 1
            self.failures_by_kind[session.error_kind or "unknown"] += 1
        else:
            return
        self.recent_durations.append(session.duration_seconds)

    @property
    def sessions_in_flight(self) -> int:
        return self.sessions_started - self.sessions_succeeded - self.sessions_failed

    def get_summary(self) -> dict[str, Any]:
        """Get a summary of the collected metrics."""
        durations = self.recent_durations
        return {
            "sessions_started": self.sessions_started,
            "sessions_succeeded": self.sessions_succeeded,
            "sessions_failed": self.sessions_failed,
            "sessions_in_flight": self.sessions_in_flight,
            "initial_requests": self.initial_requests,
            "status_requests": self.status_requests,
            "failures_by_kind": dict(self.failures_by_kind),
            "avg_session_seconds": (
                sum(durations) / len(durations) if durations else 0.0
            ),
        }
