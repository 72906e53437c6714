"""
Tests for poll session state and metrics.
"""

from collections import Counter, deque
from dataclasses import fields
from typing import get_type_hints

import pytest

from task_poller.exceptions import PollStateError, TaskCancelledError
from task_poller.metrics import PollerMetrics
from task_poller.session import PollSession, PollState, TaskStatus


class TestPollSession:
    """Test the poll session state machine."""

    def test_happy_path(self):
        session = PollSession(manager="default")

        session.transition(PollState.AWAITING_INITIAL)
        session.transition(PollState.POLLING)
        session.transition(PollState.SUCCEEDED)

        assert session.state.is_terminal
        assert session.finished_at is not None
        assert session.duration_seconds >= 0

    def test_terminal_states_are_final(self):
        session = PollSession(manager="default")
        session.transition(PollState.AWAITING_INITIAL)
        session.transition(PollState.FAILED)

        with pytest.raises(PollStateError):
            session.transition(PollState.POLLING)

    def test_cannot_skip_initial_request(self):
        session = PollSession(manager="default")

        with pytest.raises(PollStateError):
            session.transition(PollState.POLLING)

    def test_fail_records_error_kind_once(self):
        session = PollSession(manager="default")

        session.fail(TaskCancelledError())
        session.fail(ValueError("later"))

        assert session.state == PollState.FAILED
        assert session.error_kind == "TaskCancelledError"

    def test_status_values(self):
        assert TaskStatus.SUCCESS == "SUCCESS"
        assert TaskStatus.FAIL == "FAIL"
        assert TaskStatus.PENDING.value == "PENDING"

    def test_session_fields(self):
        names = [f.name for f in fields(PollSession)]

        assert names == [
            "manager",
            "session_id",
            "state",
            "attempt",
            "task_id",
            "error_kind",
            "started_at",
            "finished_at",
        ]


class TestPollerMetrics:
    """Test metrics bookkeeping."""

    def test_unfinished_sessions_are_ignored(self):
        metrics = PollerMetrics()
        metrics.record_started()

        metrics.record_finished(PollSession(manager="default"))

        assert metrics.sessions_in_flight == 1
        assert metrics.get_summary()["avg_session_seconds"] == 0.0

    def test_history_is_bounded(self):
        metrics = PollerMetrics(max_history=2)
        for _ in range(3):
            session = PollSession(manager="default")
            session.fail(RuntimeError())
            metrics.record_started()
            metrics.record_finished(session)

        assert len(metrics.recent_durations) == 2
        assert metrics.failures_by_kind == {"RuntimeError": 3}

    def test_field_annotations(self):
        hints = get_type_hints(PollerMetrics)

        assert hints["failures_by_kind"] == Counter[str]
        assert hints["recent_durations"] == deque[float]
