"""Tests for cross-session pattern computation."""

from datetime import datetime, timedelta, timezone

from cadence.agent.patterns import EngagementTrend, compute_patterns
from cadence.project.models import Task
from cadence.session.models import (
    ExecutionSupportData,
    Session,
    SessionCompletionStatus,
    SessionMode,
    SessionStatus,
    SessionSummary,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _done(days_ago: float, status=SessionStatus.COMPLETED) -> Session:
    ended = NOW - timedelta(days=days_ago)
    return Session(
        project_id="p",
        mode=SessionMode.EXECUTION_SUPPORT,
        status=status,
        created_at=ended - timedelta(hours=1),
        last_active_at=ended,
        completed_at=ended,
    )


def _summary(deferred: list[str]) -> SessionSummary:
    return SessionSummary(
        session_id="s",
        mode=SessionMode.EXECUTION_SUPPORT,
        completion_status=SessionCompletionStatus.COMPLETED,
        started_at=NOW,
        ended_at=NOW,
        message_count=2,
        mode_specific=ExecutionSupportData(tasks_deferred=deferred),
    )


class TestRecency:
    def test_no_sessions(self):
        p = compute_patterns([], [], [], NOW)
        assert p.days_since_last_session is None
        assert p.average_session_gap is None
        assert p.completed_session_count == 0
        assert p.is_return is False
        assert p.engagement_trend is None

    def test_only_terminal_sessions_count(self):
        active = Session(project_id="p", mode=SessionMode.PLANNING, created_at=NOW)
        paused = _done(1, status=SessionStatus.PAUSED)
        p = compute_patterns([active, paused, _done(3)], [], [], NOW)
        assert p.completed_session_count == 1
        assert p.days_since_last_session == 3

    def test_auto_summarised_counts(self):
        p = compute_patterns([_done(2, status=SessionStatus.AUTO_SUMMARISED)], [], [], NOW)
        assert p.completed_session_count == 1

    def test_days_are_floored(self):
        p = compute_patterns([_done(2.9)], [], [], NOW)
        assert p.days_since_last_session == 2

    def test_return_after_long_break(self):
        assert compute_patterns([_done(14)], [], [], NOW).is_return is True
        assert compute_patterns([_done(13.5)], [], [], NOW).is_return is False

    def test_average_gap(self):
        p = compute_patterns([_done(10), _done(6), _done(0)], [], [], NOW)
        assert p.average_session_gap == 5.0


class TestEngagementTrend:
    def test_needs_four_sessions(self):
        p = compute_patterns([_done(9), _done(6), _done(3)], [], [], NOW)
        assert p.engagement_trend is None

    def test_increasing_when_gaps_shrink(self):
        # gaps: 10, then 2 and 2
        sessions = [_done(14), _done(4), _done(2), _done(0)]
        assert compute_patterns(sessions, [], [], NOW).engagement_trend == EngagementTrend.INCREASING

    def test_decreasing_when_gaps_grow(self):
        # gaps: 1, then 5 and 5
        sessions = [_done(11), _done(10), _done(5), _done(0)]
        assert compute_patterns(sessions, [], [], NOW).engagement_trend == EngagementTrend.DECREASING

    def test_stable(self):
        sessions = [_done(9), _done(6), _done(3), _done(0)]
        assert compute_patterns(sessions, [], [], NOW).engagement_trend == EngagementTrend.STABLE

    def test_order_of_input_does_not_matter(self):
        sessions = [_done(0), _done(14), _done(2), _done(4)]
        assert compute_patterns(sessions, [], [], NOW).engagement_trend == EngagementTrend.INCREASING


class TestDeferrals:
    def test_names_from_summaries_and_tasks(self):
        tasks = [Task(milestone_id="m", name="Write tests", times_deferred=4)]
        summaries = [_summary(["Call printer"]), _summary(["Call printer", "Write tests"])]
        p = compute_patterns([], summaries, tasks, NOW)
        assert p.frequently_deferred_task_names == ["Call printer", "Write tests"]
        assert p.deferral_count == 1

    def test_task_ids_resolved_to_names(self):
        sand = Task(milestone_id="m", name="Sand the boards")
        p = compute_patterns([], [_summary([sand.id])], [], NOW, tasks=[sand])
        assert p.frequently_deferred_task_names == ["Sand the boards"]

    def test_unknown_task_ids_left_out(self):
        p = compute_patterns([], [_summary(["3f2b8c1e-6a1d-4c2e-9b0a-1d2e3f4a5b6c", "Call printer"])], [], NOW)
        assert p.frequently_deferred_task_names == ["Call printer"]

    def test_id_and_name_of_same_task_deduplicated(self):
        paint = Task(milestone_id="m", name="Paint", times_deferred=3)
        p = compute_patterns([], [_summary([paint.id])], [paint], NOW)
        assert p.frequently_deferred_task_names == ["Paint"]

    def test_is_pure(self):
        sessions = [_done(5), _done(1)]
        first = compute_patterns(sessions, [], [], NOW)
        assert compute_patterns(sessions, [], [], NOW) == first
