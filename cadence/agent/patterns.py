"""Cross-session engagement patterns derived from session history."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from cadence.project.models import Task
from cadence.session.models import (
    ExecutionSupportData,
    Session,
    SessionStatus,
    SessionSummary,
)

RETURN_THRESHOLD_DAYS = 14
TREND_MIN_SESSIONS = 4
INCREASING_RATIO = 0.7
DECREASING_RATIO = 1.4

_SECONDS_PER_DAY = 86400


class EngagementTrend(str, Enum):
    INCREASING = "increasing"
    STABLE = "stable"
    DECREASING = "decreasing"


@dataclass
class CrossSessionPatterns:
    days_since_last_session: int | None = None
    average_session_gap: float | None = None
    completed_session_count: int = 0
    is_return: bool = False
    engagement_trend: EngagementTrend | None = None
    frequently_deferred_task_names: list[str] = field(default_factory=list)
    deferral_count: int = 0


def _ended_at(session: Session) -> datetime:
    return session.completed_at or session.last_active_at


def _average(values: list[float]) -> float | None:
    return sum(values) / len(values) if values else None


def _is_task_id(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def compute_patterns(
    sessions: list[Session],
    summaries: list[SessionSummary],
    frequently_deferred_tasks: list[Task],
    now: datetime,
    tasks: list[Task] | None = None,
) -> CrossSessionPatterns:
    """
    Summarise how the user has been engaging with a project.

    Only terminal sessions (completed or auto-summarised) count. Pure: the
    result depends only on the arguments.

    Args:
        sessions: All sessions of the project.
        summaries: Their summaries.
        frequently_deferred_tasks: Tasks deferred repeatedly.
        now: Reference time for recency.
        tasks: Project tasks, used to turn task ids recorded in summaries
            into names. Ids that match no task are left out.

    Returns:
        CrossSessionPatterns for the context block.
    """
    counted = sorted(
        (s for s in sessions if s.status in (SessionStatus.COMPLETED, SessionStatus.AUTO_SUMMARISED)),
        key=_ended_at,
    )

    days_since_last = None
    if counted:
        elapsed = (now - _ended_at(counted[-1])).total_seconds()
        days_since_last = max(0, int(elapsed // _SECONDS_PER_DAY))

    gaps = [
        (_ended_at(b) - _ended_at(a)).total_seconds() / _SECONDS_PER_DAY
        for a, b in zip(counted, counted[1:])
    ]

    trend = None
    if len(counted) >= TREND_MIN_SESSIONS:
        mid = len(gaps) // 2
        older, newer = _average(gaps[:mid]), _average(gaps[mid:])
        if older and newer is not None:
            ratio = newer / older
            if ratio < INCREASING_RATIO:
                trend = EngagementTrend.INCREASING
            elif ratio > DECREASING_RATIO:
                trend = EngagementTrend.DECREASING
            else:
                trend = EngagementTrend.STABLE
        else:
            trend = EngagementTrend.STABLE

    names_by_id = {t.id: t.name for t in [*(tasks or []), *frequently_deferred_tasks]}
    deferred_names: list[str] = []
    for summary in summaries:
        if not isinstance(summary.mode_specific, ExecutionSupportData):
            continue
        for entry in summary.mode_specific.tasks_deferred:
            name = names_by_id.get(entry)
            if name is None and _is_task_id(entry):
                continue
            deferred_names.append(name or entry)
    deferred_names.extend(t.name for t in frequently_deferred_tasks)

    return CrossSessionPatterns(
        days_since_last_session=days_since_last,
        average_session_gap=_average(gaps),
        completed_session_count=len(counted),
        is_return=days_since_last is not None and days_since_last >= RETURN_THRESHOLD_DAYS,
        engagement_trend=trend,
        frequently_deferred_task_names=list(dict.fromkeys(deferred_names)),
        deferral_count=len(frequently_deferred_tasks),
    )
