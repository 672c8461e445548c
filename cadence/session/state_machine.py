"""Fixed session status graph."""

from datetime import datetime, timedelta

from cadence.session.models import Session, SessionStatus

TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.ACTIVE: frozenset({SessionStatus.PAUSED, SessionStatus.COMPLETED}),
    SessionStatus.PAUSED: frozenset({
        SessionStatus.ACTIVE,
        SessionStatus.COMPLETED,
        SessionStatus.PENDING_AUTO_SUMMARY,
        SessionStatus.AUTO_SUMMARISED,
    }),
    SessionStatus.PENDING_AUTO_SUMMARY: frozenset({SessionStatus.AUTO_SUMMARISED}),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.AUTO_SUMMARISED: frozenset(),
}

DEFAULT_AUTO_SUMMARY_TIMEOUT = timedelta(hours=24)


def can_transition(from_status: SessionStatus, to_status: SessionStatus) -> bool:
    return to_status in TRANSITIONS[from_status]


def is_terminal(status: SessionStatus) -> bool:
    """A status with no outgoing edges."""
    return not TRANSITIONS[status]


def occupies_active_slot(status: SessionStatus) -> bool:
    """Active and paused sessions count as the project's open session."""
    return status in (SessionStatus.ACTIVE, SessionStatus.PAUSED)


def is_eligible_for_auto_summary(
    session: Session,
    now: datetime,
    timeout: timedelta = DEFAULT_AUTO_SUMMARY_TIMEOUT,
) -> bool:
    """Paused sessions idle for at least ``timeout``."""
    if session.status != SessionStatus.PAUSED:
        return False
    return now - session.last_active_at >= timeout
