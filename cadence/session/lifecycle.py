"""Session lifecycle: creation, status transitions and message appends."""

from datetime import datetime, timedelta
from typing import Callable

from loguru import logger

from cadence.session.errors import InvalidTransitionError, SessionNotFoundError
from cadence.session.models import (
    ChatRole,
    Session,
    SessionMessage,
    SessionMode,
    SessionStatus,
    SessionSubMode,
    utcnow,
)
from cadence.session.state_machine import can_transition, is_terminal
from cadence.session.store import SessionStore

_TICK = timedelta(microseconds=1)


class SessionLifecycleManager:
    """
    Owns every session status change.

    The single-active invariant is kept procedurally: starting or resuming a
    session pauses whatever else is active in the same project first.
    """

    def __init__(self, store: SessionStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    # ── public API ──────────────────────────────────────────────

    async def start_session(
        self,
        project_id: str,
        mode: SessionMode,
        sub_mode: SessionSubMode | None = None,
    ) -> Session:
        """
        Create a new active session for a project.

        Args:
            project_id: Owning project.
            mode: Conversation mode.
            sub_mode: Only valid with execution-support mode.

        Returns:
            The persisted active session.
        """
        if sub_mode is not None and mode != SessionMode.EXECUTION_SUPPORT:
            raise ValueError(f"Sub-mode {sub_mode.value} requires execution_support mode")

        await self._pause_active(project_id)

        session = Session(project_id=project_id, mode=mode, sub_mode=sub_mode, created_at=self.clock())
        await self.store.save_session(session)
        logger.info(f"Started {mode.value} session {session.id} for project {project_id}")
        return session

    async def resume_session(self, session_id: str) -> Session:
        """Reactivate a paused session."""
        session = await self._require(session_id)
        if session.status != SessionStatus.PAUSED:
            raise InvalidTransitionError(session.status, SessionStatus.ACTIVE)
        return await self._apply(session, SessionStatus.ACTIVE)

    async def transition_session(self, session_id: str, to_status: SessionStatus) -> Session:
        """Move a session along one edge of the status graph."""
        session = await self._require(session_id)
        return await self._apply(session, to_status)

    async def paused_session(self, project_id: str) -> Session | None:
        """The most recently active paused session of a project, if any."""
        paused = [
            s for s in await self.store.sessions_for_project(project_id)
            if s.status == SessionStatus.PAUSED
        ]
        if not paused:
            return None
        return max(paused, key=lambda s: s.last_active_at)

    async def add_message(
        self,
        session_id: str,
        role: ChatRole,
        content: str,
        raw_voice_transcript: str | None = None,
    ) -> SessionMessage:
        """Append a turn and advance ``last_active_at`` to its timestamp."""
        session = await self._require(session_id)
        history = await self.store.messages_for_session(session_id)

        timestamp = self.clock()
        if history and timestamp <= history[-1].timestamp:
            timestamp = history[-1].timestamp + _TICK

        message = SessionMessage(
            session_id=session_id,
            role=role,
            content=content,
            timestamp=timestamp,
            sequence=len(history),
            raw_voice_transcript=raw_voice_transcript,
        )
        await self.store.append_message(message)

        session.last_active_at = timestamp
        await self.store.save_session(session)
        return message

    async def active_conflicts(self, project_id: str) -> list[Session]:
        """Active sessions of a project when more than one exists, else empty."""
        active = [
            s for s in await self.store.sessions_for_project(project_id)
            if s.status == SessionStatus.ACTIVE
        ]
        return active if len(active) > 1 else []

    # ── internal helpers ────────────────────────────────────────

    async def _require(self, session_id: str) -> Session:
        session = await self.store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def _apply(self, session: Session, to_status: SessionStatus) -> Session:
        if not can_transition(session.status, to_status):
            raise InvalidTransitionError(session.status, to_status)

        if to_status == SessionStatus.ACTIVE:
            await self._pause_active(session.project_id, exclude=session.id)

        from_status = session.status
        session.status = to_status
        session.completed_at = self.clock() if is_terminal(to_status) else None
        await self.store.save_session(session)
        logger.info(f"Session {session.id}: {from_status.value} -> {to_status.value}")
        return session

    async def _pause_active(self, project_id: str, exclude: str | None = None) -> None:
        for other in await self.store.sessions_for_project(project_id):
            if other.status == SessionStatus.ACTIVE and other.id != exclude:
                other.status = SessionStatus.PAUSED
                await self.store.save_session(other)
                logger.info(f"Paused session {other.id} (superseded in project {project_id})")
