"""Session store interface and the in-memory implementation."""

import copy
from abc import ABC, abstractmethod
from datetime import datetime

from cadence.session.models import Session, SessionMessage, SessionStatus, SessionSummary


class SessionStore(ABC):
    """
    Persistence for sessions, their messages and summaries.

    Every call is atomic on its own. Callers must not assume atomicity across
    calls; the lifecycle and summary services order their writes accordingly.
    """

    @abstractmethod
    async def get_session(self, session_id: str) -> Session | None:
        pass

    @abstractmethod
    async def save_session(self, session: Session) -> None:
        """Insert or replace a session record."""
        pass

    @abstractmethod
    async def sessions_for_project(self, project_id: str) -> list[Session]:
        pass

    @abstractmethod
    async def append_message(self, message: SessionMessage) -> None:
        pass

    @abstractmethod
    async def messages_for_session(self, session_id: str) -> list[SessionMessage]:
        """Messages in append order."""
        pass

    @abstractmethod
    async def get_summary(self, session_id: str) -> SessionSummary | None:
        pass

    @abstractmethod
    async def save_summary(self, summary: SessionSummary) -> None:
        """Insert or replace the summary of ``summary.session_id``."""
        pass

    @abstractmethod
    async def sessions_pending_summarisation(self, older_than: datetime) -> list[Session]:
        """Paused sessions whose ``last_active_at`` is at or before ``older_than``."""
        pass

    @abstractmethod
    async def sessions_with_status(self, status: SessionStatus) -> list[Session]:
        pass


class InMemorySessionStore(SessionStore):
    """Dictionary-backed store. Returns copies so callers never share state."""

    def __init__(self):
        self.sessions: dict[str, Session] = {}
        self.messages: dict[str, list[SessionMessage]] = {}
        self.summaries: dict[str, SessionSummary] = {}
        self.writes = 0

    async def get_session(self, session_id: str) -> Session | None:
        session = self.sessions.get(session_id)
        return copy.deepcopy(session) if session else None

    async def save_session(self, session: Session) -> None:
        self.sessions[session.id] = copy.deepcopy(session)
        self.writes += 1

    async def sessions_for_project(self, project_id: str) -> list[Session]:
        return [
            copy.deepcopy(s) for s in self.sessions.values() if s.project_id == project_id
        ]

    async def append_message(self, message: SessionMessage) -> None:
        self.messages.setdefault(message.session_id, []).append(message)
        self.writes += 1

    async def messages_for_session(self, session_id: str) -> list[SessionMessage]:
        return list(self.messages.get(session_id, []))

    async def get_summary(self, session_id: str) -> SessionSummary | None:
        summary = self.summaries.get(session_id)
        return copy.deepcopy(summary) if summary else None

    async def save_summary(self, summary: SessionSummary) -> None:
        self.summaries[summary.session_id] = copy.deepcopy(summary)
        self.writes += 1

    async def sessions_pending_summarisation(self, older_than: datetime) -> list[Session]:
        return [
            copy.deepcopy(s)
            for s in self.sessions.values()
            if s.status == SessionStatus.PAUSED and s.last_active_at <= older_than
        ]

    async def sessions_with_status(self, status: SessionStatus) -> list[Session]:
        return [copy.deepcopy(s) for s in self.sessions.values() if s.status == status]
