"""Session records: sessions, messages and their summaries."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class SessionMode(str, Enum):
    EXPLORATION = "exploration"
    DEFINITION = "definition"
    PLANNING = "planning"
    EXECUTION_SUPPORT = "execution_support"


class SessionSubMode(str, Enum):
    """Variants of execution-support mode."""
    CHECK_IN = "check_in"
    RETURN_BRIEFING = "return_briefing"
    PROJECT_REVIEW = "project_review"
    RETROSPECTIVE = "retrospective"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    PENDING_AUTO_SUMMARY = "pending_auto_summary"
    AUTO_SUMMARISED = "auto_summarised"


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class SessionCompletionStatus(str, Enum):
    COMPLETED = "completed"
    INCOMPLETE_USER_ENDED = "incomplete_user_ended"
    INCOMPLETE_AUTO_SUMMARISED = "incomplete_auto_summarised"


@dataclass
class Session:
    """
    One bounded conversation within a project.

    ``last_active_at`` tracks the newest message (or creation, before any
    message); ``completed_at`` is set only while the status is terminal.
    """

    project_id: str
    mode: SessionMode
    sub_mode: SessionSubMode | None = None
    status: SessionStatus = SessionStatus.ACTIVE
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    last_active_at: datetime | None = None
    completed_at: datetime | None = None
    summary_id: str | None = None

    def __post_init__(self) -> None:
        if self.last_active_at is None:
            self.last_active_at = self.created_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "mode": self.mode.value,
            "sub_mode": self.sub_mode.value if self.sub_mode else None,
            "status": self.status.value,
            "created_at": _iso(self.created_at),
            "last_active_at": _iso(self.last_active_at),
            "completed_at": _iso(self.completed_at),
            "summary_id": self.summary_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Session":
        return cls(
            id=data["id"],
            project_id=data["project_id"],
            mode=SessionMode(data["mode"]),
            sub_mode=SessionSubMode(data["sub_mode"]) if data.get("sub_mode") else None,
            status=SessionStatus(data["status"]),
            created_at=_dt(data["created_at"]),
            last_active_at=_dt(data.get("last_active_at")),
            completed_at=_dt(data.get("completed_at")),
            summary_id=data.get("summary_id"),
        )


@dataclass(frozen=True)
class SessionMessage:
    """An immutable turn. Assistant content is the full raw model response."""

    session_id: str
    role: ChatRole
    content: str
    timestamp: datetime
    sequence: int = 0
    raw_voice_transcript: str | None = None
    id: str = field(default_factory=new_id)

    def to_llm(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "role": self.role.value,
            "content": self.content,
            "timestamp": _iso(self.timestamp),
            "sequence": self.sequence,
            "raw_voice_transcript": self.raw_voice_transcript,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionMessage":
        return cls(
            id=data["id"],
            session_id=data["session_id"],
            role=ChatRole(data["role"]),
            content=data["content"],
            timestamp=_dt(data["timestamp"]),
            sequence=data.get("sequence", 0),
            raw_voice_transcript=data.get("raw_voice_transcript"),
        )


# ── summary sections ────────────────────────────────────────────


@dataclass
class ContentEstablished:
    decisions: list[str] = field(default_factory=list)
    facts_learned: list[str] = field(default_factory=list)
    progress_made: list[str] = field(default_factory=list)


@dataclass
class ContentObserved:
    patterns: list[str] = field(default_factory=list)
    concerns: list[str] = field(default_factory=list)
    strengths: list[str] = field(default_factory=list)


@dataclass
class WhatComesNext:
    next_actions: list[str] = field(default_factory=list)
    open_questions: list[str] = field(default_factory=list)
    suggested_mode: str | None = None


@dataclass
class ExplorationData:
    kind = "exploration"
    project_summary: str | None = None
    recommended_deliverables: list[str] = field(default_factory=list)
    suggested_planning_depth: str | None = None


@dataclass
class DefinitionData:
    kind = "definition"
    deliverables_produced: list[str] = field(default_factory=list)
    deliverables_deferred: list[str] = field(default_factory=list)
    drafts_count: int = 0


@dataclass
class PlanningData:
    kind = "planning"
    structure_summary: str | None = None
    first_action: str | None = None
    milestones_created: int = 0
    tasks_created: int = 0


@dataclass
class ExecutionSupportData:
    kind = "execution_support"
    tasks_completed: list[str] = field(default_factory=list)
    tasks_deferred: list[str] = field(default_factory=list)
    issues_flagged: list[str] = field(default_factory=list)


ModeSpecificData = ExplorationData | DefinitionData | PlanningData | ExecutionSupportData

MODE_SPECIFIC_TYPES: dict[str, type] = {
    cls.kind: cls
    for cls in (ExplorationData, DefinitionData, PlanningData, ExecutionSupportData)
}


@dataclass
class SessionSummary:
    """Structured close-out record of a terminal session."""

    session_id: str
    mode: SessionMode
    completion_status: SessionCompletionStatus
    started_at: datetime
    ended_at: datetime
    message_count: int
    sub_mode: SessionSubMode | None = None
    content_established: ContentEstablished = field(default_factory=ContentEstablished)
    content_observed: ContentObserved = field(default_factory=ContentObserved)
    what_comes_next: WhatComesNext = field(default_factory=WhatComesNext)
    mode_specific: ModeSpecificData | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    id: str = field(default_factory=new_id)

    @property
    def duration(self) -> float:
        """Seconds between the first and last message."""
        return (self.ended_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        mode_specific = None
        if self.mode_specific is not None:
            mode_specific = {"kind": self.mode_specific.kind, **vars(self.mode_specific)}
        return {
            "id": self.id,
            "session_id": self.session_id,
            "mode": self.mode.value,
            "sub_mode": self.sub_mode.value if self.sub_mode else None,
            "completion_status": self.completion_status.value,
            "content_established": vars(self.content_established),
            "content_observed": vars(self.content_observed),
            "what_comes_next": vars(self.what_comes_next),
            "mode_specific": mode_specific,
            "started_at": _iso(self.started_at),
            "ended_at": _iso(self.ended_at),
            "duration": self.duration,
            "message_count": self.message_count,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionSummary":
        mode_specific = None
        raw = data.get("mode_specific")
        if raw:
            raw = dict(raw)
            mode_specific = MODE_SPECIFIC_TYPES[raw.pop("kind")](**raw)
        return cls(
            id=data["id"],
            session_id=data["session_id"],
            mode=SessionMode(data["mode"]),
            sub_mode=SessionSubMode(data["sub_mode"]) if data.get("sub_mode") else None,
            completion_status=SessionCompletionStatus(data["completion_status"]),
            content_established=ContentEstablished(**data.get("content_established", {})),
            content_observed=ContentObserved(**data.get("content_observed", {})),
            what_comes_next=WhatComesNext(**data.get("what_comes_next", {})),
            mode_specific=mode_specific,
            started_at=_dt(data["started_at"]),
            ended_at=_dt(data["ended_at"]),
            message_count=data["message_count"],
            input_tokens=data.get("input_tokens"),
            output_tokens=data.get("output_tokens"),
        )
