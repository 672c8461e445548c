"""Structured summaries of finished sessions."""

import json
import re
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from cadence.agent.actions import CompleteTask, CreateMilestone, CreateTask, FlagBlocked, IncrementDeferred
from cadence.agent.composer import PromptComposer
from cadence.agent.signals import (
    DeliverablesDeferred,
    DeliverablesProduced,
    DocumentDraft,
    FirstAction,
    PlanningDepthSignal,
    ProcessRecommendation,
    ProjectSummary,
    ResponseSignalParser,
    StructureSummary,
    split_list,
)
from cadence.providers.base import ModelClient, ModelRequestConfig
from cadence.session.errors import (
    NoMessagesError,
    SessionChangedError,
    SessionNotFoundError,
    SummaryParseError,
)
from cadence.session.models import (
    ChatRole,
    ContentEstablished,
    ContentObserved,
    DefinitionData,
    ExecutionSupportData,
    ExplorationData,
    ModeSpecificData,
    PlanningData,
    Session,
    SessionCompletionStatus,
    SessionMessage,
    SessionMode,
    SessionSummary,
    WhatComesNext,
)
from cadence.session.store import SessionStore

_FENCED_JSON = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)
_LIST_FIELDS = frozenset({
    "decisions", "facts_learned", "progress_made",
    "patterns", "concerns", "strengths",
    "next_actions", "open_questions",
})


# ── response schema ─────────────────────────────────────────────


class _Lenient(BaseModel):
    """camelCase keys; missing or oddly-typed leaves fall back to empty."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_lists(cls, value: Any, info: ValidationInfo) -> Any:
        if info.field_name not in _LIST_FIELDS:
            return value
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        if isinstance(value, list):
            return [str(item).strip() for item in value if isinstance(item, (str, int, float)) and str(item).strip()]
        return []


class _Established(_Lenient):
    decisions: list[str] = Field(default_factory=list)
    facts_learned: list[str] = Field(default_factory=list)
    progress_made: list[str] = Field(default_factory=list)


class _Observed(_Lenient):
    patterns: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)


class _Next(_Lenient):
    next_actions: list[str] = Field(default_factory=list)
    open_questions: list[str] = Field(default_factory=list)
    suggested_mode: str | None = None

    @field_validator("suggested_mode", mode="before")
    @classmethod
    def _null_mode(cls, value: Any) -> str | None:
        if not isinstance(value, str) or value.strip().lower() in ("", "null", "none"):
            return None
        return value.strip()


class SummaryPayload(_Lenient):
    content_established: _Established = Field(default_factory=_Established)
    content_observed: _Observed = Field(default_factory=_Observed)
    what_comes_next: _Next = Field(default_factory=_Next)

    @field_validator("content_established", "content_observed", "what_comes_next", mode="before")
    @classmethod
    def _null_section(cls, value: Any) -> Any:
        return {} if value is None else value


def extract_json(text: str) -> str:
    """JSON text from a fenced block, or from the first '{' to the last '}'."""
    fenced = _FENCED_JSON.search(text)
    if fenced:
        return fenced.group(1).strip()
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        return text[start:end + 1]
    return text.strip()


def parse_summary_payload(text: str) -> SummaryPayload:
    """Parse the model's summary JSON, raising SummaryParseError if unusable."""
    try:
        data = json.loads(extract_json(text))
    except json.JSONDecodeError as e:
        raise SummaryParseError(f"invalid JSON ({e.msg})", raw=text) from e
    if not isinstance(data, dict):
        raise SummaryParseError(f"expected a JSON object, got {type(data).__name__}", raw=text)
    try:
        return SummaryPayload.model_validate(data)
    except ValidationError as e:
        raise SummaryParseError(f"unexpected structure ({e.error_count()} errors)", raw=text) from e


# ── mode-specific data ──────────────────────────────────────────


def derive_mode_specific(mode: SessionMode, messages: list[SessionMessage]) -> ModeSpecificData:
    """Collect what the assistant signalled or proposed during the session."""
    parser = ResponseSignalParser()
    signals, actions = [], []
    for msg in messages:
        if msg.role == ChatRole.ASSISTANT:
            parsed = parser.parse(msg.content, parse_actions=True)
            signals.extend(parsed.signals)
            actions.extend(parsed.actions)

    def last(cls):
        values = [s for s in signals if isinstance(s, cls)]
        return values[-1] if values else None

    if mode == SessionMode.EXPLORATION:
        summary, recommendation, depth = last(ProjectSummary), last(ProcessRecommendation), last(PlanningDepthSignal)
        return ExplorationData(
            project_summary=summary.summary if summary else None,
            recommended_deliverables=split_list(recommendation.deliverables) if recommendation else [],
            suggested_planning_depth=depth.depth if depth else None,
        )
    if mode == SessionMode.DEFINITION:
        produced, deferred = [], []
        for s in signals:
            if isinstance(s, DeliverablesProduced):
                produced.extend(split_list(s.deliverables))
            elif isinstance(s, DeliverablesDeferred):
                deferred.extend(split_list(s.deliverables))
        return DefinitionData(
            deliverables_produced=list(dict.fromkeys(produced)),
            deliverables_deferred=list(dict.fromkeys(deferred)),
            drafts_count=sum(isinstance(s, DocumentDraft) for s in signals),
        )
    if mode == SessionMode.PLANNING:
        structure, first = last(StructureSummary), last(FirstAction)
        return PlanningData(
            structure_summary=structure.summary if structure else None,
            first_action=first.description if first else None,
            milestones_created=sum(isinstance(a, CreateMilestone) for a in actions),
            tasks_created=sum(isinstance(a, CreateTask) for a in actions),
        )
    return ExecutionSupportData(
        tasks_completed=[a.task_id for a in actions if isinstance(a, CompleteTask)],
        tasks_deferred=[a.task_id for a in actions if isinstance(a, IncrementDeferred)],
        issues_flagged=[
            f"{a.blocked_type.value}: {a.reason}" if a.reason else a.blocked_type.value
            for a in actions if isinstance(a, FlagBlocked)
        ],
    )


# ── service ─────────────────────────────────────────────────────


class SummaryGenerationService:
    """Asks the model for a structured summary of a session and stores it."""

    def __init__(
        self,
        store: SessionStore,
        client: ModelClient,
        composer: PromptComposer,
        request_config: ModelRequestConfig | None = None,
    ):
        self.store = store
        self.client = client
        self.composer = composer
        self.request_config = request_config or ModelRequestConfig(max_tokens=2048, temperature=0.3)

    async def generate_summary(
        self,
        session_id: str,
        completion_status: SessionCompletionStatus,
    ) -> SessionSummary:
        """
        Generate, persist and link the summary of a session.

        Args:
            session_id: Session to summarise.
            completion_status: How the session ended.

        Returns:
            The stored SessionSummary.

        Raises:
            SessionNotFoundError, NoMessagesError, SummaryParseError,
            SessionChangedError if the session changed status or gained
            messages during the model call (nothing is stored), or any
            ModelClientError from the client.
        """
        session = await self.store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        messages = await self.store.messages_for_session(session_id)
        if not messages:
            raise NoMessagesError(session_id)

        request = [
            {"role": "system", "content": self.composer.summary_prompt()},
            {"role": "user", "content": self._format_summary_input(session, messages)},
        ]
        response = await self.client.send(request, self.request_config)
        payload = parse_summary_payload(response.content)

        summary = SessionSummary(
            session_id=session.id,
            mode=session.mode,
            sub_mode=session.sub_mode,
            completion_status=completion_status,
            content_established=ContentEstablished(**payload.content_established.model_dump()),
            content_observed=ContentObserved(**payload.content_observed.model_dump()),
            what_comes_next=WhatComesNext(**payload.what_comes_next.model_dump()),
            mode_specific=derive_mode_specific(session.mode, messages),
            started_at=messages[0].timestamp,
            ended_at=messages[-1].timestamp,
            message_count=len(messages),
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
        )
        # The user may have resumed or written to the session during the model call
        current = await self.store.get_session(session_id)
        if current is None:
            raise SessionNotFoundError(session_id)
        if current.status != session.status or current.last_active_at != session.last_active_at:
            raise SessionChangedError(session_id, session.status, current.status)

        await self.store.save_summary(summary)
        current.summary_id = summary.id
        await self.store.save_session(current)

        logger.info(
            f"Summarised session {session.id} ({completion_status.value}): "
            f"{len(messages)} messages, {summary.duration:.0f}s"
        )
        return summary

    @staticmethod
    def _format_summary_input(session: Session, messages: list[SessionMessage]) -> str:
        """Transcript as plain text for the summariser."""
        label = session.mode.value
        if session.sub_mode:
            label += f" ({session.sub_mode.value})"

        lines = []
        for msg in messages:
            speaker = "User" if msg.role == ChatRole.USER else "Assistant"
            lines.append(f"{speaker}: {msg.content}")
        return f"Summarise this {label} session:\n\n" + "\n\n".join(lines)
