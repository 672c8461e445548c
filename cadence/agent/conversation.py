"""Conversation manager: runs one user turn end to end."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from loguru import logger

from cadence.agent.actions import Action
from cadence.agent.composer import PromptComposer
from cadence.agent.context import ContextAssembler
from cadence.agent.signals import (
    DeliverablesDeferred,
    DeliverablesProduced,
    DocumentDraft,
    FirstAction,
    ModeComplete,
    PlanningDepthSignal,
    ProcessRecommendation,
    ProjectSummary,
    ResponseSignalParser,
    SessionEnd,
    Signal,
    StructureProposal,
    StructureSummary,
)
from cadence.agent.summary import SummaryGenerationService
from cadence.project.models import DeliverableStatus, DeliverableType, ProjectData
from cadence.prompts.deliverables import catalogue_summary, get_template
from cadence.providers.base import ModelClient, ModelRequestConfig
from cadence.session.errors import InvalidTransitionError, SessionNotActiveError, SessionNotFoundError
from cadence.session.lifecycle import SessionLifecycleManager
from cadence.session.models import (
    ChatRole,
    Session,
    SessionCompletionStatus,
    SessionMessage,
    SessionMode,
    SessionStatus,
    SessionSubMode,
    SessionSummary,
    utcnow,
)
from cadence.session.state_machine import can_transition

# ── per-mode behaviour ──────────────────────────────────────────


@dataclass(frozen=True)
class ConversationConfig:
    """How a (mode, sub-mode) pair is run and which signals it should produce."""
    parse_actions: bool = False
    expects_document: bool = False
    expects_structure: bool = False
    expected_signals: frozenset[type[Signal]] = frozenset()
    request: ModelRequestConfig = field(default_factory=ModelRequestConfig)

    @classmethod
    def for_mode(
        cls,
        mode: SessionMode,
        sub_mode: SessionSubMode | None = None,
        request: ModelRequestConfig | None = None,
    ) -> "ConversationConfig":
        request = request or ModelRequestConfig()
        if mode == SessionMode.EXPLORATION:
            return cls(
                expected_signals=frozenset({
                    ModeComplete, ProcessRecommendation, PlanningDepthSignal, ProjectSummary,
                }),
                request=request,
            )
        if mode == SessionMode.DEFINITION:
            return cls(
                expects_document=True,
                expected_signals=frozenset({
                    ModeComplete, DeliverablesProduced, DeliverablesDeferred, DocumentDraft,
                }),
                request=request,
            )
        if mode == SessionMode.PLANNING:
            return cls(
                parse_actions=True,
                expects_structure=True,
                expected_signals=frozenset({
                    ModeComplete, StructureSummary, FirstAction, StructureProposal,
                }),
                request=request,
            )
        return cls(
            parse_actions=sub_mode in (None, SessionSubMode.CHECK_IN, SessionSubMode.PROJECT_REVIEW),
            expected_signals=frozenset({SessionEnd}),
            request=request,
        )


@dataclass
class ConversationResult:
    natural_language: str
    signals: list[Signal] = field(default_factory=list)
    actions: list[Action] = field(default_factory=list)
    input_tokens: int | None = None
    output_tokens: int | None = None


# ── manager ─────────────────────────────────────────────────────


class ConversationManager:
    """
    Orchestrates a turn: store the user message, build the prompt and
    context, call the model, parse the reply, store the raw reply.
    """

    def __init__(
        self,
        lifecycle: SessionLifecycleManager,
        composer: PromptComposer,
        assembler: ContextAssembler,
        client: ModelClient,
        summaries: SummaryGenerationService,
        request_config: ModelRequestConfig | None = None,
        parser: ResponseSignalParser | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.lifecycle = lifecycle
        self.composer = composer
        self.assembler = assembler
        self.client = client
        self.summaries = summaries
        self.request_config = request_config or ModelRequestConfig()
        self.parser = parser or ResponseSignalParser()
        self.clock = clock

    @property
    def store(self):
        return self.lifecycle.store

    # ── session control ─────────────────────────────────────────

    async def start_session(
        self, project_id: str, mode: SessionMode, sub_mode: SessionSubMode | None = None
    ) -> Session:
        return await self.lifecycle.start_session(project_id, mode, sub_mode)

    async def resume_session(self, session_id: str) -> Session:
        return await self.lifecycle.resume_session(session_id)

    async def pause_session(self, session_id: str) -> Session:
        return await self.lifecycle.transition_session(session_id, SessionStatus.PAUSED)

    async def paused_session(self, project_id: str) -> Session | None:
        return await self.lifecycle.paused_session(project_id)

    async def messages(self, session_id: str) -> list[SessionMessage]:
        return await self.store.messages_for_session(session_id)

    async def complete_session(self, session_id: str) -> SessionSummary:
        """Close a session whose goals were met."""
        return await self._close(session_id, SessionCompletionStatus.COMPLETED)

    async def end_session(self, session_id: str) -> SessionSummary:
        """Close a session the user stopped early."""
        return await self._close(session_id, SessionCompletionStatus.INCOMPLETE_USER_ENDED)

    # ── turns ───────────────────────────────────────────────────

    async def send_message(
        self,
        text: str,
        session_id: str,
        project_data: ProjectData,
        raw_voice_transcript: str | None = None,
    ) -> ConversationResult:
        """
        Run one conversational turn.

        Args:
            text: The user's message.
            session_id: An active session.
            project_data: Project aggregate for the situational context.
            raw_voice_transcript: Unedited transcript when ``text`` came from voice.

        Returns:
            ConversationResult with prose, signals, actions and token usage.

        Raises:
            SessionNotFoundError, SessionNotActiveError, or any
            ModelClientError (after the user turn has been stored).
        """
        session = await self.store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if session.status != SessionStatus.ACTIVE:
            raise SessionNotActiveError(session_id, session.status)

        await self.lifecycle.add_message(session_id, ChatRole.USER, text, raw_voice_transcript)

        config = ConversationConfig.for_mode(session.mode, session.sub_mode, self.request_config)
        system_prompt = self.composer.compose(
            session.mode, session.sub_mode, self._prompt_variables(session, project_data)
        )
        history = await self.store.messages_for_session(session_id)
        payload = self.assembler.assemble_payload(
            system_prompt, session.mode, session.sub_mode, project_data, history, now=self.clock()
        )

        response = await self.client.send(payload.messages, config.request)
        parsed = self.parser.parse(response.content, parse_actions=config.parse_actions)

        unexpected = [s.tag for s in parsed.signals if type(s) not in config.expected_signals]
        if unexpected:
            logger.warning(
                f"Session {session_id} ({session.mode.value}): unexpected signals {unexpected}"
            )

        await self.lifecycle.add_message(session_id, ChatRole.ASSISTANT, response.content)

        logger.info(
            f"Turn in session {session_id}: {len(parsed.signals)} signals, "
            f"{len(parsed.actions)} actions, ~{payload.estimated_tokens} tokens sent"
        )
        return ConversationResult(
            natural_language=parsed.natural_language,
            signals=parsed.signals,
            actions=parsed.actions,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
        )

    # ── internal helpers ────────────────────────────────────────

    async def _close(self, session_id: str, completion: SessionCompletionStatus) -> SessionSummary:
        session = await self.store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if not can_transition(session.status, SessionStatus.COMPLETED):
            raise InvalidTransitionError(session.status, SessionStatus.COMPLETED)

        summary = await self.summaries.generate_summary(session_id, completion)
        await self.lifecycle.transition_session(session_id, SessionStatus.COMPLETED)
        return summary

    @staticmethod
    def _prompt_variables(session: Session, data: ProjectData) -> dict[str, str]:
        if session.mode == SessionMode.EXPLORATION:
            return {"deliverable_catalogue": catalogue_summary()}

        if session.mode == SessionMode.DEFINITION:
            types = _deliverable_types(data)
            if not types:
                return {
                    "deliverable_list": "none specified yet",
                    "current_deliverable": "to be agreed with the user",
                    "deliverable_template_info_requirements": "Agree which deliverable to write first.",
                    "deliverable_template_structure": "Follow the structure of the chosen deliverable.",
                }
            current = _current_deliverable(data, types)
            template = get_template(current)
            return {
                "deliverable_list": ", ".join(t.value for t in types),
                "current_deliverable": current.value,
                "deliverable_template_info_requirements": template.formatted_requirements(),
                "deliverable_template_structure": template.formatted_structure(),
            }

        if session.mode == SessionMode.EXECUTION_SUPPORT:
            sub_mode = session.sub_mode or SessionSubMode.CHECK_IN
            return {"sub_mode": sub_mode.value}

        return {}


def _deliverable_types(data: ProjectData) -> list[DeliverableType]:
    """Recommended deliverables, else those already on the project."""
    if data.process_profile and data.process_profile.recommended_deliverables:
        return [r.type for r in data.process_profile.recommended_deliverables]
    return list(dict.fromkeys(d.type for d in data.deliverables))


def _current_deliverable(data: ProjectData, types: list[DeliverableType]) -> DeliverableType:
    """First deliverable not yet completed, else the first one."""
    done = {
        d.type for d in data.deliverables
        if d.status in (DeliverableStatus.COMPLETED, DeliverableStatus.REVISED)
    }
    for deliverable_type in types:
        if deliverable_type not in done:
            return deliverable_type
    return types[0]
