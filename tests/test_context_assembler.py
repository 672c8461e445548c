"""Tests for the context assembler: situational block and history budgeting."""

from datetime import datetime, timedelta, timezone

import pytest

from cadence.agent.composer import LAYER_SEPARATOR
from cadence.agent.context import (
    MAX_DOCUMENT_CHARS,
    TRUNCATION_NOTICE,
    ContextAssembler,
)
from cadence.agent.context_config import ComponentKind, context_config_for
from cadence.agent.summary import derive_mode_specific
from cadence.agent.tokens import estimate_messages_tokens, estimate_tokens
from cadence.project.models import (
    AccuracyTrend,
    BlockedType,
    Deliverable,
    DeliverableStatus,
    DeliverableType,
    EffortType,
    Milestone,
    Phase,
    PlanningDepth,
    PortfolioData,
    PortfolioProject,
    Priority,
    ProcessProfile,
    Project,
    ProjectData,
    RecommendedDeliverable,
    Subtask,
    Task,
)
from cadence.session.models import (
    ChatRole,
    ContentEstablished,
    Session,
    SessionCompletionStatus,
    SessionMessage,
    SessionMode,
    SessionStatus,
    SessionSubMode,
    SessionSummary,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _data(**kwargs) -> ProjectData:
    return ProjectData(project=Project(name="Garden shed", definition_of_done="Shed built"), **kwargs)


def _doc(content: str, status=DeliverableStatus.COMPLETED, title="Vision") -> Deliverable:
    return Deliverable(type=DeliverableType.VISION_STATEMENT, title=title, content=content, status=status)


def _summary(days_ago: int, decision: str) -> SessionSummary:
    ended = NOW - timedelta(days=days_ago)
    return SessionSummary(
        session_id=f"s{days_ago}",
        mode=SessionMode.EXPLORATION,
        completion_status=SessionCompletionStatus.COMPLETED,
        started_at=ended - timedelta(minutes=30),
        ended_at=ended,
        message_count=4,
        content_established=ContentEstablished(decisions=[decision]),
    )


def _history(n: int, size: int = 40) -> list[SessionMessage]:
    roles = [ChatRole.USER, ChatRole.ASSISTANT]
    return [
        SessionMessage(
            session_id="s",
            role=roles[i % 2],
            content=f"{i:03d}" + "x" * (size - 3),
            timestamp=NOW + timedelta(seconds=i),
            sequence=i,
        )
        for i in range(n)
    ]


# ── configuration ───────────────────────────────────────────────


class TestContextConfig:
    @pytest.mark.parametrize("mode,sub_mode,budget", [
        (SessionMode.EXPLORATION, None, 2000),
        (SessionMode.DEFINITION, None, 3000),
        (SessionMode.PLANNING, None, 4000),
        (SessionMode.EXECUTION_SUPPORT, None, 5000),
        (SessionMode.EXECUTION_SUPPORT, SessionSubMode.CHECK_IN, 5000),
        (SessionMode.EXECUTION_SUPPORT, SessionSubMode.RETURN_BRIEFING, 5000),
        (SessionMode.EXECUTION_SUPPORT, SessionSubMode.PROJECT_REVIEW, 3000),
        (SessionMode.EXECUTION_SUPPORT, SessionSubMode.RETROSPECTIVE, 5000),
    ])
    def test_budgets(self, mode, sub_mode, budget):
        assert context_config_for(mode, sub_mode).token_budget == budget

    def test_project_review_is_portfolio_first(self):
        config = context_config_for(SessionMode.EXECUTION_SUPPORT, SessionSubMode.PROJECT_REVIEW)
        first = min(config.components, key=lambda c: c.priority)
        assert first.kind == ComponentKind.PORTFOLIO_SUMMARY
        assert ComponentKind.PROJECT_OVERVIEW not in config.kinds()


# ── situational block ───────────────────────────────────────────


class TestAssembleSituation:
    def test_overview_always_first(self):
        text = ContextAssembler().assemble_situation(SessionMode.EXPLORATION, None, _data(), NOW)
        assert text.startswith("PROJECT: Garden shed")
        assert "Definition of Done: Shed built" in text

    def test_empty_components_omitted(self):
        text = ContextAssembler().assemble_situation(SessionMode.PLANNING, None, _data(), NOW)
        assert "DOCUMENTS:" not in text
        assert "SESSION HISTORY:" not in text
        assert "CURRENT STRUCTURE:" not in text

    def test_only_finished_documents(self):
        data = _data(deliverables=[
            _doc("Finished text", title="Done"),
            _doc("Draft text", status=DeliverableStatus.IN_PROGRESS, title="Draft"),
        ])
        text = ContextAssembler().assemble_situation(SessionMode.PLANNING, None, data, NOW)
        assert "Finished text" in text
        assert "Draft text" not in text

    def test_long_document_is_cut_with_marker(self):
        content = "y" * (MAX_DOCUMENT_CHARS + 500)
        data = _data(deliverables=[_doc(content)])
        text = ContextAssembler().assemble_situation(SessionMode.PLANNING, None, data, NOW)
        assert f"(truncated, {len(content)} characters total)" in text
        assert "y" * (MAX_DOCUMENT_CHARS + 1) not in text

    def test_process_profile(self):
        profile = ProcessProfile(
            planning_depth=PlanningDepth.MILESTONE_PLAN,
            recommended_deliverables=[RecommendedDeliverable(DeliverableType.TECHNICAL_BRIEF, rationale="Wiring")],
            suggested_mode_path=["definition", "planning"],
        )
        text = ContextAssembler().assemble_situation(
            SessionMode.DEFINITION, None, _data(process_profile=profile), NOW
        )
        assert "PROCESS PROFILE:" in text
        assert "technical_brief (pending): Wiring" in text
        assert "definition -> planning" in text

    def test_structure_rendering(self):
        phase = Phase(name="Build")
        ms = Milestone(phase_id=phase.id, name="Foundations", deadline=NOW)
        task = Task(
            milestone_id=ms.id, name="Pour slab", priority=Priority.HIGH,
            effort_type=EffortType.PHYSICAL, blocked_type=BlockedType.MISSING_RESOURCE, times_deferred=2,
        )
        data = _data(
            phases=[phase], milestones=[ms], tasks=[task],
            subtasks_by_task_id={task.id: [Subtask("Buy cement", is_completed=True)]},
        )
        text = ContextAssembler().assemble_situation(SessionMode.PLANNING, None, data, NOW)
        assert "PHASE: Build (not_started)" in text
        assert "MILESTONE: Foundations (not_started) due: 2025-06-01" in text
        assert "TASK: Pour slab (not_started) [HIGH] [physical] [BLOCKED: missing_resource] [deferred 2x]" in text
        assert "[x] Buy cement" in text

    def test_session_history_full_then_condensed(self):
        summaries = [_summary(d, f"decision {d}") for d in (1, 2, 3, 4)]
        text = ContextAssembler().assemble_situation(
            SessionMode.EXPLORATION, None, _data(session_summaries=summaries), NOW
        )
        # exploration: 1 full, 2 condensed, newest first
        assert "Decisions: decision 1" in text
        assert "Earlier sessions (condensed):" in text
        assert "decided: decision 2" in text
        assert "decided: decision 3" in text
        assert "decision 4" not in text

    def test_execution_support_extras(self):
        sessions = [
            Session(
                project_id="p", mode=SessionMode.EXECUTION_SUPPORT, status=SessionStatus.COMPLETED,
                created_at=NOW - timedelta(days=20), completed_at=NOW - timedelta(days=20),
            )
        ]
        data = _data(
            sessions=sessions,
            frequently_deferred_tasks=[Task(milestone_id="m", name="Paint", times_deferred=3)],
            estimate_accuracy=0.8,
            suggested_multiplier=1.3,
            accuracy_trend=AccuracyTrend(older=0.6, newer=0.8),
        )
        text = ContextAssembler().assemble_situation(
            SessionMode.EXECUTION_SUPPORT, SessionSubMode.CHECK_IN, data, NOW
        )
        assert "FREQUENTLY DEFERRED:\n- Paint (deferred 3x)" in text
        assert "ESTIMATE CALIBRATION:" in text
        assert "Suggested multiplier: 1.3x" in text
        assert "Trend: improving (60% -> 80%)" in text
        assert "PATTERNS AND OBSERVATIONS:" in text
        assert "Days since last session: 20" in text
        assert "returning after an extended break" in text
        assert "Repeatedly deferred: Paint" in text

    def test_deferred_task_ids_from_summaries_shown_by_name(self):
        task = Task(milestone_id="m", name="Sand the boards")
        unknown = "3f2b8c1e-6a1d-4c2e-9b0a-1d2e3f4a5b6c"
        reply = SessionMessage(
            session_id="s1",
            role=ChatRole.ASSISTANT,
            content=(
                "No problem, we'll push it.\n"
                f"[ACTION: INCREMENT_DEFERRED]\ntaskId: {task.id}\n[/ACTION]\n"
                f"[ACTION: INCREMENT_DEFERRED]\ntaskId: {unknown}\n[/ACTION]"
            ),
            timestamp=NOW - timedelta(days=2),
            sequence=1,
        )
        summary = SessionSummary(
            session_id="s1",
            mode=SessionMode.EXECUTION_SUPPORT,
            sub_mode=SessionSubMode.CHECK_IN,
            completion_status=SessionCompletionStatus.COMPLETED,
            started_at=NOW - timedelta(days=2, minutes=10),
            ended_at=NOW - timedelta(days=2),
            message_count=2,
            mode_specific=derive_mode_specific(SessionMode.EXECUTION_SUPPORT, [reply]),
        )
        data = _data(tasks=[task], session_summaries=[summary])

        text = ContextAssembler().assemble_situation(
            SessionMode.EXECUTION_SUPPORT, SessionSubMode.CHECK_IN, data, NOW
        )

        assert "Repeatedly deferred: Sand the boards" in text
        assert task.id not in text
        assert unknown not in text

    def test_portfolio_for_project_review(self):
        other = Project(name="Novel")
        data = _data(portfolio=PortfolioData(projects=[
            PortfolioProject(project=other, session_count=5, days_since_last_session=3),
        ]))
        text = ContextAssembler().assemble_situation(
            SessionMode.EXECUTION_SUPPORT, SessionSubMode.PROJECT_REVIEW, data, NOW
        )
        assert text.startswith("PORTFOLIO OVERVIEW:")
        assert "- Novel (focused), 5 sessions, last active 3d ago" in text
        assert "PROJECT: Garden shed" not in text

    @pytest.mark.parametrize("mode,sub_mode", [
        (SessionMode.EXPLORATION, None),
        (SessionMode.DEFINITION, None),
        (SessionMode.PLANNING, None),
        (SessionMode.EXECUTION_SUPPORT, SessionSubMode.RETROSPECTIVE),
    ])
    def test_never_exceeds_budget(self, mode, sub_mode):
        data = _data(
            deliverables=[_doc("z" * 5000, title=f"Doc {i}") for i in range(6)],
            session_summaries=[_summary(d, "w" * 3000) for d in range(1, 8)],
            process_profile=ProcessProfile(planning_depth=PlanningDepth.FULL_ROADMAP),
        )
        text = ContextAssembler().assemble_situation(mode, sub_mode, data, NOW)
        assert estimate_tokens(text) <= context_config_for(mode, sub_mode).token_budget
        assert text.startswith("PROJECT: Garden shed")

    def test_documents_shortened_to_fit(self):
        # Exploration budget is 2000 tokens; docs alone are far over it
        data = _data(deliverables=[_doc("d" * 1900, title=f"Doc {i}") for i in range(8)])
        text = ContextAssembler().assemble_situation(SessionMode.EXPLORATION, None, data, NOW)
        assert "DOCUMENTS:" in text
        assert "(truncated, " in text.split("DOCUMENTS:", 1)[1]
        assert estimate_tokens(text) <= 2000

    def test_oversized_component_dropped_whole(self):
        summaries = [_summary(1, "s" * 20000)]
        data = _data(session_summaries=summaries, deliverables=[_doc("short doc")])
        text = ContextAssembler().assemble_situation(SessionMode.EXPLORATION, None, data, NOW)
        assert "SESSION HISTORY:" not in text
        assert "short doc" in text

    def test_deterministic(self):
        data = _data(deliverables=[_doc("doc")], session_summaries=[_summary(2, "x")])
        assembler = ContextAssembler()
        first = assembler.assemble_situation(SessionMode.PLANNING, None, data, NOW)
        assert assembler.assemble_situation(SessionMode.PLANNING, None, data, NOW) == first


# ── payload ─────────────────────────────────────────────────────


class TestAssemblePayload:
    def test_fits_without_truncation(self):
        history = _history(4)
        payload = ContextAssembler().assemble_payload(
            "SYSTEM", SessionMode.EXPLORATION, None, _data(), history, now=NOW
        )
        assert payload.truncated is False
        assert payload.messages[0]["role"] == "system"
        assert payload.messages[0]["content"].startswith("SYSTEM" + LAYER_SEPARATOR + "PROJECT:")
        assert [m["content"] for m in payload.messages[1:]] == [m.content for m in history]
        assert TRUNCATION_NOTICE not in [m["content"] for m in payload.messages]

    def test_truncates_oldest_with_one_notice(self):
        history = _history(60, size=400)
        assembler = ContextAssembler(total_budget=3000, response_reserve=500)
        payload = assembler.assemble_payload(
            "SYSTEM", SessionMode.EXPLORATION, None, _data(), history, now=NOW
        )
        contents = [m["content"] for m in payload.messages]
        assert payload.truncated is True
        assert contents.count(TRUNCATION_NOTICE) == 1
        assert payload.messages[1] == {"role": "system", "content": TRUNCATION_NOTICE}
        assert contents[-1] == history[-1].content

        kept = payload.messages[2:]
        assert kept[0]["role"] == "user"
        # kept turns are a contiguous suffix of the history
        assert [m["content"] for m in kept] == [m.content for m in history[-len(kept):]]

    def test_payload_within_budget(self):
        history = _history(200, size=300)
        assembler = ContextAssembler(total_budget=5000, response_reserve=1000)
        payload = assembler.assemble_payload(
            "SYSTEM", SessionMode.PLANNING, None, _data(), history, now=NOW
        )
        assert payload.estimated_tokens == estimate_messages_tokens(payload.messages)
        assert payload.estimated_tokens <= 4000

    def test_newest_turn_too_large(self):
        history = _history(3, size=40) + [
            SessionMessage(
                session_id="s", role=ChatRole.USER, content="q" * 40000,
                timestamp=NOW + timedelta(minutes=5), sequence=3,
            )
        ]
        assembler = ContextAssembler(total_budget=3000, response_reserve=500)
        payload = assembler.assemble_payload(
            "SYSTEM", SessionMode.EXPLORATION, None, _data(), history, now=NOW
        )
        assert payload.truncated is True
        assert len(payload.messages) == 2

    def test_empty_situation_leaves_prompt_alone(self):
        # Project review with no portfolio, history or patterns renders nothing
        payload = ContextAssembler().assemble_payload(
            "SYSTEM", SessionMode.EXECUTION_SUPPORT, SessionSubMode.PROJECT_REVIEW, _data(), [], now=NOW
        )
        assert payload.system_prompt == "SYSTEM"
        assert payload.messages == [{"role": "system", "content": "SYSTEM"}]
