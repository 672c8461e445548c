"""Context assembler: situational context block and bounded message payload."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from loguru import logger

from cadence.agent.composer import LAYER_SEPARATOR
from cadence.agent.context_config import ComponentKind, ContextComponent, context_config_for
from cadence.agent.patterns import CrossSessionPatterns, compute_patterns
from cadence.agent.tokens import estimate_message_tokens, estimate_messages_tokens, estimate_tokens
from cadence.project.models import (
    AccuracyTrend,
    DeliverableStatus,
    PortfolioData,
    Priority,
    ProcessProfile,
    ProjectData,
    Task,
)
from cadence.session.models import (
    ChatRole,
    SessionMessage,
    SessionMode,
    SessionSubMode,
    SessionSummary,
    utcnow,
)

SECTION_SEPARATOR = "\n\n"
TRUNCATION_NOTICE = "[Earlier conversation history was truncated to fit within token budget]"
MAX_DOCUMENT_CHARS = 2000

DEFAULT_TOTAL_BUDGET = 20000
DEFAULT_RESPONSE_RESERVE = 2500


def _truncation_marker(total_chars: int) -> str:
    return f"(truncated, {total_chars} characters total)"


def _date(value: datetime) -> str:
    return value.strftime("%Y-%m-%d")


@dataclass
class ContextPayload:
    """Messages ready for the model client, plus their estimated size."""
    system_prompt: str
    messages: list[dict[str, str]] = field(default_factory=list)
    estimated_tokens: int = 0
    truncated: bool = False


class ContextAssembler:
    """
    Builds the per-turn context within approximate token budgets.

    The situational block (layer 3) has a per-mode budget; the whole payload
    has ``total_budget`` minus ``response_reserve``. Both are measured with
    ``estimate_tokens``.
    """

    def __init__(
        self,
        total_budget: int = DEFAULT_TOTAL_BUDGET,
        response_reserve: int = DEFAULT_RESPONSE_RESERVE,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.total_budget = total_budget
        self.response_reserve = response_reserve
        self.clock = clock

    # ── public API ──────────────────────────────────────────────

    def assemble_situation(
        self,
        mode: SessionMode,
        sub_mode: SessionSubMode | None,
        data: ProjectData,
        now: datetime | None = None,
    ) -> str:
        """
        Render the layer-3 context block for a mode.

        Components are taken in priority order. A component that doesn't fit
        the remaining budget is dropped whole, except documents, which are
        cut short with a truncation marker. Empty components are omitted.

        Returns:
            The block, possibly empty; never over the mode's budget.
        """
        config = context_config_for(mode, sub_mode)
        now = now or self.clock()

        included: list[str] = []
        for component in sorted(config.components, key=lambda c: c.priority):
            text = self._render(component, data, config, now)
            if not text:
                continue

            if estimate_tokens(SECTION_SEPARATOR.join(included + [text])) <= config.token_budget:
                included.append(text)
                continue

            if component.kind == ComponentKind.DOCUMENTS:
                shortened = self._truncate_to_fit(included, text, config.token_budget)
                if shortened:
                    included.append(shortened)
                    continue

            logger.debug(
                f"Context: dropped {component.kind.value} "
                f"({estimate_tokens(text)} tokens over a {config.token_budget} budget)"
            )

        return SECTION_SEPARATOR.join(included)

    def assemble_payload(
        self,
        system_prompt: str,
        mode: SessionMode,
        sub_mode: SessionSubMode | None,
        data: ProjectData,
        history: list[SessionMessage],
        now: datetime | None = None,
    ) -> ContextPayload:
        """
        Build the message list: system prompt with situational block, then
        as much recent history as fits.

        Args:
            system_prompt: Composed layer 1 + layer 2 prompt.
            mode: Session mode.
            sub_mode: Execution-support sub-mode, if any.
            data: Project aggregate for the situational block.
            history: Stored turns, oldest first, including the new user turn.
            now: Reference time for recency calculations.

        Returns:
            ContextPayload. When older turns were cut, exactly one truncation
            notice follows the system message.
        """
        situation = self.assemble_situation(mode, sub_mode, data, now)
        full_prompt = system_prompt + LAYER_SEPARATOR + situation if situation else system_prompt
        system_msg = {"role": "system", "content": full_prompt}

        turns = [m.to_llm() for m in history]
        available = self.total_budget - self.response_reserve - estimate_message_tokens(system_msg)

        if estimate_messages_tokens(turns) <= available:
            messages = [system_msg] + turns
            truncated = False
        else:
            notice = {"role": "system", "content": TRUNCATION_NOTICE}
            kept = self._fit_suffix(turns, available - estimate_message_tokens(notice))
            messages = [system_msg, notice] + kept
            truncated = True
            logger.info(
                f"Context: history truncated to {len(kept)} of {len(turns)} messages"
            )

        return ContextPayload(
            system_prompt=full_prompt,
            messages=messages,
            estimated_tokens=estimate_messages_tokens(messages),
            truncated=truncated,
        )

    # ── budget helpers ──────────────────────────────────────────

    @staticmethod
    def _fit_suffix(turns: list[dict], budget: int) -> list[dict]:
        """Longest suffix within budget, starting at a user turn."""
        kept: list[dict] = []
        remaining = budget
        for msg in reversed(turns):
            cost = estimate_message_tokens(msg)
            if cost > remaining:
                break
            kept.append(msg)
            remaining -= cost
        kept.reverse()

        # Providers expect the first non-system turn to come from the user
        while kept and kept[0]["role"] != ChatRole.USER.value:
            kept.pop(0)
        return kept

    @staticmethod
    def _truncate_to_fit(included: list[str], text: str, budget: int) -> str | None:
        """Longest prefix of ``text`` plus a marker that still fits the budget."""
        marker = "\n" + _truncation_marker(len(text))
        header_len = len(text.split("\n", 1)[0])

        def fits(n: int) -> bool:
            candidate = SECTION_SEPARATOR.join(included + [text[:n] + marker])
            return estimate_tokens(candidate) <= budget

        lo, hi = 0, len(text)
        while lo < hi:
            mid = (lo + hi + 1) // 2
            if fits(mid):
                lo = mid
            else:
                hi = mid - 1

        if lo <= header_len or not fits(lo):
            return None
        return text[:lo] + marker

    # ── component rendering ─────────────────────────────────────

    def _render(self, component: ContextComponent, data: ProjectData, config, now: datetime) -> str | None:
        kind = component.kind
        if kind == ComponentKind.PROJECT_OVERVIEW:
            return self._format_overview(data)
        if kind == ComponentKind.PROCESS_PROFILE:
            return self._format_process_profile(data.process_profile)
        if kind == ComponentKind.DOCUMENTS:
            return self._format_documents(data)
        if kind == ComponentKind.CURRENT_STRUCTURE:
            return self._format_structure(data)
        if kind == ComponentKind.FREQUENTLY_DEFERRED:
            return self._format_frequently_deferred(data.frequently_deferred_tasks)
        if kind == ComponentKind.SESSION_HISTORY:
            return self._format_session_history(
                data.session_summaries, config.full_summary_count, config.condensed_summary_count
            )
        if kind == ComponentKind.ESTIMATE_CALIBRATION:
            return self._format_calibration(
                data.estimate_accuracy, data.suggested_multiplier, data.accuracy_trend
            )
        if kind == ComponentKind.CROSS_SESSION_PATTERNS:
            patterns = compute_patterns(
                data.sessions, data.session_summaries, data.frequently_deferred_tasks, now, tasks=data.tasks
            )
            return self._format_patterns(patterns)
        if kind == ComponentKind.PORTFOLIO_SUMMARY:
            return self._format_portfolio(data.portfolio)
        raise ValueError(f"Unhandled context component: {kind}")

    @staticmethod
    def _format_overview(data: ProjectData) -> str:
        project = data.project
        lines = [f"PROJECT: {project.name}", f"State: {project.lifecycle_state.value}"]
        if project.definition_of_done:
            lines.append(f"Definition of Done: {project.definition_of_done}")
        if project.quick_capture_transcript:
            lines.append(f"Original Capture: {project.quick_capture_transcript}")
        if project.notes:
            lines.append(f"Notes: {project.notes}")
        return "\n".join(lines)

    @staticmethod
    def _format_process_profile(profile: ProcessProfile | None) -> str | None:
        if profile is None:
            return None
        lines = ["PROCESS PROFILE:", f"Planning depth: {profile.planning_depth.value}"]
        if profile.recommended_deliverables:
            lines.append("Recommended deliverables:")
            for rec in profile.recommended_deliverables:
                line = f"  - {rec.type.value} ({rec.status.value})"
                if rec.rationale:
                    line += f": {rec.rationale}"
                lines.append(line)
        if profile.suggested_mode_path:
            lines.append("Suggested mode path: " + " -> ".join(profile.suggested_mode_path))
        return "\n".join(lines)

    @staticmethod
    def _format_documents(data: ProjectData) -> str | None:
        finished = [
            d for d in data.deliverables
            if d.status in (DeliverableStatus.COMPLETED, DeliverableStatus.REVISED)
        ]
        if not finished:
            return None

        lines = ["DOCUMENTS:"]
        for doc in finished:
            lines.append("")
            lines.append(f"[{doc.type.value}: {doc.title}]")
            if len(doc.content) > MAX_DOCUMENT_CHARS:
                lines.append(doc.content[:MAX_DOCUMENT_CHARS])
                lines.append(_truncation_marker(len(doc.content)))
            else:
                lines.append(doc.content)
        return "\n".join(lines)

    @staticmethod
    def _format_structure(data: ProjectData) -> str | None:
        if not data.phases:
            return None

        lines = ["CURRENT STRUCTURE:"]
        for phase in data.phases:
            lines.append(f"PHASE: {phase.name} ({phase.status.value})")
            for ms in (m for m in data.milestones if m.phase_id == phase.id):
                ms_line = f"  MILESTONE: {ms.name} ({ms.status.value})"
                if ms.deadline:
                    ms_line += f" due: {_date(ms.deadline)}"
                lines.append(ms_line)

                for task in (t for t in data.tasks if t.milestone_id == ms.id):
                    task_line = f"    TASK: {task.name} ({task.status.value})"
                    if task.priority == Priority.HIGH:
                        task_line += " [HIGH]"
                    if task.effort_type:
                        task_line += f" [{task.effort_type.value}]"
                    if task.blocked_type:
                        task_line += f" [BLOCKED: {task.blocked_type.value}]"
                    if task.times_deferred > 0:
                        task_line += f" [deferred {task.times_deferred}x]"
                    lines.append(task_line)

                    for subtask in data.subtasks_by_task_id.get(task.id, []):
                        check = "x" if subtask.is_completed else " "
                        lines.append(f"      [{check}] {subtask.name}")
        return "\n".join(lines)

    @staticmethod
    def _format_frequently_deferred(tasks: list[Task]) -> str | None:
        if not tasks:
            return None
        lines = ["FREQUENTLY DEFERRED:"]
        lines.extend(f"- {t.name} (deferred {t.times_deferred}x)" for t in tasks)
        return "\n".join(lines)

    def _format_session_history(
        self, summaries: list[SessionSummary], full_count: int, condensed_count: int
    ) -> str | None:
        if not summaries:
            return None

        ordered = sorted(summaries, key=lambda s: s.ended_at, reverse=True)
        lines = ["SESSION HISTORY:"]
        for summary in ordered[:full_count]:
            lines.append("")
            lines.append(self._format_full_summary(summary))

        condensed = ordered[full_count:full_count + condensed_count]
        if condensed:
            lines.append("")
            lines.append("Earlier sessions (condensed):")
            lines.extend(self._format_condensed_summary(s) for s in condensed)
        return "\n".join(lines)

    @staticmethod
    def _mode_label(summary: SessionSummary) -> str:
        if summary.sub_mode:
            return f"{summary.mode.value}/{summary.sub_mode.value}"
        return summary.mode.value

    def _format_full_summary(self, summary: SessionSummary) -> str:
        lines = [
            f"Session ({self._mode_label(summary)}) {_date(summary.started_at)} "
            f"to {_date(summary.ended_at)}:"
        ]
        sections = [
            ("Decisions", summary.content_established.decisions),
            ("Facts learned", summary.content_established.facts_learned),
            ("Progress", summary.content_established.progress_made),
            ("Patterns", summary.content_observed.patterns),
            ("Concerns", summary.content_observed.concerns),
            ("Next actions", summary.what_comes_next.next_actions),
            ("Open questions", summary.what_comes_next.open_questions),
        ]
        for label, items in sections:
            if items:
                lines.append(f"  {label}: " + "; ".join(items))
        return "\n".join(lines)

    def _format_condensed_summary(self, summary: SessionSummary) -> str:
        parts = []
        if summary.content_established.decisions:
            parts.append("decided: " + ", ".join(summary.content_established.decisions))
        if summary.content_observed.patterns:
            parts.append("patterns: " + ", ".join(summary.content_observed.patterns))
        if summary.what_comes_next.next_actions:
            parts.append("next: " + ", ".join(summary.what_comes_next.next_actions))
        detail = "; ".join(parts) if parts else "no notable content"
        return f"  - {_date(summary.started_at)} ({self._mode_label(summary)}): {detail}"

    @staticmethod
    def _format_calibration(
        accuracy: float | None, multiplier: float | None, trend: AccuracyTrend | None
    ) -> str | None:
        if accuracy is None:
            return None
        lines = [
            "ESTIMATE CALIBRATION:",
            f"Average accuracy: {accuracy * 100:.0f}% (actual vs estimated)",
        ]
        if multiplier is not None:
            lines.append(f"Suggested multiplier: {multiplier:.1f}x")
        if trend is not None:
            direction = "improving" if trend.newer >= trend.older else "declining"
            lines.append(
                f"Trend: {direction} ({trend.older * 100:.0f}% -> {trend.newer * 100:.0f}%)"
            )
        return "\n".join(lines)

    @staticmethod
    def _format_patterns(patterns: CrossSessionPatterns) -> str | None:
        lines = []
        if patterns.days_since_last_session is not None:
            lines.append(f"Days since last session: {patterns.days_since_last_session}")
        if patterns.average_session_gap is not None:
            lines.append(f"Average session gap: {patterns.average_session_gap:.1f} days")
        if patterns.completed_session_count > 0:
            lines.append(f"Total completed sessions: {patterns.completed_session_count}")
        if patterns.engagement_trend is not None:
            lines.append(f"Engagement trend: {patterns.engagement_trend.value}")
        if patterns.is_return:
            lines.append("Note: User is returning after an extended break.")
        if patterns.frequently_deferred_task_names:
            lines.append(
                "Repeatedly deferred: " + ", ".join(patterns.frequently_deferred_task_names)
            )
        if patterns.deferral_count > 0:
            lines.append(f"Tasks deferred 3+ times: {patterns.deferral_count}")

        if not lines:
            return None
        return "PATTERNS AND OBSERVATIONS:\n" + "\n".join(lines)

    @staticmethod
    def _format_portfolio(portfolio: PortfolioData | None) -> str | None:
        if portfolio is None or not portfolio.projects:
            return None

        lines = ["PORTFOLIO OVERVIEW:"]
        for entry in portfolio.projects:
            line = (
                f"- {entry.project.name} ({entry.project.lifecycle_state.value}), "
                f"{entry.session_count} sessions"
            )
            if entry.days_since_last_session is not None:
                line += f", last active {entry.days_since_last_session}d ago"
            lines.append(line)

            summary = entry.latest_summary
            if summary:
                if summary.what_comes_next.next_actions:
                    lines.append("  Next: " + summary.what_comes_next.next_actions[0])
                if summary.content_observed.concerns:
                    lines.append("  Concern: " + summary.content_observed.concerns[0])
        return "\n".join(lines)
