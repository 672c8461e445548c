"""Which context components each mode sees, in what priority, within what budget."""

from dataclasses import dataclass
from enum import Enum

from cadence.session.models import SessionMode, SessionSubMode


class ComponentKind(str, Enum):
    PROJECT_OVERVIEW = "project_overview"
    PROCESS_PROFILE = "process_profile"
    DOCUMENTS = "documents"
    CURRENT_STRUCTURE = "current_structure"
    FREQUENTLY_DEFERRED = "frequently_deferred"
    SESSION_HISTORY = "session_history"
    ESTIMATE_CALIBRATION = "estimate_calibration"
    CROSS_SESSION_PATTERNS = "cross_session_patterns"
    PORTFOLIO_SUMMARY = "portfolio_summary"


@dataclass(frozen=True)
class ContextComponent:
    kind: ComponentKind
    priority: int  # 1 = most important


@dataclass(frozen=True)
class ContextConfig:
    components: tuple[ContextComponent, ...]
    token_budget: int
    full_summary_count: int
    condensed_summary_count: int

    def kinds(self) -> list[ComponentKind]:
        return [c.kind for c in self.components]


def _components(*pairs: tuple[ComponentKind, int]) -> tuple[ContextComponent, ...]:
    return tuple(ContextComponent(kind, priority) for kind, priority in pairs)


K = ComponentKind

EXPLORATION = ContextConfig(
    components=_components(
        (K.PROJECT_OVERVIEW, 1),
        (K.SESSION_HISTORY, 2),
        (K.DOCUMENTS, 3),
        (K.CURRENT_STRUCTURE, 4),
    ),
    token_budget=2000,
    full_summary_count=1,
    condensed_summary_count=2,
)

DEFINITION = ContextConfig(
    components=_components(
        (K.PROJECT_OVERVIEW, 1),
        (K.PROCESS_PROFILE, 1),
        (K.SESSION_HISTORY, 2),
        (K.DOCUMENTS, 2),
    ),
    token_budget=3000,
    full_summary_count=2,
    condensed_summary_count=2,
)

PLANNING = ContextConfig(
    components=_components(
        (K.PROJECT_OVERVIEW, 1),
        (K.PROCESS_PROFILE, 1),
        (K.DOCUMENTS, 1),
        (K.SESSION_HISTORY, 2),
        (K.CURRENT_STRUCTURE, 2),
    ),
    token_budget=4000,
    full_summary_count=2,
    condensed_summary_count=3,
)

EXECUTION_SUPPORT = ContextConfig(
    components=_components(
        (K.PROJECT_OVERVIEW, 1),
        (K.PROCESS_PROFILE, 2),
        (K.DOCUMENTS, 3),
        (K.SESSION_HISTORY, 1),
        (K.CURRENT_STRUCTURE, 2),
        (K.FREQUENTLY_DEFERRED, 2),
        (K.ESTIMATE_CALIBRATION, 3),
        (K.CROSS_SESSION_PATTERNS, 2),
    ),
    token_budget=5000,
    full_summary_count=3,
    condensed_summary_count=3,
)

PROJECT_REVIEW = ContextConfig(
    components=_components(
        (K.PORTFOLIO_SUMMARY, 1),
        (K.CROSS_SESSION_PATTERNS, 2),
        (K.SESSION_HISTORY, 2),
    ),
    token_budget=3000,
    full_summary_count=1,
    condensed_summary_count=3,
)

RETROSPECTIVE = ContextConfig(
    components=_components(
        (K.PROJECT_OVERVIEW, 1),
        (K.PROCESS_PROFILE, 1),
        (K.DOCUMENTS, 2),
        (K.SESSION_HISTORY, 1),
        (K.CURRENT_STRUCTURE, 2),
        (K.CROSS_SESSION_PATTERNS, 2),
    ),
    token_budget=5000,
    full_summary_count=3,
    condensed_summary_count=5,
)

del K


def context_config_for(mode: SessionMode, sub_mode: SessionSubMode | None = None) -> ContextConfig:
    """Component list and budget for a (mode, sub-mode) pair."""
    if mode == SessionMode.EXPLORATION:
        return EXPLORATION
    if mode == SessionMode.DEFINITION:
        return DEFINITION
    if mode == SessionMode.PLANNING:
        return PLANNING
    if sub_mode == SessionSubMode.PROJECT_REVIEW:
        return PROJECT_REVIEW
    if sub_mode == SessionSubMode.RETROSPECTIVE:
        return RETROSPECTIVE
    return EXECUTION_SUPPORT
