"""Project aggregate read by the context assembler.

These records are owned elsewhere (the project-management domain); the engine
only reads them to build the situational context block.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from cadence.session.models import Session, SessionSummary, new_id


class LifecycleState(str, Enum):
    FOCUSED = "focused"
    QUEUED = "queued"
    IDEA = "idea"
    COMPLETED = "completed"
    PAUSED = "paused"
    ABANDONED = "abandoned"


class ItemStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    WAITING = "waiting"
    COMPLETED = "completed"


class Priority(str, Enum):
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class EffortType(str, Enum):
    DEEP_FOCUS = "deep_focus"
    CREATIVE = "creative"
    ADMINISTRATIVE = "administrative"
    COMMUNICATION = "communication"
    PHYSICAL = "physical"
    QUICK_WIN = "quick_win"


class BlockedType(str, Enum):
    POORLY_DEFINED = "poorly_defined"
    TOO_LARGE = "too_large"
    MISSING_INFO = "missing_info"
    MISSING_RESOURCE = "missing_resource"
    DECISION_REQUIRED = "decision_required"


class PlanningDepth(str, Enum):
    FULL_ROADMAP = "full_roadmap"
    MILESTONE_PLAN = "milestone_plan"
    TASK_LIST = "task_list"
    OPEN_EMERGENT = "open_emergent"


class DeliverableType(str, Enum):
    VISION_STATEMENT = "vision_statement"
    TECHNICAL_BRIEF = "technical_brief"
    SETUP_SPECIFICATION = "setup_specification"
    RESEARCH_PLAN = "research_plan"
    CREATIVE_BRIEF = "creative_brief"


class DeliverableStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REVISED = "revised"


@dataclass
class Project:
    name: str
    lifecycle_state: LifecycleState = LifecycleState.FOCUSED
    definition_of_done: str | None = None
    quick_capture_transcript: str | None = None
    notes: str | None = None
    id: str = field(default_factory=new_id)


@dataclass
class Phase:
    name: str
    status: ItemStatus = ItemStatus.NOT_STARTED
    id: str = field(default_factory=new_id)


@dataclass
class Milestone:
    phase_id: str
    name: str
    status: ItemStatus = ItemStatus.NOT_STARTED
    deadline: datetime | None = None
    id: str = field(default_factory=new_id)


@dataclass
class Task:
    milestone_id: str
    name: str
    status: ItemStatus = ItemStatus.NOT_STARTED
    priority: Priority = Priority.NORMAL
    effort_type: EffortType | None = None
    blocked_type: BlockedType | None = None
    times_deferred: int = 0
    id: str = field(default_factory=new_id)


@dataclass
class Subtask:
    name: str
    is_completed: bool = False
    id: str = field(default_factory=new_id)


@dataclass
class RecommendedDeliverable:
    type: DeliverableType
    status: DeliverableStatus = DeliverableStatus.PENDING
    rationale: str | None = None


@dataclass
class ProcessProfile:
    planning_depth: PlanningDepth
    recommended_deliverables: list[RecommendedDeliverable] = field(default_factory=list)
    suggested_mode_path: list[str] = field(default_factory=list)


@dataclass
class Deliverable:
    type: DeliverableType
    title: str
    content: str = ""
    status: DeliverableStatus = DeliverableStatus.PENDING
    id: str = field(default_factory=new_id)


@dataclass
class AccuracyTrend:
    older: float
    newer: float


@dataclass
class PortfolioProject:
    project: Project
    session_count: int = 0
    days_since_last_session: int | None = None
    latest_summary: SessionSummary | None = None


@dataclass
class PortfolioData:
    projects: list[PortfolioProject] = field(default_factory=list)


@dataclass
class ProjectData:
    """Everything the assembler may draw on for one project."""

    project: Project
    phases: list[Phase] = field(default_factory=list)
    milestones: list[Milestone] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    subtasks_by_task_id: dict[str, list[Subtask]] = field(default_factory=dict)
    process_profile: ProcessProfile | None = None
    deliverables: list[Deliverable] = field(default_factory=list)
    sessions: list[Session] = field(default_factory=list)
    session_summaries: list[SessionSummary] = field(default_factory=list)
    frequently_deferred_tasks: list[Task] = field(default_factory=list)
    estimate_accuracy: float | None = None
    suggested_multiplier: float | None = None
    accuracy_trend: AccuracyTrend | None = None
    portfolio: PortfolioData | None = None
