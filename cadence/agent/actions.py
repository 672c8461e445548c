"""Action blocks: structured change proposals embedded in model responses.

Grammar::

    [ACTION: TYPE]
    key: value
    other_key: value that may span lines
    [/ACTION]

Parameters are ``key: value`` pairs; a value runs until the next key.
"""

import re
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Callable, ClassVar

from loguru import logger

from cadence.project.models import BlockedType, EffortType, Priority

ACTION_BLOCK = re.compile(r"\[ACTION:\s*(\w+)\s*\](.*?)\[/ACTION\]", re.DOTALL)
PARAM_KEYS = (
    "taskId", "projectId", "documentId", "phaseId", "milestoneId",
    "name", "title", "notes", "content", "reason", "suggestion",
    "blockedType", "checkBackDate", "priority", "effortType",
)
_PARAM_KEY = re.compile(r"(?:^|(?<=[\s,;]))(" + "|".join(PARAM_KEYS) + r"):\s*")


# ── action types ────────────────────────────────────────────────


class Action:
    """Base class; every concrete action declares its wire ``type_name``."""
    type_name: ClassVar[str]
    is_major: ClassVar[bool] = True


@dataclass(frozen=True)
class CompleteTask(Action):
    type_name: ClassVar[str] = "COMPLETE_TASK"
    is_major: ClassVar[bool] = False
    task_id: str


@dataclass(frozen=True)
class UpdateNotes(Action):
    type_name: ClassVar[str] = "UPDATE_NOTES"
    project_id: str
    notes: str


@dataclass(frozen=True)
class FlagBlocked(Action):
    type_name: ClassVar[str] = "FLAG_BLOCKED"
    task_id: str
    blocked_type: BlockedType
    reason: str


@dataclass(frozen=True)
class SetWaiting(Action):
    type_name: ClassVar[str] = "SET_WAITING"
    task_id: str
    reason: str
    check_back_date: date | None = None


@dataclass(frozen=True)
class CreateSubtask(Action):
    type_name: ClassVar[str] = "CREATE_SUBTASK"
    is_major: ClassVar[bool] = False
    task_id: str
    name: str


@dataclass(frozen=True)
class UpdateDocument(Action):
    type_name: ClassVar[str] = "UPDATE_DOCUMENT"
    document_id: str
    content: str


@dataclass(frozen=True)
class IncrementDeferred(Action):
    type_name: ClassVar[str] = "INCREMENT_DEFERRED"
    is_major: ClassVar[bool] = False
    task_id: str


@dataclass(frozen=True)
class SuggestScopeReduction(Action):
    type_name: ClassVar[str] = "SUGGEST_SCOPE_REDUCTION"
    is_major: ClassVar[bool] = False
    project_id: str
    suggestion: str


@dataclass(frozen=True)
class CreateMilestone(Action):
    type_name: ClassVar[str] = "CREATE_MILESTONE"
    phase_id: str
    name: str


@dataclass(frozen=True)
class CreateTask(Action):
    type_name: ClassVar[str] = "CREATE_TASK"
    milestone_id: str
    name: str
    priority: Priority = Priority.NORMAL
    effort_type: EffortType | None = None


@dataclass(frozen=True)
class CreateDocument(Action):
    type_name: ClassVar[str] = "CREATE_DOCUMENT"
    project_id: str
    title: str
    content: str


# ── parameter coercion ──────────────────────────────────────────


class _InvalidParam(ValueError):
    pass


def _uuid(params: dict[str, str], key: str) -> str:
    try:
        return str(uuid.UUID(params[key]))
    except (KeyError, ValueError) as e:
        raise _InvalidParam(f"{key}: expected UUID") from e


def _text(params: dict[str, str], key: str) -> str:
    value = params.get(key, "")
    if not value:
        raise _InvalidParam(f"{key}: missing")
    return value


def _enum(enum_cls, raw: str | None):
    """Match an enum by value or name, tolerating camelCase and spacing."""
    if not raw:
        return None
    normalized = re.sub(r"(?<=[a-z])(?=[A-Z])", "_", raw.strip()).replace(" ", "_").lower()
    for member in enum_cls:
        if normalized in (member.value, member.name.lower()):
            return member
    return None


def _date(raw: str | None) -> date | None:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None


def _flag_blocked(p: dict[str, str]) -> FlagBlocked:
    blocked_type = _enum(BlockedType, p.get("blockedType"))
    if blocked_type is None:
        raise _InvalidParam("blockedType: unknown value")
    return FlagBlocked(task_id=_uuid(p, "taskId"), blocked_type=blocked_type, reason=p.get("reason", ""))


BUILDERS: dict[str, Callable[[dict[str, str]], Action]] = {
    CompleteTask.type_name: lambda p: CompleteTask(task_id=_uuid(p, "taskId")),
    UpdateNotes.type_name: lambda p: UpdateNotes(project_id=_uuid(p, "projectId"), notes=p.get("notes", "")),
    FlagBlocked.type_name: _flag_blocked,
    SetWaiting.type_name: lambda p: SetWaiting(
        task_id=_uuid(p, "taskId"),
        reason=p.get("reason", ""),
        check_back_date=_date(p.get("checkBackDate")),
    ),
    CreateSubtask.type_name: lambda p: CreateSubtask(task_id=_uuid(p, "taskId"), name=_text(p, "name")),
    UpdateDocument.type_name: lambda p: UpdateDocument(
        document_id=_uuid(p, "documentId"), content=p.get("content", "")
    ),
    IncrementDeferred.type_name: lambda p: IncrementDeferred(task_id=_uuid(p, "taskId")),
    SuggestScopeReduction.type_name: lambda p: SuggestScopeReduction(
        project_id=_uuid(p, "projectId"), suggestion=p.get("suggestion", "")
    ),
    CreateMilestone.type_name: lambda p: CreateMilestone(phase_id=_uuid(p, "phaseId"), name=_text(p, "name")),
    CreateTask.type_name: lambda p: CreateTask(
        milestone_id=_uuid(p, "milestoneId"),
        name=_text(p, "name"),
        priority=_enum(Priority, p.get("priority")) or Priority.NORMAL,
        effort_type=_enum(EffortType, p.get("effortType")),
    ),
    CreateDocument.type_name: lambda p: CreateDocument(
        project_id=_uuid(p, "projectId"), title=_text(p, "title"), content=p.get("content", "")
    ),
}


# ── parsing ─────────────────────────────────────────────────────


def parse_params(body: str) -> dict[str, str]:
    """Split ``key: value`` pairs; values are trimmed of whitespace, commas and quotes."""
    params: dict[str, str] = {}
    matches = list(_PARAM_KEY.finditer(body))
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(body)
        value = body[match.end():end].strip().rstrip(",;").strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        params[match.group(1)] = value
    return params


def build_action(type_name: str, body: str) -> Action | None:
    """Build an action from one block, or None if unknown or invalid."""
    builder = BUILDERS.get(type_name.upper())
    if builder is None:
        logger.warning(f"Ignoring unknown action type: {type_name}")
        return None
    try:
        return builder(parse_params(body))
    except _InvalidParam as e:
        logger.warning(f"Ignoring {type_name} action with invalid parameters ({e})")
        return None


@dataclass
class ActionMatch:
    start: int
    end: int
    action: Action | None


def find_actions(text: str) -> list[ActionMatch]:
    """Locate every complete action block in ``text``."""
    return [
        ActionMatch(m.start(), m.end(), build_action(m.group(1), m.group(2)))
        for m in ACTION_BLOCK.finditer(text)
    ]


class ActionParser:
    """Extracts action blocks, returning the cleaned prose and valid actions."""

    def parse(self, text: str) -> tuple[str, list[Action]]:
        matches = find_actions(text)
        actions = [m.action for m in matches if m.action is not None]
        cleaned = ACTION_BLOCK.sub("\n", text)
        return cleaned, actions
