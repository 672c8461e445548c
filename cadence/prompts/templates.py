"""Prompt template keys, defaults and the override-aware template store."""

import json
import re
from collections.abc import MutableMapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator

from loguru import logger

from cadence.prompts.foundation import FOUNDATION_PROMPT
from cadence.prompts.modes import (
    CHECK_IN_PROMPT,
    DEFINITION_PROMPT,
    EXECUTION_SUPPORT_PROMPT,
    EXPLORATION_PROMPT,
    PLANNING_PROMPT,
    PROJECT_REVIEW_PROMPT,
    RETROSPECTIVE_PROMPT,
    RETURN_BRIEFING_PROMPT,
)
from cadence.prompts.summary import SUMMARY_SYSTEM_PROMPT

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


class TemplateKey(str, Enum):
    FOUNDATION = "foundation"
    EXPLORATION = "exploration"
    DEFINITION = "definition"
    PLANNING = "planning"
    EXECUTION_SUPPORT = "execution_support"
    EXECUTION_SUPPORT_CHECK_IN = "execution_support_check_in"
    EXECUTION_SUPPORT_RETURN_BRIEFING = "execution_support_return_briefing"
    EXECUTION_SUPPORT_PROJECT_REVIEW = "execution_support_project_review"
    EXECUTION_SUPPORT_RETROSPECTIVE = "execution_support_retrospective"
    SUMMARY_GENERATION = "summary_generation"


@dataclass(frozen=True)
class TemplateInfo:
    """Metadata shown by settings surfaces that edit templates."""
    display_name: str
    group: str
    default: str
    variables: dict[str, str]


TEMPLATE_INFO: dict[TemplateKey, TemplateInfo] = {
    TemplateKey.FOUNDATION: TemplateInfo(
        "Foundation", "Foundation", FOUNDATION_PROMPT, {},
    ),
    TemplateKey.EXPLORATION: TemplateInfo(
        "Exploration", "Modes", EXPLORATION_PROMPT,
        {"deliverable_catalogue": "Summary of every deliverable type"},
    ),
    TemplateKey.DEFINITION: TemplateInfo(
        "Definition", "Modes", DEFINITION_PROMPT,
        {
            "deliverable_list": "Deliverables recommended for the project",
            "current_deliverable": "The deliverable being worked on",
            "deliverable_template_info_requirements": "Numbered information requirements",
            "deliverable_template_structure": "Headings of the document to draft",
        },
    ),
    TemplateKey.PLANNING: TemplateInfo(
        "Planning", "Modes", PLANNING_PROMPT, {},
    ),
    TemplateKey.EXECUTION_SUPPORT: TemplateInfo(
        "Execution Support", "Modes", EXECUTION_SUPPORT_PROMPT,
        {"sub_mode": "Active sub-mode name"},
    ),
    TemplateKey.EXECUTION_SUPPORT_CHECK_IN: TemplateInfo(
        "Check-in", "Sub-modes", CHECK_IN_PROMPT, {},
    ),
    TemplateKey.EXECUTION_SUPPORT_RETURN_BRIEFING: TemplateInfo(
        "Return Briefing", "Sub-modes", RETURN_BRIEFING_PROMPT, {},
    ),
    TemplateKey.EXECUTION_SUPPORT_PROJECT_REVIEW: TemplateInfo(
        "Project Review", "Sub-modes", PROJECT_REVIEW_PROMPT, {},
    ),
    TemplateKey.EXECUTION_SUPPORT_RETROSPECTIVE: TemplateInfo(
        "Retrospective", "Sub-modes", RETROSPECTIVE_PROMPT, {},
    ),
    TemplateKey.SUMMARY_GENERATION: TemplateInfo(
        "Summary Generation", "Summaries", SUMMARY_SYSTEM_PROMPT, {},
    ),
}


def render_template(text: str, variables: dict[str, str]) -> str:
    """Replace ``{{name}}`` placeholders; unknown names are left untouched."""
    return _PLACEHOLDER.sub(lambda m: variables.get(m.group(1), m.group(0)), text)


class JsonTemplateOverrides(MutableMapping):
    """Template overrides persisted as a flat JSON object on disk."""

    def __init__(self, path: Path):
        self.path = Path(path).expanduser()
        self._data: dict[str, str] = {}
        if self.path.exists():
            try:
                self._data = dict(json.loads(self.path.read_text()))
            except (OSError, ValueError) as e:
                logger.warning(f"Ignoring unreadable template overrides at {self.path}: {e}")

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __setitem__(self, key: str, value: str) -> None:
        self._data[key] = value
        self._flush()

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self._flush()

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._data, indent=2, ensure_ascii=False))


class PromptTemplateStore:
    """
    Effective prompt templates: a non-empty override, else the compiled default.

    Overrides live in any string mapping keyed by ``TemplateKey`` value.
    """

    def __init__(self, overrides: MutableMapping[str, str] | None = None):
        self.overrides = overrides if overrides is not None else {}

    def template(self, key: TemplateKey) -> str:
        override = self.overrides.get(key.value)
        if override and override.strip():
            return override
        return TEMPLATE_INFO[key].default

    def default(self, key: TemplateKey) -> str:
        return TEMPLATE_INFO[key].default

    def has_override(self, key: TemplateKey) -> bool:
        override = self.overrides.get(key.value)
        return bool(override and override.strip())

    def set_override(self, key: TemplateKey, value: str | None) -> None:
        """Store an override; ``None`` or blank text clears it."""
        if value is None or not value.strip():
            self.clear_override(key)
            return
        self.overrides[key.value] = value
        logger.info(f"Prompt template override set: {key.value}")

    def clear_override(self, key: TemplateKey) -> None:
        if key.value in self.overrides:
            del self.overrides[key.value]
            logger.info(f"Prompt template reset to default: {key.value}")

    def render(self, key: TemplateKey, variables: dict[str, str] | None = None) -> str:
        return render_template(self.template(key), variables or {})
