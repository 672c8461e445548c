"""Response signals and the parser that separates them from prose.

Line signals sit alone on a line::

    [MODE_COMPLETE: exploration]
    [SESSION_END]

Block signals wrap a body::

    [DOCUMENT_DRAFT: vision_statement]
    ...
    [/DOCUMENT_DRAFT]

Anything that doesn't match exactly is left in the prose.
"""

import re
from dataclasses import dataclass, field
from typing import ClassVar

from cadence.agent.actions import Action, find_actions

_BLANK_RUN = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")
_LINE_SIGNAL = re.compile(r"^\[([A-Z_]+)(?::\s*(.*?))?\s*\]$")
_BLOCK_OPENER = re.compile(r"\[(DOCUMENT_DRAFT|STRUCTURE_PROPOSAL)(?::([^\]\n]*))?\]")


# ── signal types ────────────────────────────────────────────────


class Signal:
    """Base class; ``tag`` is the marker name on the wire."""
    tag: ClassVar[str]


@dataclass(frozen=True)
class ModeComplete(Signal):
    tag: ClassVar[str] = "MODE_COMPLETE"
    mode: str


@dataclass(frozen=True)
class ProcessRecommendation(Signal):
    tag: ClassVar[str] = "PROCESS_RECOMMENDATION"
    deliverables: str


@dataclass(frozen=True)
class PlanningDepthSignal(Signal):
    tag: ClassVar[str] = "PLANNING_DEPTH"
    depth: str


@dataclass(frozen=True)
class ProjectSummary(Signal):
    tag: ClassVar[str] = "PROJECT_SUMMARY"
    summary: str


@dataclass(frozen=True)
class DeliverablesProduced(Signal):
    tag: ClassVar[str] = "DELIVERABLES_PRODUCED"
    deliverables: str


@dataclass(frozen=True)
class DeliverablesDeferred(Signal):
    tag: ClassVar[str] = "DELIVERABLES_DEFERRED"
    deliverables: str


@dataclass(frozen=True)
class StructureSummary(Signal):
    tag: ClassVar[str] = "STRUCTURE_SUMMARY"
    summary: str


@dataclass(frozen=True)
class FirstAction(Signal):
    tag: ClassVar[str] = "FIRST_ACTION"
    description: str


@dataclass(frozen=True)
class SessionEnd(Signal):
    tag: ClassVar[str] = "SESSION_END"


@dataclass(frozen=True)
class DocumentDraft(Signal):
    tag: ClassVar[str] = "DOCUMENT_DRAFT"
    content: str
    doc_type: str | None = None


@dataclass(frozen=True)
class StructureProposal(Signal):
    tag: ClassVar[str] = "STRUCTURE_PROPOSAL"
    content: str


# Line signals carrying a value, keyed by tag.
LINE_SIGNALS: dict[str, type[Signal]] = {
    cls.tag: cls
    for cls in (
        ModeComplete,
        ProcessRecommendation,
        PlanningDepthSignal,
        ProjectSummary,
        DeliverablesProduced,
        DeliverablesDeferred,
        StructureSummary,
        FirstAction,
    )
}
BARE_SIGNALS: dict[str, type[Signal]] = {SessionEnd.tag: SessionEnd}
BLOCK_SIGNALS: dict[str, type[Signal]] = {
    DocumentDraft.tag: DocumentDraft,
    StructureProposal.tag: StructureProposal,
}


def signal_value(signal: Signal) -> str | None:
    """The single payload of a signal, or None for bare signals."""
    if isinstance(signal, ModeComplete):
        return signal.mode
    if isinstance(signal, (ProcessRecommendation, DeliverablesProduced, DeliverablesDeferred)):
        return signal.deliverables
    if isinstance(signal, PlanningDepthSignal):
        return signal.depth
    if isinstance(signal, (ProjectSummary, StructureSummary)):
        return signal.summary
    if isinstance(signal, FirstAction):
        return signal.description
    if isinstance(signal, (DocumentDraft, StructureProposal)):
        return signal.content
    if isinstance(signal, SessionEnd):
        return None
    raise TypeError(f"Unhandled signal type: {type(signal).__name__}")


def split_list(value: str) -> list[str]:
    """Comma-separated signal value as a clean list."""
    return [item.strip() for item in value.split(",") if item.strip()]


# ── parsing ─────────────────────────────────────────────────────


@dataclass
class ParsedResponse:
    natural_language: str
    signals: list[Signal] = field(default_factory=list)
    actions: list[Action] = field(default_factory=list)


def _line_signal(line: str) -> Signal | None:
    match = _LINE_SIGNAL.match(line.strip())
    if not match:
        return None
    tag, value = match.group(1), match.group(2)
    if value is None:
        cls = BARE_SIGNALS.get(tag)
        return cls() if cls else None
    cls = LINE_SIGNALS.get(tag)
    value = value.strip()
    if cls is None or not value or "]" in value:
        return None
    return cls(value)


class ResponseSignalParser:
    """
    Splits a raw model response into prose, signals and optional actions.

    Never raises: malformed markup simply stays in the prose. Signals are
    ordered by where they appear in the raw text.
    """

    def parse(self, text: str, parse_actions: bool = False) -> ParsedResponse:
        found: list[tuple[int, Signal]] = []

        # 1. Blocks: opener anywhere, first matching closer wins, body is opaque
        segments: list[tuple[int, str]] = []  # (offset in raw text, prose)
        pos = 0
        while True:
            opener = _BLOCK_OPENER.search(text, pos)
            if not opener:
                break
            tag = opener.group(1)
            closer = f"[/{tag}]"
            close_at = text.find(closer, opener.end())
            if close_at == -1:
                # Unclosed: keep the opener as prose and look further on
                segments.append((pos, text[pos:opener.end()]))
                pos = opener.end()
                continue

            body = text[opener.end():close_at].strip()
            if tag == DocumentDraft.tag:
                header = (opener.group(2) or "").strip()
                found.append((opener.start(), DocumentDraft(content=body, doc_type=header or None)))
            else:
                found.append((opener.start(), StructureProposal(content=body)))

            segments.append((pos, text[pos:opener.start()]))
            segments.append((opener.start(), "\n"))
            pos = close_at + len(closer)
        segments.append((pos, text[pos:]))

        # 2. Actions in the remaining prose
        actions: list[Action] = []
        if parse_actions:
            stripped_segments = []
            for offset, prose in segments:
                cursor = 0
                for match in find_actions(prose):
                    stripped_segments.append((offset + cursor, prose[cursor:match.start]))
                    stripped_segments.append((offset + match.start, "\n"))
                    cursor = match.end
                    if match.action is not None:
                        actions.append(match.action)
                stripped_segments.append((offset + cursor, prose[cursor:]))
            segments = stripped_segments

        # 3. Standalone line signals; lines may span segment boundaries
        prose = "".join(p for _, p in segments)
        offsets = self._offset_map(segments)
        kept_lines = []
        cursor = 0
        for line in prose.split("\n"):
            signal = _line_signal(line)
            if signal is not None:
                found.append((offsets(cursor), signal))
            else:
                kept_lines.append(line)
            cursor += len(line) + 1

        natural = _BLANK_RUN.sub("\n\n", "\n".join(kept_lines)).strip()
        found.sort(key=lambda item: item[0])
        return ParsedResponse(
            natural_language=natural,
            signals=[signal for _, signal in found],
            actions=actions,
        )

    @staticmethod
    def _offset_map(segments: list[tuple[int, str]]):
        """Map a position in the joined prose back to the raw text."""
        starts = []
        joined = 0
        for offset, prose in segments:
            starts.append((joined, offset))
            joined += len(prose)

        def lookup(position: int) -> int:
            raw = 0
            for joined_start, raw_start in starts:
                if joined_start > position:
                    break
                raw = raw_start + (position - joined_start)
            return raw

        return lookup

