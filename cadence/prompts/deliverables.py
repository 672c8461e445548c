"""Catalogue of deliverable documents the definition mode can produce."""

from dataclasses import dataclass, field

from cadence.project.models import DeliverableType


@dataclass(frozen=True)
class DocumentSection:
    heading: str
    description: str


@dataclass(frozen=True)
class DeliverableTemplate:
    type: DeliverableType
    purpose: str
    when_useful: str
    information_requirements: tuple[str, ...] = field(default_factory=tuple)
    document_structure: tuple[DocumentSection, ...] = field(default_factory=tuple)

    def formatted_requirements(self) -> str:
        return "\n".join(
            f"{i}. {req}" for i, req in enumerate(self.information_requirements, start=1)
        )

    def formatted_structure(self) -> str:
        return "\n\n".join(
            f"**{s.heading}**: {s.description}" for s in self.document_structure
        )


TEMPLATES: dict[DeliverableType, DeliverableTemplate] = {
    DeliverableType.VISION_STATEMENT: DeliverableTemplate(
        type=DeliverableType.VISION_STATEMENT,
        purpose="States what the project is: intent, principles, boundaries and definition of done.",
        when_useful="Nearly always; any project whose scope or intent isn't self-evident.",
        information_requirements=(
            "Core intent, in the user's own words.",
            "Motivation and personal significance.",
            "Who the project is for.",
            "Scope: what is explicitly in and out.",
            "Design principles that guide decisions.",
            "A concrete definition of done.",
            "The user's mental model or key metaphor (optional).",
            "Ethical considerations or constraints (if any).",
        ),
        document_structure=(
            DocumentSection("Intent", "What the project is and aims to achieve, in two or three paragraphs."),
            DocumentSection("Motivation", "Why it exists and why the user cares."),
            DocumentSection("Audience", "Who it is for and what they need."),
            DocumentSection("Scope", "What is included and what is excluded."),
            DocumentSection("Design Principles", "Guiding values, each briefly explained."),
            DocumentSection("Definition of Done", "Concrete, verifiable completion criteria."),
            DocumentSection("Mental Model", "(If applicable) The frame the user thinks in."),
            DocumentSection("Ethical Considerations", "(If applicable) Commitments about how the project operates."),
        ),
    ),
    DeliverableType.TECHNICAL_BRIEF: DeliverableTemplate(
        type=DeliverableType.TECHNICAL_BRIEF,
        purpose="Records the technical architecture, technology choices and implementation approach.",
        when_useful="Software projects, most hardware projects, anything where technology choices cascade.",
        information_requirements=(
            "Technology stack and the reason for each choice.",
            "High-level architecture and how components relate.",
            "Data model: what data exists and how it is stored.",
            "Key technical decisions and their reasoning.",
            "Integration points with external systems.",
            "Constraints: platforms, performance, accessibility.",
            "Implementation order and dependency chain.",
            "Known risks that need prototyping or validation.",
        ),
        document_structure=(
            DocumentSection("Technology Stack", "Each choice with its rationale."),
            DocumentSection("Architecture", "System structure and component relationships."),
            DocumentSection("Data Model", "Data, structure and storage."),
            DocumentSection("Key Decisions", "Significant choices and reasoning."),
            DocumentSection("Integration Points", "External connections and dependencies."),
            DocumentSection("Constraints", "Technical limits and requirements."),
            DocumentSection("Implementation Order", "What gets built first and why."),
            DocumentSection("Risks and Uncertainties", "Known unknowns needing validation."),
        ),
    ),
    DeliverableType.SETUP_SPECIFICATION: DeliverableTemplate(
        type=DeliverableType.SETUP_SPECIFICATION,
        purpose="Lists the physical, equipment or environmental requirements of a tangible project.",
        when_useful="Events, hardware builds, music production, anything involving physical resources.",
        information_requirements=(
            "Equipment and materials needed.",
            "How the pieces connect (wiring, signal chain, layout).",
            "What the venue or environment must provide.",
            "Sourcing, procurement and budget.",
            "Setup and teardown sequence.",
            "Contingencies and a minimum viable setup.",
        ),
        document_structure=(
            DocumentSection("Equipment and Materials", "Everything needed, as specific as known."),
            DocumentSection("Configuration", "How everything connects physically."),
            DocumentSection("Environment Requirements", "What the space must provide."),
            DocumentSection("Procurement", "What to acquire, where from, at what cost."),
            DocumentSection("Setup Process", "Step-by-step sequence to get operational."),
            DocumentSection("Contingencies", "Backups and the minimum viable configuration."),
        ),
    ),
    DeliverableType.RESEARCH_PLAN: DeliverableTemplate(
        type=DeliverableType.RESEARCH_PLAN,
        purpose="Organises an inquiry around clear questions, sources and method.",
        when_useful="Learning, investigation or decision projects whose output is knowledge or a decision.",
        information_requirements=(
            "The central question or objective.",
            "Sub-questions that build toward it.",
            "Sources and methods of investigation.",
            "What the user already knows.",
            "How to tell when the research is done enough.",
            "What the findings will be used for.",
        ),
        document_structure=(
            DocumentSection("Central Question", "The core inquiry, stated clearly."),
            DocumentSection("Sub-Questions", "Component questions toward the central one."),
            DocumentSection("Existing Knowledge", "The starting point."),
            DocumentSection("Sources and Methods", "Where and how to investigate."),
            DocumentSection("Success Criteria", "When enough has been learned."),
            DocumentSection("Application", "What the knowledge is for."),
        ),
    ),
    DeliverableType.CREATIVE_BRIEF: DeliverableTemplate(
        type=DeliverableType.CREATIVE_BRIEF,
        purpose="Captures creative intent so it guides the work without over-constraining it.",
        when_useful="Music, visual art, writing; any creative work driven by intuition and discovery.",
        information_requirements=(
            "What the work should express or evoke.",
            "Aesthetic references: works, styles, artists.",
            "Medium, tools and materials.",
            "Where and how the work will be experienced.",
            "Constraints: duration, format, budget, timeline.",
            "Open questions the user hopes to discover answers to.",
        ),
        document_structure=(
            DocumentSection("Intent", "What the work aims to express or evoke."),
            DocumentSection("References", "Works, styles and artists that inform it."),
            DocumentSection("Medium and Materials", "Tools, instruments, software, materials."),
            DocumentSection("Context", "Where and how it will be experienced."),
            DocumentSection("Constraints", "Duration, format, budget, timeline."),
            DocumentSection("Open Questions", "What the process should discover."),
        ),
    ),
}


def get_template(deliverable_type: DeliverableType) -> DeliverableTemplate:
    return TEMPLATES[deliverable_type]


def catalogue_summary() -> str:
    """One line per deliverable type, for the exploration prompt."""
    return "\n".join(
        f"- **{t.type.value}**: {t.purpose} Useful when: {t.when_useful}"
        for t in TEMPLATES.values()
    )
