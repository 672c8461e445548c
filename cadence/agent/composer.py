"""Layered system prompt composition."""

from cadence.prompts.templates import PromptTemplateStore, TemplateKey
from cadence.session.models import SessionMode, SessionSubMode

LAYER_SEPARATOR = "\n\n---\n\n"

MODE_TEMPLATES: dict[SessionMode, TemplateKey] = {
    SessionMode.EXPLORATION: TemplateKey.EXPLORATION,
    SessionMode.DEFINITION: TemplateKey.DEFINITION,
    SessionMode.PLANNING: TemplateKey.PLANNING,
    SessionMode.EXECUTION_SUPPORT: TemplateKey.EXECUTION_SUPPORT,
}

SUB_MODE_TEMPLATES: dict[SessionSubMode, TemplateKey] = {
    SessionSubMode.CHECK_IN: TemplateKey.EXECUTION_SUPPORT_CHECK_IN,
    SessionSubMode.RETURN_BRIEFING: TemplateKey.EXECUTION_SUPPORT_RETURN_BRIEFING,
    SessionSubMode.PROJECT_REVIEW: TemplateKey.EXECUTION_SUPPORT_PROJECT_REVIEW,
    SessionSubMode.RETROSPECTIVE: TemplateKey.EXECUTION_SUPPORT_RETROSPECTIVE,
}


class PromptComposer:
    """Joins the foundation layer with the mode (and sub-mode) layer."""

    def __init__(self, store: PromptTemplateStore):
        self.store = store

    def compose(
        self,
        mode: SessionMode,
        sub_mode: SessionSubMode | None = None,
        variables: dict[str, str] | None = None,
    ) -> str:
        """Layer 1 + separator + layer 2. Pure given the store's state."""
        foundation = self.store.render(TemplateKey.FOUNDATION, variables)
        return foundation + LAYER_SEPARATOR + self.layer2_prompt(mode, sub_mode, variables)

    def layer2_prompt(
        self,
        mode: SessionMode,
        sub_mode: SessionSubMode | None = None,
        variables: dict[str, str] | None = None,
    ) -> str:
        layer = self.store.render(MODE_TEMPLATES[mode], variables)
        if mode == SessionMode.EXECUTION_SUPPORT:
            # No sub-mode means a check-in
            sub_mode = sub_mode or SessionSubMode.CHECK_IN
            layer += "\n\n" + self.store.render(SUB_MODE_TEMPLATES[sub_mode], variables)
        return layer

    def summary_prompt(self) -> str:
        return self.store.render(TemplateKey.SUMMARY_GENERATION)
