"""cadence - project-scoped AI conversation engine."""

__version__ = "0.1.0"
__logo__ = "◷"
