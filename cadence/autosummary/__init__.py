"""Auto-summarisation of abandoned sessions."""
