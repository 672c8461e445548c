"""Session records, lifecycle and storage."""
