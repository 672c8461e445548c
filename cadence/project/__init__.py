"""Read-only project aggregate consumed by the context assembler."""
