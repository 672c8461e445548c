"""Conversation pipeline: composition, context, parsing, summaries."""
