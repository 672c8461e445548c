"""Approximate token estimation for context budgeting."""

CHARS_PER_TOKEN = 4  # Cross-model estimate (EN prose/markup)
MESSAGE_OVERHEAD_TOKENS = 4  # Role and separators per message


def estimate_tokens(text: str) -> int:
    """Estimate token count from character count."""
    return len(text) // CHARS_PER_TOKEN


def estimate_message_tokens(message: dict) -> int:
    return MESSAGE_OVERHEAD_TOKENS + estimate_tokens(message.get("content", "") or "")


def estimate_messages_tokens(messages: list[dict]) -> int:
    """Estimate total tokens for a message list."""
    return sum(estimate_message_tokens(m) for m in messages)
