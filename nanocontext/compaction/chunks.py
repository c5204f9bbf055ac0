"""Split a message range into bounded, contiguous groups for summarization."""

from __future__ import annotations

import math
from typing import Sequence

from nanocontext.history.models import HistoryMessage

SUMMARY_CHUNK_MAX_MESSAGES = 10
SUMMARY_CHUNK_MAX_CHARS = 3200
# Role label plus separators per message in the rendered prompt
MESSAGE_OVERHEAD_CHARS = 16


def clamp_limit(value: float | int | None) -> int:
    """Coerce a configured limit to a positive integer; invalid values become 1."""
    if value is None or isinstance(value, bool):
        return 1
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 1
    if not math.isfinite(number) or number <= 0:
        return 1
    return max(1, int(number))


def estimate_message_chars(message: HistoryMessage) -> int:
    return len(message.content) + MESSAGE_OVERHEAD_CHARS


def split_summary_chunks(
    messages: Sequence[HistoryMessage],
    max_messages: float | int = SUMMARY_CHUNK_MAX_MESSAGES,
    max_chars: float | int = SUMMARY_CHUNK_MAX_CHARS,
) -> list[list[HistoryMessage]]:
    """
    Greedily group *messages* into chunks bounded by count and character budget.

    Order is preserved and nothing is dropped or truncated: a message larger than
    the character budget on its own becomes a single-message chunk.
    """
    message_limit = clamp_limit(max_messages)
    char_limit = clamp_limit(max_chars)
    chunks: list[list[HistoryMessage]] = []
    current: list[HistoryMessage] = []
    current_chars = 0

    for message in messages:
        size = estimate_message_chars(message)
        hit_message_limit = len(current) >= message_limit
        hit_char_limit = bool(current) and current_chars + size > char_limit
        if hit_message_limit or hit_char_limit:
            chunks.append(current)
            current = [message]
            current_chars = size
            continue
        current.append(message)
        current_chars += size

    if current:
        chunks.append(current)
    return chunks
