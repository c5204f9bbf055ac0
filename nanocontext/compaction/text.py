"""Text shaping for summarizer prompts, model output, and the local fallback condenser."""

from __future__ import annotations

import re
from typing import Sequence

from nanocontext.history.models import HistoryMessage

PREVIOUS_SUMMARY_LABEL = "Previous condensed summary:"

MAX_PROMPT_CHARS = 5500
PREVIOUS_SUMMARY_MAX_CHARS = 1000

FALLBACK_MAX_CHARS = 1600
FALLBACK_MAX_MESSAGES = 10
_PREVIOUS_SUMMARY_TAIL = 380
_USER_SNIP = 100
_ASSISTANT_SNIP = 130

_LEADING_PREFIX_RE = re.compile(r"^(?:Previous condensed summary:\s*)+", re.IGNORECASE | re.MULTILINE)
_ANY_PREFIX_RE = re.compile(r"(?:Previous condensed summary:\s*)+", re.IGNORECASE)
_BOLD_RE = re.compile(r"\*\*(.*?)\*\*")
_HEADING_LINE_RE = re.compile(r"^#{1,6}\s.*\n+")
_TABLE_RULE_RE = re.compile(r"\n\s*\|[\s|\-:]+\|")
_TABLE_CELL_RE = re.compile(r"\|\s*[^|\n]+\|")
_RUN_IT_BLOCK_RE = re.compile(r"\*\*Run it:\*\*?\s*```.*?```", re.IGNORECASE | re.DOTALL)
_CODE_FENCE_RE = re.compile(r"```.*?```", re.DOTALL)
_WS_RE = re.compile(r"\s+")
_FIRST_SENTENCE_RE = re.compile(r"^[^.!?]+[.!?]?")


def strip_previous_summary_prefix(text: str) -> str:
    """Drop leading "Previous condensed summary:" labels so framing never nests."""
    return _LEADING_PREFIX_RE.sub("", text, count=1).strip()


def frame_previous_summary(summary: str) -> HistoryMessage:
    """Wrap a rolling summary as the prior-context turn of a condensation request."""
    return HistoryMessage(role="assistant", content=f"{PREVIOUS_SUMMARY_LABEL}\n{summary}")


def _is_framed_summary(message: HistoryMessage) -> bool:
    return message.role == "assistant" and message.content.lstrip().startswith(PREVIOUS_SUMMARY_LABEL)


def format_messages_for_summary(messages: Sequence[HistoryMessage]) -> str:
    return "\n\n".join(
        f"{'User' if m.role == 'user' else 'Assistant'}: {m.content}" for m in messages
    )


def trim_messages_for_prompt(messages: Sequence[HistoryMessage]) -> list[HistoryMessage]:
    """
    Shorten an oversized prior-summary turn when the rendered prompt is too long.

    Message boundaries are kept intact; chunking upstream bounds the raw turns.
    """
    out = list(messages)
    if len(format_messages_for_summary(out)) <= MAX_PROMPT_CHARS:
        return out
    if not out or not _is_framed_summary(out[0]):
        return out
    body = strip_previous_summary_prefix(out[0].content)
    if len(body) > PREVIOUS_SUMMARY_MAX_CHARS:
        body = body[: PREVIOUS_SUMMARY_MAX_CHARS - 3].rstrip() + "..."
    return [frame_previous_summary(body), *out[1:]]


def _trim_to_complete_boundary(text: str) -> str:
    last_sentence_end = max(text.rfind("."), text.rfind("!"), text.rfind("?"))
    if last_sentence_end >= 0:
        return text[: last_sentence_end + 1].strip()
    last_line_break = text.rfind("\n")
    if last_line_break > 40:
        return text[:last_line_break].strip()
    if len(text) > 80:
        return text[:77].rstrip() + "..."
    return text


def normalize_summary(raw: str, may_be_truncated: bool = False) -> str:
    """Strip headings and bold markers; cut a length-truncated reply at a clean boundary."""
    cleaned = raw.replace("\r\n", "\n")
    cleaned = _HEADING_LINE_RE.sub("", cleaned, count=1)
    cleaned = _BOLD_RE.sub(r"\1", cleaned).strip()
    if not cleaned:
        return ""
    if not may_be_truncated:
        return cleaned
    trimmed = _trim_to_complete_boundary(cleaned)
    if trimmed:
        return trimmed
    at_word = cleaned[:400].rstrip()
    last_space = at_word.rfind(" ")
    return at_word[:last_space] if last_space > 100 else at_word


def _snip(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def _first_sentence(text: str) -> str:
    match = _FIRST_SENTENCE_RE.match(text)
    return match.group(0).strip() if match else text


def _condense_user(content: str) -> str:
    one_line = _BOLD_RE.sub(r"\1", _WS_RE.sub(" ", content)).strip()
    return _snip(_first_sentence(one_line), _USER_SNIP)


def _condense_assistant(content: str) -> str:
    text = content.replace("\r\n", "\n")
    text = _RUN_IT_BLOCK_RE.sub("", text)
    text = _BOLD_RE.sub(r"\1", text)
    text = _TABLE_RULE_RE.sub("", text)
    text = _TABLE_CELL_RE.sub(" ", text)
    text = _CODE_FENCE_RE.sub("", text)
    text = _WS_RE.sub(" ", text).strip()
    snip = _snip(_first_sentence(text), _ASSISTANT_SNIP)
    return snip or text[:_ASSISTANT_SNIP]


def _condense_to_sentences(text: str, max_chars: int) -> str:
    one_line = _BOLD_RE.sub(r"\1", _WS_RE.sub(" ", text)).strip()
    if len(one_line) <= max_chars:
        return one_line
    head = one_line[:max_chars]
    last = max(head.rfind(". "), head.rfind("! "), head.rfind("? "))
    if last > max_chars / 2:
        return one_line[: last + 1].strip()
    return (head.rstrip() + "…").strip()


def build_fallback_summary(messages: Sequence[HistoryMessage], max_chars: int = FALLBACK_MAX_CHARS) -> str:
    """
    Condense turns locally without a model call.

    Keeps role-prefixed first-sentence excerpts of the most recent messages, with
    markdown (bold, tables, code fences) removed and the total capped at *max_chars*.
    A leading framed prior summary is always kept, condensed to its leading
    sentences, and does not count toward the recent-message window.
    """
    items = list(messages)
    window = items[-FALLBACK_MAX_MESSAGES:]
    if items and _is_framed_summary(items[0]):
        window = [items[0], *items[1:][-FALLBACK_MAX_MESSAGES:]]

    parts: list[str] = []
    for message in window:
        raw = message.content.strip()
        if not raw:
            continue
        if message.role == "user":
            parts.append(f"User: {_condense_user(raw)}")
            continue
        if raw.startswith(PREVIOUS_SUMMARY_LABEL):
            body = _ANY_PREFIX_RE.sub("", strip_previous_summary_prefix(raw)).strip()
            if body:
                parts.append(_condense_to_sentences(body, _PREVIOUS_SUMMARY_TAIL))
            continue
        parts.append(f"Assistant: {_condense_assistant(raw)}")
    joined = strip_previous_summary_prefix("\n\n".join(parts).strip())
    return joined[:max_chars]
