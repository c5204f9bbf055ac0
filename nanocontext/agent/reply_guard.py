"""Flag assistant replies that claim finished work the turn's tool trace does not back up."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from nanocontext.history.models import TurnTrace

DEFAULT_WRITE_TOOLS = frozenset({"write_file", "edit_file"})

_PAST_TENSE_ACTIONS = (
    "created|written|updated|implemented|fixed|added|built|generated|set up|modified"
    "|applied|refactored|deleted|removed|moved|renamed"
)
_EXCLAMATION_ACTIONS = (
    "updated|created|written|fixed|added|built|generated|modified|implemented"
    "|refactored|deleted|removed|moved|renamed"
)

COMPLETION_CLAIM_PATTERN = re.compile(
    rf"\bI(?:'ve| have) (?:{_PAST_TENSE_ACTIONS})\b"
    r"|\ball done\b"
    r"|\beverything(?:'s| is) (?:ready|in place|done|complete)\b"
    rf"|^(?:Done|Finished)!?\s+(?:{_EXCLAMATION_ACTIONS})\b",
    re.IGNORECASE,
)


class CompletionClaimPolicy:
    """Textual rule for spotting completion claims; swap the pattern to tune it."""

    def __init__(self, pattern: re.Pattern[str] | str | None = None) -> None:
        if pattern is None:
            self.pattern = COMPLETION_CLAIM_PATTERN
        elif isinstance(pattern, str):
            self.pattern = re.compile(pattern, re.IGNORECASE)
        else:
            self.pattern = pattern

    def matches(self, text: str) -> bool:
        return bool(self.pattern.search(text))


@dataclass(frozen=True)
class GuardedReply:
    reply_to_save: str
    guarded: bool
    has_verified_write: bool


def has_verified_write(trace: TurnTrace | None, write_tools: Iterable[str] = DEFAULT_WRITE_TOOLS) -> bool:
    """True when the trace holds at least one successful write-capable tool event."""
    if trace is None:
        return False
    names = frozenset(write_tools)
    return any(event.ok and event.tool_name in names for event in trace.tool_events)


_DEFAULT_POLICY = CompletionClaimPolicy()


def guard_assistant_reply(
    reply: str,
    trace: TurnTrace | None,
    *,
    policy: CompletionClaimPolicy | None = None,
    write_tools: Iterable[str] = DEFAULT_WRITE_TOOLS,
) -> GuardedReply:
    """
    Classify *reply* as an unverified completion claim.

    The reply is returned trimmed but otherwise untouched; the guard is a signal for
    the caller to surface, never an annotation stored in history.
    """
    trimmed = reply.strip()
    verified = has_verified_write(trace, write_tools)
    claims = (policy or _DEFAULT_POLICY).matches(trimmed)
    return GuardedReply(
        reply_to_save=trimmed,
        guarded=bool(trimmed) and not verified and claims,
        has_verified_write=verified,
    )
