"""Summary cache planning: reuse, incremental extend, or full rebuild."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from nanocontext.history.models import HistoryMessage, SummaryState

MIDDLE_START_INDEX = 1
MAX_INCREMENTAL_SUMMARY_UPDATES = 8


@dataclass(frozen=True)
class SummaryPlan:
    """What the summarizer must do this turn. Never persisted."""

    first_user_message: str
    middle_end: int
    reuse_cached_summary: str | None
    summarize_from: int
    seed_summary: str | None
    next_incremental_updates: int

    @property
    def needs_summary(self) -> bool:
        """True when the range ``[summarize_from, middle_end)`` must be condensed."""
        return self.reuse_cached_summary is None and self.summarize_from < self.middle_end

    @property
    def kind(self) -> str:
        if self.middle_end <= MIDDLE_START_INDEX:
            return "none"
        if self.reuse_cached_summary is not None:
            return "reuse"
        if self.seed_summary is not None:
            return "extend"
        return "rebuild"


def anchor_text(history: Sequence[HistoryMessage]) -> str:
    """Content of the anchor message, or ``""`` when history does not start with a user turn."""
    if history and history[0].role == "user":
        return history[0].content
    return ""


def _is_valid_cache(cached: SummaryState | None, first_user_message: str, middle_end: int) -> bool:
    return (
        cached is not None
        and bool(cached.summary)
        and cached.first_user_message == first_user_message
        and MIDDLE_START_INDEX <= cached.summarized_until <= middle_end
    )


def plan_summary_update(
    history: Sequence[HistoryMessage],
    recency_window: int,
    cached: SummaryState | None,
    max_incremental_updates: int = MAX_INCREMENTAL_SUMMARY_UPDATES,
) -> SummaryPlan:
    """
    Decide how to bring the cached summary up to date with *history*.

    Everything at or after ``len(history) - recency_window`` is sent verbatim, so only
    ``[1, middle_end)`` is eligible for condensation. A window below 1 counts as 1, as
    in the assembler. Outcomes, in order: no middle; cache hit; incremental extend
    (while under the update ceiling); full rebuild.
    """
    recency_window = max(1, int(recency_window))
    middle_end = len(history) - recency_window
    first_user_message = anchor_text(history)

    if middle_end <= MIDDLE_START_INDEX:
        return SummaryPlan(
            first_user_message=first_user_message,
            middle_end=middle_end,
            reuse_cached_summary=None,
            summarize_from=middle_end,
            seed_summary=None,
            next_incremental_updates=0,
        )

    valid = _is_valid_cache(cached, first_user_message, middle_end)

    if valid and cached.summarized_until == middle_end:
        return SummaryPlan(
            first_user_message=first_user_message,
            middle_end=middle_end,
            reuse_cached_summary=cached.summary,
            summarize_from=middle_end,
            seed_summary=cached.summary,
            next_incremental_updates=cached.incremental_updates,
        )

    can_extend = (
        valid
        and cached.summarized_until < middle_end
        and cached.incremental_updates < max_incremental_updates
    )
    if can_extend:
        return SummaryPlan(
            first_user_message=first_user_message,
            middle_end=middle_end,
            reuse_cached_summary=None,
            summarize_from=cached.summarized_until,
            seed_summary=cached.summary,
            next_incremental_updates=cached.incremental_updates + 1,
        )

    return SummaryPlan(
        first_user_message=first_user_message,
        middle_end=middle_end,
        reuse_cached_summary=None,
        summarize_from=MIDDLE_START_INDEX,
        seed_summary=None,
        next_incremental_updates=0,
    )
