"""Rolling condensation of the middle history range with retry and local fallback."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Sequence

from nanocontext.compaction.backend import SummaryBackend
from nanocontext.compaction.chunks import (
    SUMMARY_CHUNK_MAX_CHARS,
    SUMMARY_CHUNK_MAX_MESSAGES,
    split_summary_chunks,
)
from nanocontext.compaction.planner import SummaryPlan
from nanocontext.compaction.text import (
    FALLBACK_MAX_CHARS,
    build_fallback_summary,
    frame_previous_summary,
    strip_previous_summary_prefix,
)
from nanocontext.history.models import HistoryMessage, SummaryState
from nanocontext.history.store import HistoryStore
from nanocontext.logging import get_logger

logger = get_logger(__name__)

SummarySource = Literal["none", "cache-reuse", "model-primary", "model-retry", "fallback-local"]

MIN_SUMMARY_CHARS = 80

# Higher rank = weaker evidence; a run reports its weakest chunk
_SOURCE_RANK: dict[str, int] = {"model-primary": 0, "model-retry": 1, "fallback-local": 2}


@dataclass
class CompactionResult:
    """Summary to use for this turn and whether it advanced the persisted cache."""

    plan: SummaryPlan
    summary: str | None
    source: SummarySource
    committed: bool = False
    chunks_total: int = 0
    chunks_done: int = 0
    chunk_sources: list[SummarySource] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.chunks_done == self.chunks_total


class RollingSummarizer:
    """
    Condense ``history[summarize_from:middle_end]`` chunk by chunk.

    Each chunk is summarized on top of the rolling summary produced so far. A chunk
    tries the primary instruction, then the simplified one, then the local heuristic
    condenser. The new ``SummaryState`` is written only when every chunk succeeded;
    a partial run still returns its best-effort summary for the current turn.
    """

    def __init__(
        self,
        store: HistoryStore,
        backend: SummaryBackend | None,
        *,
        chunk_max_messages: int = SUMMARY_CHUNK_MAX_MESSAGES,
        chunk_max_chars: int = SUMMARY_CHUNK_MAX_CHARS,
        min_summary_chars: int = MIN_SUMMARY_CHARS,
        fallback_max_chars: int = FALLBACK_MAX_CHARS,
    ) -> None:
        self.store = store
        self.backend = backend
        self.chunk_max_messages = chunk_max_messages
        self.chunk_max_chars = chunk_max_chars
        self.min_summary_chars = min_summary_chars
        self.fallback_max_chars = fallback_max_chars

    def _adequate(self, text: str) -> bool:
        return len(text) >= self.min_summary_chars

    async def _attempt(
        self,
        rolling: str,
        chunk: Sequence[HistoryMessage],
        *,
        simplified: bool,
    ) -> str:
        if self.backend is None:
            return ""
        try:
            text = await self.backend.summarize(rolling or None, chunk, simplified=simplified)
        except Exception as e:
            logger.warning(
                "summary_request_failed",
                simplified=simplified,
                error_type=type(e).__name__,
                error=str(e),
            )
            return ""
        return strip_previous_summary_prefix(text or "")

    async def summarize_chunk(
        self,
        rolling: str,
        chunk: Sequence[HistoryMessage],
    ) -> tuple[str, SummarySource | None]:
        """Return ``(summary, source)`` for one chunk; ``("", None)`` when nothing usable came out."""
        primary = await self._attempt(rolling, chunk, simplified=False)
        if self._adequate(primary):
            return primary, "model-primary"

        retry = await self._attempt(rolling, chunk, simplified=True)
        if self._adequate(retry):
            return retry, "model-retry"

        # A non-positive budget disables the local condenser
        fallback = ""
        if self.fallback_max_chars > 0:
            request = [frame_previous_summary(rolling), *chunk] if rolling else list(chunk)
            fallback = strip_previous_summary_prefix(build_fallback_summary(request, self.fallback_max_chars))
        if fallback:
            if self.backend is not None:
                logger.warning(
                    "summary_chunk_fallback",
                    chunk_messages=len(chunk),
                    primary_chars=len(primary),
                    retry_chars=len(retry),
                )
            return fallback, "fallback-local"
        return "", None

    async def run(self, history: Sequence[HistoryMessage], plan: SummaryPlan) -> CompactionResult:
        if plan.reuse_cached_summary is not None:
            return CompactionResult(plan=plan, summary=plan.reuse_cached_summary, source="cache-reuse")
        if not plan.needs_summary:
            return CompactionResult(plan=plan, summary=None, source="none")

        chunks = split_summary_chunks(
            history[plan.summarize_from:plan.middle_end],
            self.chunk_max_messages,
            self.chunk_max_chars,
        )
        rolling = strip_previous_summary_prefix(plan.seed_summary or "")
        sources: list[SummarySource] = []

        for index, chunk in enumerate(chunks):
            summary, source = await self.summarize_chunk(rolling, chunk)
            if source is None:
                logger.warning(
                    "summary_chunk_unusable",
                    chunk_index=index,
                    chunks_total=len(chunks),
                    summarize_from=plan.summarize_from,
                    middle_end=plan.middle_end,
                )
                break
            rolling = summary
            sources.append(source)

        result = CompactionResult(
            plan=plan,
            summary=rolling or None,
            source=max(sources, key=_SOURCE_RANK.__getitem__) if sources else "none",
            chunks_total=len(chunks),
            chunks_done=len(sources),
            chunk_sources=sources,
        )

        if result.complete and rolling:
            self.store.write_summary_state(
                SummaryState(
                    summary=rolling,
                    summarized_until=plan.middle_end,
                    first_user_message=plan.first_user_message,
                    incremental_updates=plan.next_incremental_updates,
                )
            )
            result.committed = True

        logger.info(
            "summary_cache_updated" if result.committed else "summary_cache_not_committed",
            plan=plan.kind,
            summarize_from=plan.summarize_from,
            middle_end=plan.middle_end,
            chunks_total=result.chunks_total,
            chunks_done=result.chunks_done,
            source=result.source,
            summary_chars=len(rolling),
            incremental_updates=plan.next_incremental_updates,
        )
        return result
