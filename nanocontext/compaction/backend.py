"""Model-backed condensation requests."""

from __future__ import annotations

from typing import Protocol, Sequence

from nanocontext.compaction.prompts import SUMMARIZE_RETRY_SYSTEM_PROMPT, SUMMARIZE_SYSTEM_PROMPT
from nanocontext.compaction.text import (
    format_messages_for_summary,
    frame_previous_summary,
    normalize_summary,
    strip_previous_summary_prefix,
    trim_messages_for_prompt,
)
from nanocontext.history.models import HistoryMessage
from nanocontext.logging import get_logger
from nanocontext.providers.base import LLMProvider

logger = get_logger(__name__)


class SummaryBackendError(RuntimeError):
    """The model could not produce a condensation (transport or provider error)."""


class SummaryBackend(Protocol):
    async def summarize(
        self,
        prior_summary: str | None,
        turns: Sequence[HistoryMessage],
        *,
        simplified: bool = False,
    ) -> str:
        """Condense *turns* on top of *prior_summary*. May raise."""
        ...


class LLMSummaryBackend:
    """Condense turns with a tool-less chat completion on the configured model."""

    def __init__(
        self,
        provider: LLMProvider,
        model: str | None = None,
        *,
        max_tokens: int = 512,
        retry_max_tokens: int = 320,
        temperature: float = 0.2,
    ) -> None:
        self.provider = provider
        self.model = model
        self.max_tokens = max_tokens
        self.retry_max_tokens = retry_max_tokens
        self.temperature = temperature

    @staticmethod
    def build_request(prior_summary: str | None, turns: Sequence[HistoryMessage]) -> list[HistoryMessage]:
        messages = list(turns)
        if prior_summary:
            messages.insert(0, frame_previous_summary(prior_summary))
        return trim_messages_for_prompt(messages)

    async def summarize(
        self,
        prior_summary: str | None,
        turns: Sequence[HistoryMessage],
        *,
        simplified: bool = False,
    ) -> str:
        request = self.build_request(prior_summary, turns)
        if not request:
            return ""
        system = SUMMARIZE_RETRY_SYSTEM_PROMPT if simplified else SUMMARIZE_SYSTEM_PROMPT
        response = await self.provider.chat(
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": format_messages_for_summary(request)},
            ],
            tools=None,
            model=self.model,
            max_tokens=self.retry_max_tokens if simplified else self.max_tokens,
            temperature=self.temperature,
        )
        if response.finish_reason == "error":
            raise SummaryBackendError(response.content or "summarization request failed")
        text = normalize_summary(response.content or "", response.finish_reason == "length")
        text = strip_previous_summary_prefix(text)
        logger.debug(
            "summary_request_done",
            simplified=simplified,
            turn_count=len(turns),
            finish_reason=response.finish_reason,
            summary_chars=len(text),
        )
        return text
