"""Per-turn orchestration: compact history, assemble messages, guard and persist replies."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

from nanocontext.agent.context import ContextBuilder
from nanocontext.agent.reply_guard import CompletionClaimPolicy, GuardedReply, guard_assistant_reply
from nanocontext.compaction.backend import LLMSummaryBackend, SummaryBackend
from nanocontext.compaction.planner import SummaryPlan, plan_summary_update
from nanocontext.compaction.summarizer import CompactionResult, RollingSummarizer
from nanocontext.config.schema import Config
from nanocontext.history.ledger import TurnEventLedger
from nanocontext.history.models import ChatTurnEvent, HistoryMessage, TurnTrace
from nanocontext.history.store import HistoryStore
from nanocontext.logging import bind_workspace, get_logger

logger = get_logger(__name__)

EMPTY_REPLY_PLACEHOLDER = "(No text reply from the model.)"


@dataclass
class PreparedTurn:
    """Everything needed to call the model for one turn and to persist its outcome."""

    history: list[HistoryMessage]
    new_input: str
    messages: list[dict[str, Any]]
    compaction: CompactionResult


class ContextEngine:
    """
    Conversation context engine for one working directory.

    Owns the history store, the summary cache and the turn ledger, and exposes
    the per-turn pipeline: ``prepare_turn`` before the model call and
    ``complete_turn`` after it. The lower-level steps are public as well.
    """

    def __init__(
        self,
        workspace: Path,
        config: Config | None = None,
        backend: SummaryBackend | None = None,
        policy: CompletionClaimPolicy | None = None,
    ):
        self.workspace = workspace
        self.config = config or Config()
        compaction = self.config.compaction
        self.store = HistoryStore(workspace)
        self.ledger = TurnEventLedger(workspace, max_events=compaction.ledger_max_events)
        self.summarizer = RollingSummarizer(
            self.store,
            backend,
            chunk_max_messages=compaction.chunk_max_messages,
            chunk_max_chars=compaction.chunk_max_chars,
            min_summary_chars=compaction.min_summary_chars,
            fallback_max_chars=compaction.fallback_max_chars,
        )
        self.context = ContextBuilder(compaction.recency_window)
        self.policy = policy or CompletionClaimPolicy(self.config.guard.claim_pattern)
        self.write_tools = frozenset(self.config.guard.write_tools)

    @classmethod
    def from_config(cls, config: Config, *, offline: bool = False) -> ContextEngine:
        """Build an engine whose summaries come from the configured LiteLLM model (or locally when offline)."""
        backend: SummaryBackend | None = None
        if not offline:
            from nanocontext.providers.litellm_provider import LiteLLMProvider

            provider = LiteLLMProvider(
                api_key=config.provider.resolved_api_key,
                api_base=config.provider.api_base,
                default_model=config.provider.model,
                timeout=config.provider.timeout,
            )
            backend = LLMSummaryBackend(
                provider,
                config.provider.model,
                max_tokens=config.compaction.summary_max_tokens,
                retry_max_tokens=config.compaction.retry_max_tokens,
            )
        return cls(config.workspace_path, config, backend)

    def plan(self, history: Sequence[HistoryMessage]) -> SummaryPlan:
        return plan_summary_update(
            history,
            self.config.compaction.recency_window,
            self.store.read_summary_state(),
            self.config.compaction.max_incremental_updates,
        )

    async def compact(self, history: Sequence[HistoryMessage]) -> CompactionResult:
        """Plan against the stored cache and run the rolling summarizer."""
        return await self.summarizer.run(history, self.plan(history))

    def assemble_messages(
        self,
        system_prompt: str,
        history: Sequence[HistoryMessage],
        new_input: str,
        summary: str | None = None,
    ) -> list[dict[str, Any]]:
        return self.context.build_messages(system_prompt, history, new_input, summary)

    def guard(self, reply: str, trace: TurnTrace | None) -> GuardedReply:
        return guard_assistant_reply(reply, trace, policy=self.policy, write_tools=self.write_tools)

    def record_turn(self, event: ChatTurnEvent) -> None:
        self.ledger.append(event)

    def clear_all(self) -> None:
        """Reset history, summary cache and turn ledger."""
        with bind_workspace(self.workspace):
            self.store.clear()
            self.ledger.clear()
            logger.info("context_cleared")

    async def prepare_turn(self, system_prompt: str, new_input: str) -> PreparedTurn:
        with bind_workspace(self.workspace):
            history = self.store.read()
            compaction = await self.compact(history)
            messages = self.assemble_messages(system_prompt, history, new_input, compaction.summary)
            logger.debug(
                "turn_prepared",
                history_len=len(history),
                message_count=len(messages),
                plan=compaction.plan.kind,
                summary_source=compaction.source,
            )
        return PreparedTurn(history=history, new_input=new_input, messages=messages, compaction=compaction)

    def complete_turn(
        self,
        prepared: PreparedTurn,
        reply: str,
        trace: TurnTrace | None = None,
    ) -> GuardedReply:
        """
        Persist the user/assistant pair and record the turn in the ledger.

        The stored reply is the trimmed model text (or a placeholder when empty);
        the guard result is returned for the caller to surface, never stored.
        """
        result = self.guard(reply, trace)
        with bind_workspace(self.workspace):
            self.store.write([
                *prepared.history,
                HistoryMessage(role="user", content=prepared.new_input),
                HistoryMessage(role="assistant", content=result.reply_to_save or EMPTY_REPLY_PLACEHOLDER),
            ])
            self.record_turn(ChatTurnEvent(
                trace=trace or TurnTrace(),
                has_verified_write=result.has_verified_write,
                reply_was_guarded=result.guarded,
                summary_source=prepared.compaction.source,
            ))
            if result.guarded:
                logger.warning("reply_unverified_completion_claim", reply_chars=len(result.reply_to_save))
        return result
