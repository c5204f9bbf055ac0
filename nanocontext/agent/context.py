"""Context builder for assembling the outbound message list of a turn."""

from __future__ import annotations

from typing import Any, Sequence

from nanocontext.history.models import HistoryMessage

DEFAULT_RECENCY_WINDOW = 10

RELIABILITY_RULE = (
    "## Reliability rule\n"
    "Treat earlier assistant messages as potentially stale. For project state, prefer user "
    "requests and verify files with tools before claiming changes."
)
SUMMARY_HEADING = "## Prior conversation"
SUMMARY_INTRO = (
    "Context summary of earlier conversation turns "
    "(condensed; verify with tools before relying on details):"
)


class ContextBuilder:
    """
    Builds the messages for one model call.

    Layout: system preface (with the reliability rule and, when available, the
    condensed summary of the middle range), the anchor turn, the recency tail,
    and finally the new user input.
    """

    def __init__(self, recency_window: int = DEFAULT_RECENCY_WINDOW):
        self.recency_window = max(1, int(recency_window))

    @staticmethod
    def build_system_content(system_prompt: str, summary: str | None = None) -> str:
        parts = [system_prompt.rstrip(), RELIABILITY_RULE]
        if summary and summary.strip():
            parts.append(f"{SUMMARY_HEADING}\n{SUMMARY_INTRO}\n{summary.strip()}")
        return "\n\n".join(p for p in parts if p)

    @staticmethod
    def _anchor(history: Sequence[HistoryMessage]) -> HistoryMessage | None:
        if history and history[0].role == "user":
            return history[0]
        return None

    def select_tail(self, history: Sequence[HistoryMessage]) -> list[HistoryMessage]:
        """
        Pick the verbatim tail.

        Short conversations keep all non-anchor history. Longer ones keep the last
        ``recency_window`` messages, with every user turn but only the newest
        assistant turn, so stale assistant narration does not pile up.
        """
        anchor = self._anchor(history)
        if len(history) <= 1 + self.recency_window:
            return list(history[1:]) if anchor is not None else list(history)

        window = list(history[-self.recency_window:])
        last_assistant = None
        for idx in range(len(window) - 1, -1, -1):
            if window[idx].role == "assistant":
                last_assistant = idx
                break
        return [
            m for idx, m in enumerate(window)
            if m.role == "user" or idx == last_assistant
        ]

    def build_messages(
        self,
        system_prompt: str,
        history: Sequence[HistoryMessage],
        current_message: str,
        summary: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Build the complete message list for an LLM call.

        Args:
            system_prompt: Instruction preface supplied by the caller.
            history: Full persisted conversation.
            current_message: The new user input.
            summary: Condensed middle-range summary, if any.

        Returns:
            List of ``{"role", "content"}`` dicts, system message first.
        """
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": self.build_system_content(system_prompt, summary)},
        ]
        anchor = self._anchor(history)
        if anchor is not None:
            messages.append(anchor.to_dict())
        messages.extend(m.to_dict() for m in self.select_tail(history))
        messages.append({"role": "user", "content": current_message})
        return messages


def build_messages(
    system_prompt: str,
    history: Sequence[HistoryMessage],
    current_message: str,
    recency_window: int = DEFAULT_RECENCY_WINDOW,
    summary: str | None = None,
) -> list[dict[str, Any]]:
    return ContextBuilder(recency_window).build_messages(system_prompt, history, current_message, summary)
