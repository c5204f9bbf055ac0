"""Typed turn-event payloads emitted by the chat collaborator, folded into a ``TurnTrace``."""

from __future__ import annotations

from typing import Literal, NotRequired, TypeAlias, TypedDict

from nanocontext.history.models import ToolEvent, TurnTrace

TURN_EVENT_TOOL_END = "tool_end"
TURN_EVENT_TURN_END = "turn_end"
TURN_EVENT_NAMESPACE = "nanocontext.turn"
TURN_EVENT_SCHEMA_VERSION = 1


class ToolEndEvent(TypedDict):
    type: Literal["tool_end"]
    tool: str
    is_error: bool
    path: NotRequired[str]
    error: NotRequired[str]


class TurnEndEvent(TypedDict):
    type: Literal["turn_end"]
    iterations: int
    finish_reason: str


TurnEventPayload: TypeAlias = ToolEndEvent | TurnEndEvent


class TraceRecorder:
    """
    Collect tool outcomes for one turn.

    Pass the instance as the chat collaborator's ``on_event`` callback, or call
    ``record_tool`` directly; ``trace()`` returns the immutable result.
    """

    def __init__(self) -> None:
        self._tool_events: list[ToolEvent] = []
        self._steps_used = 0
        self._finish_reason = "stop"

    async def __call__(self, event: TurnEventPayload) -> None:
        if event["type"] == TURN_EVENT_TOOL_END:
            self.record_tool(
                event["tool"],
                ok=not event["is_error"],
                path=event.get("path"),
                error=event.get("error"),
            )
        elif event["type"] == TURN_EVENT_TURN_END:
            self.finish(event["iterations"], event["finish_reason"])

    def record_tool(self, tool_name: str, *, ok: bool, path: str | None = None, error: str | None = None) -> None:
        self._tool_events.append(ToolEvent(tool_name=tool_name, ok=ok, path=path, error=error))

    def finish(self, steps_used: int, finish_reason: str) -> None:
        self._steps_used = steps_used
        self._finish_reason = finish_reason

    def trace(self) -> TurnTrace:
        return TurnTrace(
            tool_events=tuple(self._tool_events),
            steps_used=self._steps_used,
            finish_reason=self._finish_reason,
        )


def turn_event_capabilities() -> dict[str, object]:
    """Describe the payloads ``TraceRecorder`` understands, for collaborators that negotiate."""
    return {
        "namespace": TURN_EVENT_NAMESPACE,
        "version": TURN_EVENT_SCHEMA_VERSION,
        "events": [
            {"type": TURN_EVENT_TOOL_END, "fields": ["tool", "is_error", "path", "error"]},
            {"type": TURN_EVENT_TURN_END, "fields": ["iterations", "finish_reason"]},
        ],
    }
