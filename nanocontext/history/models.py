"""Persisted record types for history, summary cache and the turn ledger.

Every record validates itself at the read boundary via ``from_dict``: malformed
payloads yield ``None`` so callers can drop just that entry, and missing optional
fields fall back to defaults instead of rejecting the record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

Role = Literal["user", "assistant"]

_ROLES = ("user", "assistant")


def _is_int(value: Any) -> bool:
    # bool is an int subclass; JSON true/false must not pass as counters
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class HistoryMessage:
    """One persisted conversation turn."""

    role: Role
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, data: Any) -> HistoryMessage | None:
        if not isinstance(data, dict):
            return None
        role = data.get("role")
        content = data.get("content")
        if role not in _ROLES or not isinstance(content, str):
            return None
        return cls(role=role, content=content)


@dataclass(frozen=True)
class SummaryState:
    """Cached condensed summary of the middle range ``[1, summarized_until)``."""

    summary: str
    summarized_until: int
    first_user_message: str
    incremental_updates: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "summarized_until": self.summarized_until,
            "first_user_message": self.first_user_message,
            "incremental_updates": self.incremental_updates,
        }

    @classmethod
    def from_dict(cls, data: Any) -> SummaryState | None:
        if not isinstance(data, dict):
            return None
        summary = data.get("summary")
        until = data.get("summarized_until")
        first = data.get("first_user_message")
        if not isinstance(summary, str) or not isinstance(first, str):
            return None
        if not _is_int(until) or until < 1:
            return None
        # Added after the first release; older files omit it.
        updates = data.get("incremental_updates", 0)
        if not _is_int(updates) or updates < 0:
            updates = 0
        return cls(
            summary=summary,
            summarized_until=until,
            first_user_message=first,
            incremental_updates=updates,
        )


@dataclass(frozen=True)
class ToolEvent:
    """Outcome of one tool invocation during a turn."""

    tool_name: str
    ok: bool
    path: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"tool_name": self.tool_name, "ok": self.ok}
        if self.path is not None:
            out["path"] = self.path
        if self.error is not None:
            out["error"] = self.error
        return out

    @classmethod
    def from_dict(cls, data: Any) -> ToolEvent | None:
        if not isinstance(data, dict):
            return None
        name = data.get("tool_name")
        ok = data.get("ok")
        if not isinstance(name, str) or not isinstance(ok, bool):
            return None
        path = data.get("path")
        error = data.get("error")
        return cls(
            tool_name=name,
            ok=ok,
            path=path if isinstance(path, str) else None,
            error=error if isinstance(error, str) else None,
        )


@dataclass(frozen=True)
class TurnTrace:
    """Tool activity and completion status reported by the chat collaborator."""

    tool_events: tuple[ToolEvent, ...] = ()
    steps_used: int = 0
    finish_reason: str = "stop"

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool_events": [e.to_dict() for e in self.tool_events],
            "steps_used": self.steps_used,
            "finish_reason": self.finish_reason,
        }

    @classmethod
    def from_dict(cls, data: Any) -> TurnTrace | None:
        if not isinstance(data, dict):
            return None
        steps = data.get("steps_used")
        finish = data.get("finish_reason")
        raw_events = data.get("tool_events")
        if not _is_int(steps) or not isinstance(finish, str) or not isinstance(raw_events, list):
            return None
        events: list[ToolEvent] = []
        for raw in raw_events:
            event = ToolEvent.from_dict(raw)
            if event is None:
                return None
            events.append(event)
        return cls(tool_events=tuple(events), steps_used=steps, finish_reason=finish)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class ChatTurnEvent:
    """Audit record for one completed turn."""

    trace: TurnTrace
    has_verified_write: bool
    reply_was_guarded: bool
    summary_source: str | None = None
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "timestamp": self.timestamp,
            "trace": self.trace.to_dict(),
            "has_verified_write": self.has_verified_write,
            "reply_was_guarded": self.reply_was_guarded,
        }
        if self.summary_source is not None:
            out["summary_source"] = self.summary_source
        return out

    @classmethod
    def from_dict(cls, data: Any) -> ChatTurnEvent | None:
        if not isinstance(data, dict):
            return None
        timestamp = data.get("timestamp")
        verified = data.get("has_verified_write")
        guarded = data.get("reply_was_guarded")
        source = data.get("summary_source")
        if not isinstance(timestamp, str) or not isinstance(verified, bool) or not isinstance(guarded, bool):
            return None
        if source is not None and not isinstance(source, str):
            return None
        trace = TurnTrace.from_dict(data.get("trace"))
        if trace is None:
            return None
        return cls(
            trace=trace,
            has_verified_write=verified,
            reply_was_guarded=guarded,
            summary_source=source,
            timestamp=timestamp,
        )
