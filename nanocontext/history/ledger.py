"""Bounded per-turn audit ledger (tool activity, guard outcome, summary source)."""

from __future__ import annotations

from pathlib import Path

from nanocontext.history.models import ChatTurnEvent
from nanocontext.history.store import STATE_DIR
from nanocontext.logging import get_logger
from nanocontext.utils.helpers import atomic_write_json, read_json

logger = get_logger(__name__)

EVENTS_FILE = "chat-events.json"
DEFAULT_MAX_EVENTS = 200


class TurnEventLedger:
    """Append-only ring of ``ChatTurnEvent`` records; oldest entries are evicted past ``max_events``."""

    def __init__(self, workspace: Path, max_events: int = DEFAULT_MAX_EVENTS):
        self.path = workspace / STATE_DIR / EVENTS_FILE
        self.max_events = max(1, max_events)

    def read(self) -> list[ChatTurnEvent]:
        if not self.path.exists():
            return []
        try:
            data = read_json(self.path)
        except (OSError, ValueError) as e:
            logger.warning("turn_ledger_read_failed", path=str(self.path), error=str(e))
            return []
        if not isinstance(data, list):
            return []
        events = [e for e in (ChatTurnEvent.from_dict(raw) for raw in data) if e is not None]
        if len(events) != len(data):
            logger.warning("turn_ledger_entries_dropped", dropped=len(data) - len(events))
        return events

    def append(self, event: ChatTurnEvent) -> None:
        events = self.read()
        events.append(event)
        evicted = max(0, len(events) - self.max_events)
        trimmed = events[evicted:]
        atomic_write_json(self.path, [e.to_dict() for e in trimmed])
        logger.debug(
            "turn_ledger_appended",
            event_count=len(trimmed),
            evicted=evicted,
            tool_event_count=len(event.trace.tool_events),
            reply_was_guarded=event.reply_was_guarded,
            summary_source=event.summary_source,
        )

    def clear(self) -> None:
        if self.path.exists():
            atomic_write_json(self.path, [])
