"""Persistent conversation history and summary cache for one working directory."""

from __future__ import annotations

import hashlib
import json
import time
from pathlib import Path
from typing import Any, Sequence

from nanocontext.history.models import HistoryMessage, SummaryState
from nanocontext.logging import get_logger
from nanocontext.utils.helpers import atomic_write_json, read_json

logger = get_logger(__name__)

STATE_DIR = ".nanocontext"
HISTORY_FILE = "chat-history.json"
SUMMARY_FILE = "chat-summary.json"


class HistoryStore:
    """
    Owns the on-disk conversation and its cached summary.

    Reads never raise: a missing, unreadable or malformed file reads as empty
    (history) or ``None`` (summary), and individual malformed history entries
    are dropped. Writes replace the file atomically.
    """

    def __init__(self, workspace: Path):
        self.workspace = workspace
        self.state_dir = workspace / STATE_DIR
        self.history_path = self.state_dir / HISTORY_FILE
        self.summary_path = self.state_dir / SUMMARY_FILE
        self._persisted_signature: str | None = None
        self._save_writes = 0
        self._save_skips = 0

    def _load_json(self, path: Path) -> Any:
        if not path.exists():
            return None
        try:
            return read_json(path)
        except (OSError, ValueError) as e:
            logger.warning("history_store_read_failed", path=str(path), error=str(e))
            return None

    def read(self) -> list[HistoryMessage]:
        """Return persisted messages in order; malformed entries are skipped."""
        data = self._load_json(self.history_path)
        if not isinstance(data, list):
            return []
        messages: list[HistoryMessage] = []
        dropped = 0
        for raw in data:
            msg = HistoryMessage.from_dict(raw)
            if msg is None:
                dropped += 1
                continue
            messages.append(msg)
        if dropped:
            logger.warning("history_store_entries_dropped", dropped=dropped, kept=len(messages))
        self._persisted_signature = self._signature(messages)
        return messages

    @staticmethod
    def _signature(messages: Sequence[HistoryMessage]) -> str:
        """Content digest used to skip redundant writes."""
        payload = json.dumps([m.to_dict() for m in messages], ensure_ascii=False, separators=(",", ":"))
        return f"{len(messages)}:{hashlib.sha256(payload.encode('utf-8')).hexdigest()}"

    def write(self, messages: Sequence[HistoryMessage]) -> None:
        """Replace the persisted history with *messages*."""
        started = time.perf_counter()
        signature = self._signature(messages)
        if self.history_path.exists() and signature == self._persisted_signature:
            self._save_skips += 1
            logger.debug(
                "history_store_write_skipped",
                message_count=len(messages),
                save_writes=self._save_writes,
                save_skips=self._save_skips,
            )
            return

        atomic_write_json(self.history_path, [m.to_dict() for m in messages])
        self._persisted_signature = signature
        self._save_writes += 1
        logger.debug(
            "history_store_write",
            message_count=len(messages),
            elapsed_ms=round((time.perf_counter() - started) * 1000, 3),
            file_bytes=self.history_path.stat().st_size,
            save_writes=self._save_writes,
            save_skips=self._save_skips,
        )

    def read_summary_state(self) -> SummaryState | None:
        """Return the cached summary, or ``None`` if absent or unusable."""
        data = self._load_json(self.summary_path)
        if data is None:
            return None
        state = SummaryState.from_dict(data)
        if state is None:
            logger.warning("summary_state_discarded", reason="invalid_schema", path=str(self.summary_path))
        return state

    def write_summary_state(self, state: SummaryState) -> None:
        atomic_write_json(self.summary_path, state.to_dict())
        logger.debug(
            "summary_state_written",
            summarized_until=state.summarized_until,
            incremental_updates=state.incremental_updates,
            summary_chars=len(state.summary),
        )

    def clear(self) -> None:
        """Reset history to empty and drop the summary cache."""
        atomic_write_json(self.history_path, [])
        self._persisted_signature = self._signature([])
        if self.summary_path.exists():
            self.summary_path.unlink()
        logger.info("history_store_cleared", path=str(self.state_dir))
