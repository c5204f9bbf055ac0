"""Persistence for conversation history, summary cache and turn ledger."""

from nanocontext.history.ledger import TurnEventLedger
from nanocontext.history.models import ChatTurnEvent, HistoryMessage, SummaryState, ToolEvent, TurnTrace
from nanocontext.history.store import HistoryStore

__all__ = [
    "ChatTurnEvent",
    "HistoryMessage",
    "HistoryStore",
    "SummaryState",
    "ToolEvent",
    "TurnEventLedger",
    "TurnTrace",
]
