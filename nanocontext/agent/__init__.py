"""Agent-facing context assembly, reply guarding and turn orchestration."""

from nanocontext.agent.context import ContextBuilder, build_messages
from nanocontext.agent.engine import ContextEngine, PreparedTurn
from nanocontext.agent.reply_guard import CompletionClaimPolicy, GuardedReply, guard_assistant_reply
from nanocontext.agent.turn_events import TraceRecorder

__all__ = [
    "CompletionClaimPolicy",
    "ContextBuilder",
    "ContextEngine",
    "GuardedReply",
    "PreparedTurn",
    "TraceRecorder",
    "build_messages",
    "guard_assistant_reply",
]
