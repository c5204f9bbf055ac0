"""History compaction: chunking, cache planning, rolling summarization."""

from nanocontext.compaction.backend import LLMSummaryBackend, SummaryBackend, SummaryBackendError
from nanocontext.compaction.chunks import split_summary_chunks
from nanocontext.compaction.planner import MAX_INCREMENTAL_SUMMARY_UPDATES, SummaryPlan, plan_summary_update
from nanocontext.compaction.summarizer import CompactionResult, RollingSummarizer

__all__ = [
    "CompactionResult",
    "LLMSummaryBackend",
    "MAX_INCREMENTAL_SUMMARY_UPDATES",
    "RollingSummarizer",
    "SummaryBackend",
    "SummaryBackendError",
    "SummaryPlan",
    "plan_summary_update",
    "split_summary_chunks",
]
