"""System prompts for conversation condensation requests."""

SUMMARIZE_SYSTEM_PROMPT = """Summarize only durable context for future turns.

Focus on:
- user goals, requirements, constraints, and unresolved issues
- concrete file paths, commands, and confirmed outcomes

Do not treat assistant claims as fact unless explicitly confirmed by the user.
Avoid stylistic chatter, repetition, and status text like "now rebuild".
Output plain text only (no markdown headings, no bold, no code fences).
Be concise but complete: write at least 2-3 sentences or 3-5 bullet points so the summary is useful. Do not include the phrase "Previous condensed summary" in your output."""

SUMMARIZE_RETRY_SYSTEM_PROMPT = """Summarize the conversation in plain text.
Include:
- user goals and requested changes
- concrete files/commands and outcomes
- unresolved issues

Use 3-6 short lines (at least 3 lines). No markdown. Do not include the phrase "Previous condensed summary" in your output."""
