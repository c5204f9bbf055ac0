from nanocontext.compaction.text import (
    PREVIOUS_SUMMARY_LABEL,
    build_fallback_summary,
    format_messages_for_summary,
    frame_previous_summary,
    normalize_summary,
    strip_previous_summary_prefix,
    trim_messages_for_prompt,
)
from nanocontext.history.models import HistoryMessage


def _user(text: str) -> HistoryMessage:
    return HistoryMessage(role="user", content=text)


def _assistant(text: str) -> HistoryMessage:
    return HistoryMessage(role="assistant", content=text)


def test_strip_previous_summary_prefix_removes_repeated_labels() -> None:
    text = "Previous condensed summary:\nprevious condensed summary: User wants a blog."
    assert strip_previous_summary_prefix(text) == "User wants a blog."
    assert strip_previous_summary_prefix("No label here.") == "No label here."


def test_frame_previous_summary_round_trips_through_strip() -> None:
    framed = frame_previous_summary("User wants a blog.")
    assert framed.role == "assistant"
    assert framed.content.startswith(PREVIOUS_SUMMARY_LABEL)
    assert strip_previous_summary_prefix(framed.content) == "User wants a blog."


def test_format_messages_for_summary() -> None:
    out = format_messages_for_summary([_user("Hi"), _assistant("Hello")])
    assert out == "User: Hi\n\nAssistant: Hello"


def test_normalize_summary_drops_heading_and_bold() -> None:
    assert normalize_summary("## Summary\n**Goal**: build a site.") == "Goal: build a site."
    assert normalize_summary("   ") == ""


def test_normalize_summary_trims_truncated_reply_to_sentence() -> None:
    raw = "User wants a blog. Assistant started the lay"
    assert normalize_summary(raw, may_be_truncated=True) == "User wants a blog."
    assert normalize_summary(raw) == raw


def test_trim_messages_for_prompt_shortens_oversized_prior_summary() -> None:
    prior = frame_previous_summary("Fact. " * 800)
    turn = _user("q" * 2000)

    trimmed = trim_messages_for_prompt([prior, turn])

    assert trimmed[0].content.startswith(PREVIOUS_SUMMARY_LABEL)
    assert len(trimmed[0].content) <= len(PREVIOUS_SUMMARY_LABEL) + 1 + 1000
    assert trimmed[1] == turn


def test_trim_messages_for_prompt_leaves_small_prompts_alone() -> None:
    messages = [frame_previous_summary("short"), _user("hello")]
    assert trim_messages_for_prompt(messages) == messages


def test_fallback_summary_strips_markdown() -> None:
    reply = (
        "**Done** with layout.\n\n"
        "| a | b |\n|---|---|\n| 1 | 2 |\n"
        "```html\n<div/>\n```"
    )
    summary = build_fallback_summary([_user("Build me a landing page. Use blue."), _assistant(reply)])

    assert summary == "User: Build me a landing page.\n\nAssistant: Done with layout."


def test_fallback_summary_keeps_recent_messages_and_caps_length() -> None:
    messages = [_user("oldest request")] + [
        _assistant(f"Reply {i} " + "word " * 60) if i % 2 else _user(f"Ask {i} " + "word " * 60)
        for i in range(1, 30)
    ]
    summary = build_fallback_summary(messages, max_chars=500)

    assert "oldest request" not in summary
    assert len(summary) <= 500
    assert summary.startswith(("User:", "Assistant:"))


def test_fallback_summary_condenses_prior_summary_without_label() -> None:
    prior = frame_previous_summary("User is building a portfolio site. " * 30)
    summary = build_fallback_summary([prior, _user("Add a contact form.")])

    assert PREVIOUS_SUMMARY_LABEL not in summary
    assert summary.startswith("User is building a portfolio site.")
    assert summary.endswith("User: Add a contact form.")
    assert len(summary.split("\n\n")[0]) <= 380


def test_fallback_summary_keeps_prior_summary_ahead_of_full_window() -> None:
    prior = frame_previous_summary("User is building a portfolio site.")
    turns = [_user(f"Ask {i}.") if i % 2 == 0 else _assistant(f"Reply {i}.") for i in range(12)]
    summary = build_fallback_summary([prior, *turns])

    parts = summary.split("\n\n")
    assert parts[0] == "User is building a portfolio site."
    assert len(parts) == 11
    assert "Ask 0." not in summary
    assert parts[-1] == "Assistant: Reply 11."


def test_fallback_summary_of_blank_messages_is_empty() -> None:
    assert build_fallback_summary([_user("   "), _assistant("")]) == ""
