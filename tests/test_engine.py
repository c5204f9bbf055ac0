from pathlib import Path

import pytest

from nanocontext.agent.engine import EMPTY_REPLY_PLACEHOLDER, ContextEngine
from nanocontext.agent.turn_events import TraceRecorder
from nanocontext.config.schema import Config, GuardConfig
from nanocontext.history.models import ChatTurnEvent, HistoryMessage, ToolEvent, TurnTrace

SUMMARY = (
    "User asked for a one-page portfolio with a dark theme. Layout, hero section and "
    "navigation were discussed; the gallery is still open."
)


class _FakeBackend:
    def __init__(self, text: str = SUMMARY):
        self.text = text
        self.calls = 0

    async def summarize(self, prior_summary, turns, *, simplified=False):
        self.calls += 1
        return self.text


def _history(count: int) -> list[HistoryMessage]:
    return [
        HistoryMessage(role="user" if i % 2 == 0 else "assistant", content=f"turn {i}")
        for i in range(count)
    ]


@pytest.mark.asyncio
async def test_sixteen_entry_history_rebuilds_and_persists_coverage(tmp_path: Path) -> None:
    engine = ContextEngine(tmp_path, backend=_FakeBackend())
    history = _history(16)
    engine.store.write(history)

    plan = engine.plan(history)
    assert (plan.summarize_from, plan.middle_end, plan.kind) == (1, 6, "rebuild")

    result = await engine.compact(history)

    assert result.committed
    assert engine.store.read_summary_state().summarized_until == 6


@pytest.mark.asyncio
async def test_second_compaction_is_a_cache_hit(tmp_path: Path) -> None:
    backend = _FakeBackend()
    engine = ContextEngine(tmp_path, backend=backend)
    history = _history(16)

    await engine.compact(history)
    result = await engine.compact(history)

    assert result.source == "cache-reuse"
    assert backend.calls == 1


@pytest.mark.asyncio
async def test_prepare_and_complete_turn(tmp_path: Path) -> None:
    engine = ContextEngine(tmp_path, backend=_FakeBackend())
    engine.store.write(_history(16))

    prepared = await engine.prepare_turn("You are a site builder.", "Add a gallery")

    assert prepared.compaction.source == "model-primary"
    assert SUMMARY in prepared.messages[0]["content"]
    assert prepared.messages[1] == {"role": "user", "content": "turn 0"}
    assert prepared.messages[-1] == {"role": "user", "content": "Add a gallery"}

    trace = TurnTrace(tool_events=(ToolEvent("read_file", True, path="index.html"),), steps_used=2)
    guarded = engine.complete_turn(prepared, "I've updated the styles.", trace)

    assert guarded.guarded is True
    history = engine.store.read()
    assert len(history) == 18
    assert history[-2] == HistoryMessage("user", "Add a gallery")
    assert history[-1] == HistoryMessage("assistant", "I've updated the styles.")

    events = engine.ledger.read()
    assert len(events) == 1
    assert events[0].reply_was_guarded is True
    assert events[0].has_verified_write is False
    assert events[0].summary_source == "model-primary"
    assert events[0].trace == trace


@pytest.mark.asyncio
async def test_next_turn_extends_cached_summary(tmp_path: Path) -> None:
    engine = ContextEngine(tmp_path, backend=_FakeBackend())
    engine.store.write(_history(16))

    prepared = await engine.prepare_turn("sys", "next")
    engine.complete_turn(prepared, "Sure.", None)

    plan = engine.plan(engine.store.read())
    assert plan.kind == "extend"
    assert plan.summarize_from == 6
    assert plan.middle_end == 8
    assert plan.next_incremental_updates == 1


@pytest.mark.asyncio
async def test_empty_reply_is_stored_as_placeholder(tmp_path: Path) -> None:
    engine = ContextEngine(tmp_path)

    prepared = await engine.prepare_turn("sys", "hello")
    result = engine.complete_turn(prepared, "  ")

    assert result.guarded is False
    assert engine.store.read()[-1] == HistoryMessage("assistant", EMPTY_REPLY_PLACEHOLDER)
    assert engine.ledger.read()[0].summary_source == "none"


@pytest.mark.asyncio
async def test_trace_recorder_feeds_the_guard(tmp_path: Path) -> None:
    engine = ContextEngine(tmp_path)
    prepared = await engine.prepare_turn("sys", "make the page blue")

    recorder = TraceRecorder()
    await recorder({"type": "tool_end", "tool": "edit_file", "is_error": False, "path": "style.css"})
    await recorder({"type": "turn_end", "iterations": 3, "finish_reason": "stop"})

    result = engine.complete_turn(prepared, "I've updated the colours.", recorder.trace())

    assert result.guarded is False
    assert result.has_verified_write is True
    assert engine.ledger.read()[0].trace.steps_used == 3


def test_guard_config_flows_into_engine(tmp_path: Path) -> None:
    config = Config(guard=GuardConfig(write_tools=["apply_patch"], claim_pattern=r"\bshipped\b"))
    engine = ContextEngine(tmp_path, config)

    patched = TurnTrace(tool_events=(ToolEvent("apply_patch", True),))
    assert engine.guard("We shipped it.", None).guarded is True
    assert engine.guard("We shipped it.", patched).guarded is False
    assert engine.guard("I've updated it.", None).guarded is False


@pytest.mark.asyncio
async def test_clear_all_resets_history_summary_and_ledger(tmp_path: Path) -> None:
    engine = ContextEngine(tmp_path, backend=_FakeBackend())
    engine.store.write(_history(16))
    await engine.compact(engine.store.read())
    engine.record_turn(ChatTurnEvent(trace=TurnTrace(), has_verified_write=False, reply_was_guarded=False))

    engine.clear_all()

    assert engine.store.read() == []
    assert engine.store.read_summary_state() is None
    assert engine.ledger.read() == []


def test_from_config_offline_has_no_backend(tmp_path: Path) -> None:
    engine = ContextEngine.from_config(Config(workspace=str(tmp_path)), offline=True)
    assert engine.summarizer.backend is None
    assert engine.workspace == tmp_path


def test_from_config_builds_litellm_backend(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("TEST_SUMMARY_KEY", "sk-test-1234567890")
    config = Config(
        workspace=str(tmp_path),
        provider={"api_key": "$TEST_SUMMARY_KEY", "model": "openai/gpt-4o-mini"},
    )

    engine = ContextEngine.from_config(config)

    backend = engine.summarizer.backend
    assert backend.model == "openai/gpt-4o-mini"
    assert backend.provider.api_key == "sk-test-1234567890"
    assert backend.max_tokens == 512
    assert backend.retry_max_tokens == 320
