from pathlib import Path

from typer.testing import CliRunner

import nanocontext.cli.commands as commands_module
from nanocontext.cli.commands import app
from nanocontext.config.schema import Config
from nanocontext.history.ledger import TurnEventLedger
from nanocontext.history.models import ChatTurnEvent, HistoryMessage, SummaryState, ToolEvent, TurnTrace
from nanocontext.history.store import HistoryStore


def _patch_config(monkeypatch, workspace: Path) -> None:
    monkeypatch.setattr(commands_module, "load_config", lambda: Config(workspace=str(workspace)))
    monkeypatch.setattr(commands_module, "setup_logging", lambda **kwargs: None)


def _seed(workspace: Path, count: int = 16) -> None:
    store = HistoryStore(workspace)
    store.write([
        HistoryMessage("user" if i % 2 == 0 else "assistant", f"turn {i}") for i in range(count)
    ])
    store.write_summary_state(SummaryState("Earlier turns.", 4, "turn 0", 1))
    TurnEventLedger(workspace).append(ChatTurnEvent(
        trace=TurnTrace(tool_events=(ToolEvent("write_file", True, path="a.html"),)),
        has_verified_write=True,
        reply_was_guarded=False,
        summary_source="model-primary",
    ))


def test_clear_resets_all_state(tmp_path: Path, monkeypatch) -> None:
    _patch_config(monkeypatch, tmp_path)
    _seed(tmp_path)

    result = CliRunner().invoke(app, ["clear"])

    assert result.exit_code == 0
    assert "Cleared conversation state" in result.output
    store = HistoryStore(tmp_path)
    assert store.read() == []
    assert store.read_summary_state() is None
    assert TurnEventLedger(tmp_path).read() == []


def test_status_reports_plan_for_next_turn(tmp_path: Path, monkeypatch) -> None:
    _patch_config(monkeypatch, tmp_path)
    _seed(tmp_path)

    result = CliRunner().invoke(app, ["status"])

    assert result.exit_code == 0
    assert "History: 16 messages" in result.output
    assert "1 incremental updates" in result.output
    assert "Next turn: extend" in result.output


def test_status_with_workspace_option(tmp_path: Path, monkeypatch) -> None:
    _patch_config(monkeypatch, tmp_path / "unused")
    other = tmp_path / "other"
    _seed(other, count=4)

    result = CliRunner().invoke(app, ["status", "--workspace", str(other)])

    assert result.exit_code == 0
    assert "History: 4 messages" in result.output
    assert "Next turn: none" in result.output


def test_events_lists_recent_turns(tmp_path: Path, monkeypatch) -> None:
    _patch_config(monkeypatch, tmp_path)

    empty = CliRunner().invoke(app, ["events"])
    assert empty.exit_code == 0
    assert "No turns recorded." in empty.output

    _seed(tmp_path)
    result = CliRunner().invoke(app, ["events", "--limit", "5"])
    assert result.exit_code == 0
    assert "Recent Turns" in result.output


def test_version_flag() -> None:
    result = CliRunner().invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "nanocontext v" in result.output
