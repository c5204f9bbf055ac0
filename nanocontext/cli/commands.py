"""CLI commands for nanocontext."""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from nanocontext import __version__
from nanocontext.agent.engine import ContextEngine
from nanocontext.config.loader import load_config
from nanocontext.logging import setup_logging

app = typer.Typer(
    name="nanocontext",
    help="nanocontext - conversation context compaction and reply guard",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"nanocontext v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """nanocontext - conversation context compaction and reply guard."""
    pass


def _engine(workspace: Path | None) -> ContextEngine:
    config = load_config()
    setup_logging(json_output=config.logging.json_output, level=config.logging.level)
    return ContextEngine(workspace or config.workspace_path, config)


@app.command()
def clear(
    workspace: Path = typer.Option(None, "--workspace", "-w", help="Conversation directory"),
):
    """Reset conversation history, summary cache and turn ledger."""
    engine = _engine(workspace)
    engine.clear_all()
    console.print(f"[green]✓[/green] Cleared conversation state in {engine.workspace}")


@app.command()
def status(
    workspace: Path = typer.Option(None, "--workspace", "-w", help="Conversation directory"),
):
    """Show history size, summary cache coverage and the next compaction plan."""
    engine = _engine(workspace)
    history = engine.store.read()
    cached = engine.store.read_summary_state()
    plan = engine.plan(history)

    console.print(f"History: {len(history)} messages")
    if cached is None:
        console.print("Summary cache: [dim]none[/dim]")
    else:
        console.print(
            f"Summary cache: covers [1, {cached.summarized_until}), "
            f"{len(cached.summary)} chars, {cached.incremental_updates} incremental updates"
        )
    console.print(
        f"Next turn: {plan.kind} (summarize_from={plan.summarize_from}, middle_end={plan.middle_end})"
    )


@app.command()
def events(
    workspace: Path = typer.Option(None, "--workspace", "-w", help="Conversation directory"),
    limit: int = typer.Option(10, "--limit", "-n", help="Number of recent turns to show"),
):
    """List the most recent turn ledger entries."""
    engine = _engine(workspace)
    entries = engine.ledger.read()[-max(1, limit):]
    if not entries:
        console.print("No turns recorded.")
        return

    table = Table(title="Recent Turns")
    table.add_column("Time", style="cyan")
    table.add_column("Tools")
    table.add_column("Verified write")
    table.add_column("Guarded")
    table.add_column("Summary")

    for event in entries:
        tools = ", ".join(
            f"{e.tool_name}{'' if e.ok else ' (failed)'}" for e in event.trace.tool_events
        )
        table.add_row(
            event.timestamp,
            tools or "[dim]-[/dim]",
            "✓" if event.has_verified_write else "✗",
            "[yellow]yes[/yellow]" if event.reply_was_guarded else "no",
            event.summary_source or "-",
        )

    console.print(table)


if __name__ == "__main__":
    app()
