"""Rich output formatting for the fplindex CLI.

All functions write to a :class:`rich.console.Console` (bound to *stderr*)
so ``--json`` output on *stdout* stays machine-readable.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# ---------------------------------------------------------------------------
# Status colour mapping
# ---------------------------------------------------------------------------

_STATUS_COLOURS: dict[str, str] = {
    "completed": "green",
    "failed": "red",
    "running": "yellow",
    "pending": "dim",
    "not_found": "dim red",
}


def _coloured_status(status: str) -> str:
    colour = _STATUS_COLOURS.get(status, "white")
    return f"[{colour}]{status}[/{colour}]"


def _fmt(value: Any) -> str:
    return "-" if value is None else str(value)


def _fmt_timestamp(value: str | None) -> str:
    if not value:
        return "-"
    try:
        return datetime.fromisoformat(value).strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        return value


# ---------------------------------------------------------------------------
# Execution views
# ---------------------------------------------------------------------------


def display_execution(console: Console, payload: dict[str, Any]) -> None:
    """Render an orchestrate/run response: status header plus progress table.

    Parameters
    ----------
    console:
        Rich console to write to (typically stderr).
    payload:
        Response body from the orchestrate, run or status endpoint.
    """
    status = payload.get("status", "unknown")
    header = (
        f"[bold]Execution:[/bold] {payload.get('execution_id', '-')}\n"
        f"[bold]Type:[/bold] {payload.get('type', '-')}\n"
        f"[bold]Status:[/bold] {_coloured_status(status)}\n"
        f"[bold]Message:[/bold] {payload.get('message', '')}"
    )
    if payload.get("error"):
        header += f"\n[bold red]Error:[/bold red] {payload['error']}"
    console.print(Panel(header, title="FPL Indexing", expand=False))

    progress = payload.get("progress") or {}
    table = Table(title="Progress", show_lines=False)
    table.add_column("Field", style="bold")
    table.add_column("Value", justify="right")

    if progress.get("total_managers") is not None:
        table.add_row("Managers", f"{_fmt(progress.get('managers_processed'))}/{progress['total_managers']}")
    table.add_row("Gameweek range", f"{_fmt(progress.get('from_gw'))}-{_fmt(progress.get('to_gw'))}")
    table.add_row("Cursor", _fmt(progress.get("current_gw")))
    table.add_row("Processed", _fmt(progress.get("gameweeks_processed")))
    table.add_row("[green]Success[/green]", _fmt(progress.get("gameweeks_success")))
    table.add_row("[red]Failed[/red]", _fmt(progress.get("gameweeks_failed")))
    table.add_row("[dim]Skipped[/dim]", _fmt(progress.get("gameweeks_skipped")))

    if "gameweeks_percentage" in progress:
        table.add_row("Gameweeks %", f"{progress['gameweeks_percentage']}%")
    if progress.get("managers_percentage") is not None:
        table.add_row("Managers %", f"{progress['managers_percentage']}%")

    console.print(table)

    timestamps = payload.get("timestamps")
    if timestamps:
        ts_table = Table(title="Timestamps")
        ts_table.add_column("Event", style="bold")
        ts_table.add_column("At (UTC)")
        for key in ("created_at", "started_at", "updated_at", "completed_at"):
            ts_table.add_row(key.removesuffix("_at"), _fmt_timestamp(timestamps.get(key)))
        console.print(ts_table)

    links = payload.get("next")
    if links:
        console.print(f"[dim]Resume with:[/dim] fplindex run {payload.get('execution_id')}")


def display_drive_step(console: Console, chunk: int, payload: dict[str, Any]) -> None:
    """One-line progress update printed after each chunk of ``fplindex drive``."""
    progress = payload.get("progress") or {}
    console.print(
        f"chunk {chunk}: {_coloured_status(payload.get('status', 'unknown'))} "
        f"{_fmt(progress.get('gameweeks_processed'))} processed, "
        f"{payload.get('message', '')}"
    )
