"""fplindex CLI application -- Typer-based driver for the indexing API.

Creates indexing jobs, resumes them chunk by chunk, and reports their
progress.  Human-readable output goes to *stderr* via Rich; with ``--json``
the raw API response is written to *stdout* so pipelines can compose cleanly.
"""

from __future__ import annotations

import json
import sys
import time
from enum import Enum
from typing import Any

import httpx
import typer
from rich.console import Console

from index_cli.display import display_drive_step, display_execution

# ---------------------------------------------------------------------------
# App & global state
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="fplindex",
    help="fplindex - resumable Fantasy Premier League history indexing",
    no_args_is_help=True,
)
console = Console(stderr=True)

orchestrate_app = typer.Typer(
    name="orchestrate",
    help="Create an indexing job and run its first chunks.",
    no_args_is_help=True,
)
app.add_typer(orchestrate_app, name="orchestrate")

_DEFAULT_API_URL = "http://localhost:8000"
_TERMINAL_STATUSES = frozenset({"completed", "failed"})

# Mutable global options populated by the Typer callback.
_json_output: bool = False


class JobType(str, Enum):
    MANAGER = "manager"
    LEAGUE = "league"


# ---------------------------------------------------------------------------
# Callback -- global options
# ---------------------------------------------------------------------------


@app.callback()
def _global_options(
    json_mode: bool = typer.Option(
        False,
        "--json/--no-json",
        help="Emit the API response as JSON on stdout instead of human-readable output.",
    ),
) -> None:
    """Global options applied to every command."""
    global _json_output  # noqa: PLW0603
    _json_output = json_mode


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _api_url_option() -> Any:
    return typer.Option(
        _DEFAULT_API_URL,
        "--api-url",
        help="Indexing API base URL.",
        envvar="FPLINDEX_API_URL",
    )


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message")
        if detail is not None:
            return detail if isinstance(detail, str) else json.dumps(detail)
    return response.text


def _api_request(
    method: str,
    api_url: str,
    path: str,
    *,
    body: dict[str, Any] | None = None,
    timeout: float = 120.0,
) -> Any:
    """Send an HTTP request to the indexing API and return the JSON response.

    Any non-2xx response or transport failure is reported on the console
    and ends the command with exit code 3.
    """
    url = f"{api_url.rstrip('/')}{path}"
    try:
        with httpx.Client(timeout=timeout) as client:
            response = client.request(
                method,
                url,
                headers={"Content-Type": "application/json"},
                json=body,
            )
            response.raise_for_status()
            return response.json()
    except httpx.HTTPStatusError as exc:
        console.print(f"[red]API error ({exc.response.status_code}): {_error_detail(exc.response)}[/red]")
        raise typer.Exit(code=3) from exc
    except httpx.TransportError as exc:
        console.print(f"[red]Cannot connect to API at {api_url}: {exc}[/red]")
        raise typer.Exit(code=3) from exc


def _orchestrate_body(
    job_type: JobType,
    target_id: int,
    from_gw: int,
    to_gw: int | None,
    max_steps: int | None,
    max_iterations: int | None,
) -> dict[str, Any]:
    body: dict[str, Any] = {"type": job_type.value, "from_gw": from_gw}
    body["manager_id" if job_type is JobType.MANAGER else "league_id"] = target_id
    if to_gw is not None:
        body["to_gw"] = to_gw
    if max_steps is not None:
        body["max_steps"] = max_steps
    if max_iterations is not None:
        body["max_iterations"] = max_iterations
    return body


def _emit(result: dict[str, Any]) -> None:
    if _json_output:
        sys.stdout.write(json.dumps(result, indent=2, default=str) + "\n")
    else:
        display_execution(console, result)


def _exit_for(result: dict[str, Any]) -> None:
    """A job that ended in ``failed`` exits non-zero so scripts can react."""
    if result.get("status") == "failed":
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# orchestrate
# ---------------------------------------------------------------------------


def _orchestrate(
    job_type: JobType,
    target_id: int,
    from_gw: int,
    to_gw: int | None,
    max_steps: int | None,
    max_iterations: int | None,
    api_url: str,
) -> None:
    result = _api_request(
        "POST",
        api_url,
        "/api/v1/index/orchestrate",
        body=_orchestrate_body(job_type, target_id, from_gw, to_gw, max_steps, max_iterations),
    )
    _emit(result)
    _exit_for(result)


@orchestrate_app.command("manager")
def orchestrate_manager(
    manager_id: int = typer.Argument(..., help="FPL entry id.", min=1),
    from_gw: int = typer.Option(1, "--from-gw", help="First gameweek (inclusive).", min=1),
    to_gw: int | None = typer.Option(None, "--to-gw", help="Last gameweek; defaults to the current one.", min=1),
    max_steps: int | None = typer.Option(None, "--max-steps", help="Units per chunk.", min=1, max=50),
    max_iterations: int | None = typer.Option(
        None, "--max-iterations", help="Chunks to run in this request.", min=1, max=30
    ),
    api_url: str = _api_url_option(),
) -> None:
    """Index one manager's gameweek history."""
    _orchestrate(JobType.MANAGER, manager_id, from_gw, to_gw, max_steps, max_iterations, api_url)


@orchestrate_app.command("league")
def orchestrate_league(
    league_id: int = typer.Argument(..., help="Classic league id.", min=1),
    from_gw: int = typer.Option(1, "--from-gw", help="First gameweek (inclusive).", min=1),
    to_gw: int | None = typer.Option(None, "--to-gw", help="Last gameweek; defaults to the current one.", min=1),
    max_steps: int | None = typer.Option(None, "--max-steps", help="Units per chunk.", min=1, max=50),
    max_iterations: int | None = typer.Option(
        None, "--max-iterations", help="Chunks to run in this request.", min=1, max=30
    ),
    api_url: str = _api_url_option(),
) -> None:
    """Index every manager in a classic league's standings."""
    _orchestrate(JobType.LEAGUE, league_id, from_gw, to_gw, max_steps, max_iterations, api_url)


# ---------------------------------------------------------------------------
# run / status
# ---------------------------------------------------------------------------


@app.command("run")
def run_chunk(
    execution_id: str = typer.Argument(..., help="Execution id returned by orchestrate."),
    max_steps: int | None = typer.Option(None, "--max-steps", help="Units to process.", min=1, max=50),
    api_url: str = _api_url_option(),
) -> None:
    """Run one more chunk of an existing job."""
    body = {"max_steps": max_steps} if max_steps is not None else None
    result = _api_request("POST", api_url, f"/api/v1/index/run/{execution_id}", body=body)
    _emit(result)
    _exit_for(result)


@app.command("status")
def status(
    execution_id: str = typer.Argument(..., help="Execution id returned by orchestrate."),
    api_url: str = _api_url_option(),
) -> None:
    """Show a job's progress without advancing it."""
    result = _api_request("GET", api_url, f"/api/v1/index/status/{execution_id}")
    _emit(result)


# ---------------------------------------------------------------------------
# drive
# ---------------------------------------------------------------------------


@app.command("drive")
def drive(
    job_type: JobType = typer.Argument(..., help="manager or league."),
    target_id: int = typer.Argument(..., help="Manager or league id.", min=1),
    from_gw: int = typer.Option(1, "--from-gw", help="First gameweek (inclusive).", min=1),
    to_gw: int | None = typer.Option(None, "--to-gw", help="Last gameweek; defaults to the current one.", min=1),
    max_steps: int | None = typer.Option(None, "--max-steps", help="Units per chunk.", min=1, max=50),
    delay: float = typer.Option(1.0, "--delay", help="Seconds to wait between chunks.", min=0.0),
    max_chunks: int = typer.Option(500, "--max-chunks", help="Stop resuming after this many run calls.", min=1),
    api_url: str = _api_url_option(),
) -> None:
    """Orchestrate a job, then keep calling run until it finishes.

    The job is resumable: interrupting ``drive`` loses nothing, and the
    printed execution id can be resumed later with ``fplindex run``.
    """
    result = _api_request(
        "POST",
        api_url,
        "/api/v1/index/orchestrate",
        body=_orchestrate_body(job_type, target_id, from_gw, to_gw, max_steps, None),
    )
    execution_id = result["execution_id"]
    if not _json_output:
        console.print(f"Driving execution [bold]{execution_id}[/bold]")
        display_drive_step(console, 0, result)

    run_body = {"max_steps": max_steps} if max_steps is not None else None
    chunks = 0
    while result.get("status") not in _TERMINAL_STATUSES and chunks < max_chunks:
        time.sleep(delay)
        chunks += 1
        result = _api_request("POST", api_url, f"/api/v1/index/run/{execution_id}", body=run_body)
        if not _json_output:
            display_drive_step(console, chunks, result)

    if result.get("status") not in _TERMINAL_STATUSES and not _json_output:
        console.print(
            f"[yellow]Stopped after {chunks} chunk(s); resume with 'fplindex run {execution_id}'.[/yellow]"
        )

    _emit(result)
    _exit_for(result)
