from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from cli.client import ApiClient, load_readings
from cli.config import CLIConfig, load_config
from cli.render import render_aggregation, render_ingest, render_summaries


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the sensor telemetry aggregator.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Aggregator API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each API request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("send")
def send_command(
    ctx: typer.Context,
    file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="JSON file with one reading or a list."
    ),
) -> None:
    """Ingest the readings in a JSON file over HTTP."""
    state = _get_state(ctx)
    readings = load_readings(file)
    typer.echo(f"Sending {len(readings)} reading(s) to {state.config.base_url} ...")
    for reading in readings:
        render_ingest(state.client.send_reading(reading))


@app.command("aggregate")
def aggregate_command(ctx: typer.Context) -> None:
    """Run an aggregation cycle over the current window now."""
    state = _get_state(ctx)
    render_aggregation(state.client.trigger_aggregation())


@app.command("summaries")
def summaries_command(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-n", min=1, max=500, help="Number of summaries."),
) -> None:
    """Show the most recent summaries, newest first."""
    state = _get_state(ctx)
    render_summaries(state.client.recent_summaries(limit))
