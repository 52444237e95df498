from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer

_SUMMARY_COLUMNS = (
    ("sensorType", "type"),
    ("sensorId", "sensor"),
    ("sampleCount", "n"),
    ("averageValue", "avg"),
    ("minValue", "min"),
    ("maxValue", "max"),
    ("standardDeviation", "std"),
    ("unit", "unit"),
    ("area", "area"),
    ("endPeriod", "end"),
)


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _format_cell(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.3f}"
    return str(value)


def render_ingest(payload: Dict[str, Any]) -> None:
    status = payload.get("status")
    colour = typer.colors.RED if status == "ALERT" else typer.colors.GREEN
    typer.secho(
        f"{payload.get('sensorId')}: {status} at {payload.get('timestamp')}",
        fg=colour,
    )


def render_aggregation(payload: Dict[str, Any]) -> None:
    echo_heading("Aggregation Cycle")
    echo_key_values(
        [
            ("summary_count", payload.get("summaryCount")),
            ("sensor_types", ", ".join(payload.get("sensorTypes") or []) or "-"),
        ]
    )


def render_summaries(summaries: List[Dict[str, Any]]) -> None:
    echo_heading("Recent Summaries")
    if not summaries:
        typer.echo("No summaries recorded.")
        return

    rows = [[label for _, label in _SUMMARY_COLUMNS]]
    for summary in summaries:
        rows.append([_format_cell(summary.get(key)) for key, _ in _SUMMARY_COLUMNS])
    widths = [max(len(row[i]) for row in rows) for i in range(len(_SUMMARY_COLUMNS))]
    for row in rows:
        typer.echo("  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip())
