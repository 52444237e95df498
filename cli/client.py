from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import httpx
import typer

from cli.config import CLIConfig


def load_readings(path: Path) -> List[Dict[str, Any]]:
    """Read one reading object or a list of them from a JSON file."""
    if not path.exists():
        raise typer.BadParameter(f"File {path} does not exist.")
    if not path.is_file():
        raise typer.BadParameter(f"Path {path} is not a file.")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"File {path} is not valid JSON: {exc}") from exc
    readings = payload if isinstance(payload, list) else [payload]
    if not all(isinstance(item, dict) for item in readings):
        raise typer.BadParameter(f"File {path} must contain JSON objects.")
    return readings


class ApiClient:
    """Minimal HTTP client for the aggregator service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def send_reading(self, reading: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self._client.post("/readings", json=reading)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def trigger_aggregation(self) -> Dict[str, Any]:
        try:
            response = self._client.post("/aggregations")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    def recent_summaries(self, limit: int) -> List[Dict[str, Any]]:
        try:
            response = self._client.get("/summaries", params={"limit": limit})
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        payload = response.json()
        if not isinstance(payload, list):
            raise typer.BadParameter("Unexpected response payload when listing summaries.")
        return payload

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: Any = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
