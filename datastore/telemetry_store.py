from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import List, Optional

from pydantic import BaseModel

from models.records import SensorReading, SensorSummary
from settings import get_settings

logger = logging.getLogger(__name__)

_READING = "reading"
_SUMMARY = "summary"


class TelemetryRepository(ABC):
    """Persistence boundary shared by the ingestion and aggregation paths."""

    @abstractmethod
    def save_reading(self, reading: SensorReading) -> None:
        ...

    @abstractmethod
    def find_readings_between(
        self, start: datetime, end: datetime
    ) -> List[SensorReading]:
        """Readings with ``start <= timestamp <= end`` in insertion order."""

    @abstractmethod
    def save_summary(self, summary: SensorSummary) -> None:
        ...

    @abstractmethod
    def find_recent_summaries(self, limit: int) -> List[SensorSummary]:
        """Up to ``limit`` summaries, newest ``end_period`` first."""


class TelemetryStore(TelemetryRepository):
    """Append-only in-memory store with optional JSON-lines file persistence.

    Each save appends one line to the file; loading replays the lines in order.
    """

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self._readings: List[SensorReading] = []
        self._summaries: List[SensorSummary] = []
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def save_reading(self, reading: SensorReading) -> None:
        if reading.timestamp is None:
            raise ValueError("Cannot persist a reading without a timestamp.")
        with self._lock:
            snapshot = reading.model_copy(deep=True, update={"topic": None})
            self._readings.append(snapshot)
            self._persist(_READING, snapshot)

    def find_readings_between(
        self, start: datetime, end: datetime
    ) -> List[SensorReading]:
        with self._lock:
            return [
                reading.model_copy(deep=True)
                for reading in self._readings
                if reading.timestamp is not None and start <= reading.timestamp <= end
            ]

    def save_summary(self, summary: SensorSummary) -> None:
        with self._lock:
            snapshot = summary.model_copy(deep=True)
            self._summaries.append(snapshot)
            self._persist(_SUMMARY, snapshot)

    def find_recent_summaries(self, limit: int) -> List[SensorSummary]:
        with self._lock:
            ordered = sorted(
                self._summaries, key=lambda summary: summary.end_period, reverse=True
            )
            return [summary.model_copy(deep=True) for summary in ordered[:limit]]

    def _persist(self, kind: str, item: BaseModel) -> None:
        if not self.persistence_path:
            return
        line = json.dumps({"kind": kind, "record": item.model_dump(mode="json")}, sort_keys=True)
        with self.persistence_path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            lines = self.persistence_path.read_text(encoding="utf-8").splitlines()
        except OSError:
            logger.exception("Failed to read telemetry store; starting empty")
            return

        for number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                entry = json.loads(line)
                if entry["kind"] == _READING:
                    self._readings.append(SensorReading.model_validate(entry["record"]))
                elif entry["kind"] == _SUMMARY:
                    self._summaries.append(SensorSummary.model_validate(entry["record"]))
                else:
                    raise ValueError(f"unknown record kind {entry['kind']!r}")
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning(
                    "Skipping unreadable store line %d: %s",
                    number,
                    exc,
                    extra={"reason": "corrupt"},
                )


@lru_cache
def build_default_store(path: Optional[str] = None) -> TelemetryStore:
    settings = get_settings()
    store_path = settings.store_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return TelemetryStore(persistence_path=persistence)
