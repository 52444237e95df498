"""Ingestion and periodic aggregation of sensor telemetry."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from threading import BoundedSemaphore, Lock
from typing import Dict, List, Optional

from pydantic import ValidationError

from datastore.telemetry_store import TelemetryRepository, build_default_store
from models.records import SensorReading, SensorSummary
from services.aggregator import Aggregator
from services.alerts import AlertEvaluator, AlertThresholds
from services.dashboard import SummarySink, build_default_sink
from settings import get_settings

logger = logging.getLogger(__name__)


class TelemetryProcessor:
    """Coordinates reading ingestion, alert evaluation, and windowed aggregation."""

    def __init__(
        self,
        repository: TelemetryRepository,
        evaluator: AlertEvaluator,
        aggregator: Aggregator,
        sink: SummarySink,
        window: timedelta = timedelta(minutes=5),
        workers: int = 4,
        max_pending: int = 1000,
    ) -> None:
        self.repository = repository
        self.evaluator = evaluator
        self.aggregator = aggregator
        self.sink = sink
        self.window = window
        self.executor = ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="ingest"
        )
        self._pending = BoundedSemaphore(max_pending)
        self._cycle_lock = Lock()

    def enqueue_message(self, topic: str, payload: bytes) -> bool:
        """Hand a raw transport message to the ingestion workers without blocking."""
        if not self._pending.acquire(blocking=False):
            logger.warning(
                "Ingestion queue full; dropping message",
                extra={"topic": topic, "reason": "backpressure"},
            )
            return False

        try:
            future = self.executor.submit(self.handle_message, topic, payload)
        except RuntimeError:
            self._pending.release()
            logger.warning(
                "Ingestion executor is shut down; dropping message",
                extra={"topic": topic},
            )
            return False

        future.add_done_callback(self._release_slot)
        return True

    def handle_message(self, topic: str, payload: bytes) -> None:
        """Decode one transport payload and ingest it; bad payloads are dropped."""
        try:
            reading = SensorReading.from_message(payload, topic=topic)
        except ValidationError as exc:
            logger.warning(
                "Dropping undecodable message",
                extra={"topic": topic, "reason": f"{exc.error_count()} validation errors"},
            )
            return
        logger.debug("Message received", extra={"topic": topic})
        self.ingest(reading)

    def ingest(self, reading: SensorReading) -> None:
        """Stamp, persist, and evaluate a reading. Errors are logged, never raised."""
        context: Dict[str, object] = {
            "sensor_id": reading.sensor_id,
            "value": reading.value,
            "unit": reading.unit,
        }
        try:
            if reading.timestamp is None:
                reading.timestamp = datetime.now(timezone.utc)

            # Raw records are stored before evaluation and keep no status.
            self.repository.save_reading(reading)
            self.evaluator.evaluate(reading)
        except Exception:
            logger.exception("Failed to ingest reading", extra=context)
            return

        logger.info("Reading stored", extra={**context, "status": reading.status})

    def run_aggregation_cycle(self, now: Optional[datetime] = None) -> List[SensorSummary]:
        """Summarize the readings of the last window and push recent summaries."""
        with self._cycle_lock:
            return self._run_cycle(now or datetime.now(timezone.utc))

    def shutdown(self) -> None:
        """Clean up executor resources during application shutdown."""
        self.executor.shutdown(wait=False, cancel_futures=True)
        self.sink.close()

    def _release_slot(self, _future: Future[None]) -> None:
        self._pending.release()

    def _run_cycle(self, end: datetime) -> List[SensorSummary]:
        start = end - self.window
        window = {"window_start": start, "window_end": end}
        logger.info("Starting aggregation cycle", extra=window)

        try:
            readings = self.repository.find_readings_between(start, end)
        except Exception:
            logger.exception("Failed to load readings; aborting cycle", extra=window)
            return []

        if not readings:
            logger.info("No readings in window", extra=window)
            return []

        by_type: Dict[str, List[SensorReading]] = {}
        for reading in readings:
            by_type.setdefault(reading.sensor_type, []).append(reading)

        summaries: List[SensorSummary] = []
        for sensor_type, group in by_type.items():
            try:
                reduced = self.aggregator.reduce(sensor_type, group)
            except Exception:
                logger.exception(
                    "Failed to summarize readings", extra={**window, "sensor_type": sensor_type}
                )
                continue
            for summary in reduced:
                self._store_summary(summary)
                summaries.append(summary)

        self.sink.publish_recent()

        logger.info(
            "Aggregation cycle finished for %d sensor types",
            len(by_type),
            extra={**window, "summary_count": len(summaries)},
        )
        return summaries

    def _store_summary(self, summary: SensorSummary) -> None:
        context = {
            "sensor_id": summary.sensor_id,
            "sensor_type": summary.sensor_type,
            "sample_count": summary.sample_count,
        }
        try:
            self.repository.save_summary(summary)
        except Exception:
            logger.exception("Failed to persist summary", extra=context)
            return
        logger.info(
            "Summary stored: avg=%s min=%s max=%s",
            summary.average_value,
            summary.min_value,
            summary.max_value,
            extra=context,
        )


@lru_cache
def build_default_processor(
    workers: Optional[int] = None,
) -> TelemetryProcessor:
    """Factory that wires the processor with the default store and sink."""
    settings = get_settings()
    worker_count = workers or settings.ingest_workers
    return TelemetryProcessor(
        repository=build_default_store(),
        evaluator=AlertEvaluator(AlertThresholds.from_settings(settings)),
        aggregator=Aggregator(),
        sink=build_default_sink(),
        window=timedelta(milliseconds=settings.aggregation_interval_ms),
        workers=worker_count,
        max_pending=settings.ingest_max_pending,
    )
