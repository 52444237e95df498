"""Delivery of recent summaries to the external analytics dashboard."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional

import httpx

from datastore.telemetry_store import TelemetryRepository, build_default_store
from models.records import SensorSummary
from settings import get_settings

logger = logging.getLogger(__name__)

RECENT_SUMMARY_LIMIT = 100
SENSOR_TYPE_PLACEHOLDER = "{sensorType}"


def to_dashboard_record(summary: SensorSummary) -> Dict[str, Optional[str]]:
    """Flatten a summary into the dashboard's all-strings row format."""
    return {
        "sensorId": summary.sensor_id,
        "sensorType": summary.sensor_type,
        "averageValue": str(summary.average_value),
        "minValue": str(summary.min_value),
        "maxValue": str(summary.max_value),
        "standardDeviation": str(summary.standard_deviation),
        "unit": summary.unit,
        "area": summary.area,
        "startPeriod": summary.start_period.isoformat(),
        "endPeriod": summary.end_period.isoformat(),
        "sampleCount": str(summary.sample_count),
        "alertTriggered": "true" if summary.alert_triggered else "false",
    }


class DashboardClient:
    """Minimal HTTP client for the dashboard's streaming endpoint."""

    def __init__(
        self,
        url_template: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.url_template = url_template
        self._api_key = api_key
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def url_for(self, sensor_type: str) -> str:
        return self.url_template.replace(SENSOR_TYPE_PLACEHOLDER, sensor_type)

    def post_summaries(
        self, sensor_type: str, records: List[Dict[str, Any]]
    ) -> httpx.Response:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return self._client.post(self.url_for(sensor_type), json=records, headers=headers)


class SummarySink:
    """Pushes the most recent summaries to the dashboard, one request per type."""

    def __init__(
        self,
        repository: TelemetryRepository,
        client: Optional[DashboardClient],
        batch_size: int = RECENT_SUMMARY_LIMIT,
    ) -> None:
        self.repository = repository
        self.client = client
        self.batch_size = batch_size

    def publish_recent(self) -> None:
        """Send recent summaries; failures are logged and never raised."""
        if self.client is None:
            logger.info("Dashboard URL not configured; skipping summary delivery")
            return

        try:
            summaries = self.repository.find_recent_summaries(self.batch_size)
        except Exception:
            logger.exception("Failed to load recent summaries for dashboard delivery")
            return

        if not summaries:
            logger.info("No summaries to send to the dashboard")
            return

        by_type: Dict[str, List[SensorSummary]] = {}
        for summary in summaries:
            by_type.setdefault(summary.sensor_type, []).append(summary)

        for sensor_type, group in by_type.items():
            self._send(sensor_type, group)

    def close(self) -> None:
        if self.client is not None:
            self.client.close()

    def _send(self, sensor_type: str, summaries: List[SensorSummary]) -> None:
        context: Dict[str, Any] = {
            "sensor_type": sensor_type,
            "summary_count": len(summaries),
        }
        try:
            records = [to_dashboard_record(summary) for summary in summaries]
            response = self.client.post_summaries(sensor_type, records)
        except httpx.HTTPError as exc:
            logger.error(
                "Dashboard request failed", extra={**context, "reason": str(exc)}
            )
            return
        except Exception:  # noqa: BLE001 - one partition must not stop the others
            logger.exception("Unexpected error sending summaries", extra=context)
            return

        context["status_code"] = response.status_code
        if response.is_success:
            logger.info("Summaries delivered to dashboard", extra=context)
        else:
            logger.error("Dashboard rejected summaries", extra=context)


@lru_cache
def build_default_sink() -> SummarySink:
    """Factory that wires the sink with the default store and dashboard URL."""
    settings = get_settings()
    client = None
    if settings.dashboard_url:
        client = DashboardClient(
            settings.dashboard_url,
            api_key=settings.dashboard_api_key,
            timeout=settings.dashboard_timeout,
        )
    return SummarySink(repository=build_default_store(), client=client)
