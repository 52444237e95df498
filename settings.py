from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple


_BROKER_URL_ENV = "MQTT_BROKER_URL"
_CLIENT_ID_ENV = "MQTT_CLIENT_ID"
_USERNAME_ENV = "MQTT_USERNAME"
_PASSWORD_ENV = "MQTT_PASSWORD"
_TOPICS_ENV = "MQTT_TOPICS"
_INTERVAL_ENV = "AGGREGATION_INTERVAL_MS"
_BATTERY_CRITICAL_ENV = "ALERT_BATTERY_CRITICAL"
_DASHBOARD_URL_ENV = "DASHBOARD_STREAMING_URL"
_DASHBOARD_KEY_ENV = "DASHBOARD_API_KEY"
_DASHBOARD_TIMEOUT_ENV = "DASHBOARD_TIMEOUT"
_STORE_PATH_ENV = "TELEMETRY_STORE_PATH"
_WORKER_COUNT_ENV = "INGEST_WORKER_COUNT"
_MAX_PENDING_ENV = "INGEST_MAX_PENDING"
_LOG_LEVEL_ENV = "LOG_LEVEL"


class ConfigurationError(ValueError):
    """Raised when required configuration is missing or malformed."""


@dataclass(frozen=True)
class Settings:
    broker_url: Optional[str]
    client_id: str
    username: Optional[str]
    password: Optional[str]
    topics: Tuple[str, ...]
    aggregation_interval_ms: int
    temperature_min: float
    temperature_max: float
    humidity_min: float
    humidity_max: float
    pressure_min: float
    pressure_max: float
    battery_critical_level: int
    dashboard_url: Optional[str]
    dashboard_api_key: Optional[str]
    dashboard_timeout: float
    store_path: Optional[str]
    ingest_workers: int
    ingest_max_pending: int
    log_level: str

    @property
    def aggregation_interval_seconds(self) -> float:
        return self.aggregation_interval_ms / 1000.0


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_non_negative_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


def _read_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        return float(candidate)
    except ValueError:
        return default


def _read_topics(default: str) -> Tuple[str, ...]:
    raw = _read_str_env(_TOPICS_ENV, default)
    topics = tuple(part.strip() for part in raw.split(",") if part.strip())
    return topics or (default,)


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        broker_url=_read_optional_env(_BROKER_URL_ENV, None),
        client_id=_read_str_env(_CLIENT_ID_ENV, "sensor-aggregator"),
        username=_read_optional_env(_USERNAME_ENV, None),
        password=_read_optional_env(_PASSWORD_ENV, None),
        topics=_read_topics("sensors/#"),
        aggregation_interval_ms=_read_positive_int(_INTERVAL_ENV, 300_000),
        temperature_min=_read_float("ALERT_TEMPERATURE_MIN", 10.0),
        temperature_max=_read_float("ALERT_TEMPERATURE_MAX", 35.0),
        humidity_min=_read_float("ALERT_HUMIDITY_MIN", 20.0),
        humidity_max=_read_float("ALERT_HUMIDITY_MAX", 80.0),
        pressure_min=_read_float("ALERT_PRESSURE_MIN", 950.0),
        pressure_max=_read_float("ALERT_PRESSURE_MAX", 1050.0),
        battery_critical_level=_read_non_negative_int(_BATTERY_CRITICAL_ENV, 10),
        dashboard_url=_read_optional_env(_DASHBOARD_URL_ENV, None),
        dashboard_api_key=_read_optional_env(_DASHBOARD_KEY_ENV, None),
        dashboard_timeout=_read_float(_DASHBOARD_TIMEOUT_ENV, 30.0),
        store_path=_read_optional_env(_STORE_PATH_ENV, "./tmp/telemetry_db.jsonl"),
        ingest_workers=_read_positive_int(_WORKER_COUNT_ENV, 4),
        ingest_max_pending=_read_positive_int(_MAX_PENDING_ENV, 1000),
        log_level=_read_log_level("INFO"),
    )
