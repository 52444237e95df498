"""Domain models shared across services."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ReadingStatus(str, Enum):
    """Alert state assigned to a reading after threshold evaluation."""

    NORMAL = "NORMAL"
    ALERT = "ALERT"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SensorReading(BaseModel):
    """A single telemetry sample published by a field sensor."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    sensor_id: str
    sensor_type: str
    value: float = Field(..., allow_inf_nan=False)
    unit: Optional[str] = None
    battery_level: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timestamp: Optional[datetime] = None
    status: Optional[ReadingStatus] = None
    # Routing metadata from the transport, never persisted.
    topic: Optional[str] = Field(default=None, exclude=True)

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value) if value is not None else None

    @classmethod
    def from_message(
        cls, payload: bytes | str, topic: Optional[str] = None
    ) -> "SensorReading":
        """Decode an inbound JSON payload, discarding any publisher-set status."""
        reading = cls.model_validate_json(payload)
        reading.status = None
        reading.topic = topic
        return reading

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class SensorSummary(BaseModel):
    """Statistics for one sensor over one aggregation window."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    sensor_id: str
    sensor_type: str
    average_value: float
    min_value: float
    max_value: float
    standard_deviation: float
    unit: Optional[str] = None
    area: str
    start_period: datetime
    end_period: datetime
    sample_count: int = Field(..., ge=1)
    # Never derived from the readings' alert states.
    alert_triggered: bool = False
    alert_message: Optional[str] = None
