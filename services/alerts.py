"""Threshold checks applied to every ingested reading."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping

from models.records import ReadingStatus, SensorReading
from settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertThreshold:
    min: float
    max: float


@dataclass(frozen=True)
class AlertThresholds:
    """Per-category bounds keyed by lowercased sensor type."""

    bounds: Mapping[str, AlertThreshold] = field(
        default_factory=lambda: {
            "temperature": AlertThreshold(10.0, 35.0),
            "humidity": AlertThreshold(20.0, 80.0),
            "pressure": AlertThreshold(950.0, 1050.0),
        }
    )
    critical_battery_level: int = 10

    @classmethod
    def from_settings(cls, settings: Settings) -> "AlertThresholds":
        return cls(
            bounds={
                "temperature": AlertThreshold(
                    settings.temperature_min, settings.temperature_max
                ),
                "humidity": AlertThreshold(settings.humidity_min, settings.humidity_max),
                "pressure": AlertThreshold(settings.pressure_min, settings.pressure_max),
            },
            critical_battery_level=settings.battery_critical_level,
        )

    def for_type(self, sensor_type: str) -> AlertThreshold | None:
        return self.bounds.get(sensor_type.lower())


class AlertEvaluator:
    """Flags readings with a critical battery or an out-of-range value."""

    def __init__(self, thresholds: AlertThresholds) -> None:
        self.thresholds = thresholds
        logger.info(
            "Alert thresholds configured for %d sensor types", len(thresholds.bounds)
        )

    def evaluate(self, reading: SensorReading) -> bool:
        """Set ``reading.status`` and return whether any alert condition fired."""
        triggered = False

        battery = reading.battery_level
        if battery is not None and battery <= self.thresholds.critical_battery_level:
            logger.warning(
                "Critical battery level %d%%",
                battery,
                extra={"sensor_id": reading.sensor_id},
            )
            triggered = True

        threshold = self.thresholds.for_type(reading.sensor_type)
        if threshold is not None and reading.value is not None:
            value = reading.value
            context = {
                "sensor_id": reading.sensor_id,
                "sensor_type": reading.sensor_type.lower(),
                "value": value,
                "unit": reading.unit,
            }
            if value < threshold.min:
                logger.warning("Value below minimum %s", threshold.min, extra=context)
                triggered = True
            elif value > threshold.max:
                logger.warning("Value above maximum %s", threshold.max, extra=context)
                triggered = True

        reading.status = ReadingStatus.ALERT if triggered else ReadingStatus.NORMAL
        return triggered
