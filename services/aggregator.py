"""Aggregation logic for sensor readings."""

from __future__ import annotations

import math
from typing import Dict, Iterable, List, Sequence, Tuple

from models.records import SensorReading, SensorSummary

UNKNOWN_AREA = "Desconhecida"


def determine_area(readings: Sequence[SensorReading]) -> str:
    """Classify the centroid of the group's coordinates into a quadrant.

    Latitude and longitude are averaged independently over the readings that
    carry them. Zero falls on the southern/western side.
    """
    if not any(reading.has_coordinates for reading in readings):
        return UNKNOWN_AREA

    latitudes = [r.latitude for r in readings if r.latitude is not None]
    longitudes = [r.longitude for r in readings if r.longitude is not None]
    avg_lat = sum(latitudes) / len(latitudes)
    avg_lon = sum(longitudes) / len(longitudes)

    if avg_lat > 0:
        return "Nordeste" if avg_lon > 0 else "Noroeste"
    return "Sudeste" if avg_lon > 0 else "Sudoeste"


def _mean_and_deviation(
    values: Sequence[float], min_value: float, max_value: float
) -> Tuple[float, float]:
    """Mean and population standard deviation of finite samples.

    Sums that overflow are redone on values divided by the largest magnitude,
    so any finite input yields finite statistics.
    """
    count = len(values)
    average = sum(values) / count
    if math.isinf(average):
        scale = max(abs(min_value), abs(max_value))
        average = scale * (sum(value / scale for value in values) / count)
    # Rounding can push the mean just outside the sample range.
    average = min(max(average, min_value), max_value)

    # Population variance: divide by N.
    squared = sum((value - average) * (value - average) for value in values)
    if not math.isinf(squared):
        return average, math.sqrt(squared / count)

    scale = max(abs(min_value), abs(max_value))
    scaled_mean = average / scale
    scaled = sum(
        (value / scale - scaled_mean) * (value / scale - scaled_mean) for value in values
    )
    return average, scale * math.sqrt(scaled / count)


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def reduce(
        self, sensor_type: str, readings: Iterable[SensorReading]
    ) -> List[SensorSummary]:
        by_sensor: Dict[str, List[SensorReading]] = {}
        for reading in readings:
            by_sensor.setdefault(reading.sensor_id, []).append(reading)

        return [
            self.summarize(sensor_type, sensor_id, group)
            for sensor_id, group in by_sensor.items()
        ]

    def summarize(
        self, sensor_type: str, sensor_id: str, readings: Sequence[SensorReading]
    ) -> SensorSummary:
        if not readings:
            raise ValueError(f"No readings to summarize for sensor {sensor_id!r}.")

        count = len(readings)
        values = [reading.value for reading in readings]
        min_value = min(values)
        max_value = max(values)
        average, std_dev = _mean_and_deviation(values, min_value, max_value)

        timestamps = [r.timestamp for r in readings if r.timestamp is not None]

        return SensorSummary(
            sensor_id=sensor_id,
            sensor_type=sensor_type,
            average_value=average,
            min_value=min_value,
            max_value=max_value,
            standard_deviation=std_dev,
            unit=readings[0].unit,
            area=determine_area(readings),
            start_period=min(timestamps),
            end_period=max(timestamps),
            sample_count=count,
            alert_triggered=False,
        )
