from __future__ import annotations

import pytest

from models.records import ReadingStatus, SensorReading
from services.alerts import AlertEvaluator, AlertThreshold, AlertThresholds
from settings import get_settings

_EPSILON = 1e-6


def _reading(sensor_type: str, value: float, battery: int | None = 80) -> SensorReading:
    return SensorReading(
        sensor_id="sensor-1",
        sensor_type=sensor_type,
        value=value,
        unit="u",
        battery_level=battery,
    )


@pytest.fixture()
def evaluator() -> AlertEvaluator:
    return AlertEvaluator(AlertThresholds())


@pytest.mark.parametrize(
    ("sensor_type", "low", "high"),
    [("temperature", 10.0, 35.0), ("humidity", 20.0, 80.0), ("pressure", 950.0, 1050.0)],
)
def test_values_outside_bounds_raise_alert(
    evaluator: AlertEvaluator, sensor_type: str, low: float, high: float
) -> None:
    below = _reading(sensor_type, low - _EPSILON)
    above = _reading(sensor_type, high + _EPSILON)

    assert evaluator.evaluate(below) is True
    assert evaluator.evaluate(above) is True
    assert below.status is ReadingStatus.ALERT
    assert above.status is ReadingStatus.ALERT


@pytest.mark.parametrize(
    ("sensor_type", "value"),
    [("temperature", 22.0), ("humidity", 50.0), ("pressure", 1013.25), ("temperature", 10.0)],
)
def test_values_within_bounds_are_normal(
    evaluator: AlertEvaluator, sensor_type: str, value: float
) -> None:
    reading = _reading(sensor_type, value)

    assert evaluator.evaluate(reading) is False
    assert reading.status is ReadingStatus.NORMAL


def test_sensor_type_lookup_is_case_insensitive(evaluator: AlertEvaluator) -> None:
    reading = _reading("Temperature", 50.0)

    assert evaluator.evaluate(reading) is True
    assert reading.status is ReadingStatus.ALERT


def test_battery_at_critical_level_raises_alert(evaluator: AlertEvaluator) -> None:
    reading = _reading("temperature", 22.0, battery=10)

    assert evaluator.evaluate(reading) is True
    assert reading.status is ReadingStatus.ALERT


def test_battery_above_critical_level_is_normal(evaluator: AlertEvaluator) -> None:
    reading = _reading("temperature", 22.0, battery=11)

    assert evaluator.evaluate(reading) is False


def test_unknown_type_only_alerts_on_battery(evaluator: AlertEvaluator) -> None:
    wild_value = _reading("vibration", 1e9)
    low_battery = _reading("vibration", 0.0, battery=3)

    assert evaluator.evaluate(wild_value) is False
    assert wild_value.status is ReadingStatus.NORMAL
    assert evaluator.evaluate(low_battery) is True
    assert low_battery.status is ReadingStatus.ALERT


def test_missing_battery_level_is_ignored(evaluator: AlertEvaluator) -> None:
    reading = _reading("humidity", 40.0, battery=None)

    assert evaluator.evaluate(reading) is False


def test_custom_thresholds_are_respected() -> None:
    evaluator = AlertEvaluator(
        AlertThresholds(bounds={"co2": AlertThreshold(0.0, 1000.0)}, critical_battery_level=25)
    )

    assert evaluator.evaluate(_reading("CO2", 1200.0)) is True
    assert evaluator.evaluate(_reading("temperature", 99.0)) is False
    assert evaluator.evaluate(_reading("co2", 400.0, battery=25)) is True


def test_thresholds_from_settings(monkeypatch) -> None:
    monkeypatch.setenv("ALERT_TEMPERATURE_MAX", "40")
    monkeypatch.setenv("ALERT_BATTERY_CRITICAL", "15")
    get_settings.cache_clear()
    try:
        thresholds = AlertThresholds.from_settings(get_settings())
    finally:
        get_settings.cache_clear()

    assert thresholds.for_type("TEMPERATURE") == AlertThreshold(10.0, 40.0)
    assert thresholds.for_type("humidity") == AlertThreshold(20.0, 80.0)
    assert thresholds.critical_battery_level == 15
