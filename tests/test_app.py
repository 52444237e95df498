from datetime import datetime, timedelta, timezone
from typing import Iterator, List

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from datastore.telemetry_store import TelemetryStore
from services.aggregator import Aggregator
from services.alerts import AlertEvaluator, AlertThresholds
from services.dashboard import SummarySink
from services.processor import TelemetryProcessor
from settings import ConfigurationError


class StubSubscriber:
    def __init__(self, on_payload) -> None:
        self.on_payload = on_payload
        self.started = False
        self.stopped = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True


class StubScheduler:
    def __init__(self, job) -> None:
        self.job = job
        self.started = False
        self.stopped = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True


class Lifecycle:
    def __init__(self) -> None:
        self.subscribers: List[StubSubscriber] = []
        self.schedulers: List[StubScheduler] = []
        self.processor: TelemetryProcessor | None = None


def _install_processor(monkeypatch, lifecycle: Lifecycle) -> None:
    def build_test_processor(workers: int | None = None) -> TelemetryProcessor:
        if lifecycle.processor is None:
            store = TelemetryStore()
            lifecycle.processor = TelemetryProcessor(
                repository=store,
                evaluator=AlertEvaluator(AlertThresholds()),
                aggregator=Aggregator(),
                sink=SummarySink(repository=store, client=None),
                workers=1,
            )
        return lifecycle.processor

    build_test_processor.cache_clear = lambda: None  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_processor", build_test_processor)
    monkeypatch.setattr("app.api.build_default_processor", build_test_processor)


@pytest.fixture
def lifecycle(monkeypatch) -> Lifecycle:
    state = Lifecycle()
    _install_processor(monkeypatch, state)

    def build_subscriber(on_payload) -> StubSubscriber:
        subscriber = StubSubscriber(on_payload)
        state.subscribers.append(subscriber)
        return subscriber

    def build_scheduler(job) -> StubScheduler:
        scheduler = StubScheduler(job)
        state.schedulers.append(scheduler)
        return scheduler

    monkeypatch.setattr("app.main.build_default_subscriber", build_subscriber)
    monkeypatch.setattr("app.main.build_default_scheduler", build_scheduler)
    return state


@pytest.fixture
def api_client(lifecycle: Lifecycle) -> Iterator[TestClient]:
    app = create_app()
    with TestClient(app) as client:
        yield client


def test_lifespan_starts_and_stops_background_work(lifecycle: Lifecycle) -> None:
    app = create_app()

    with TestClient(app):
        [subscriber] = lifecycle.subscribers
        [scheduler] = lifecycle.schedulers
        assert subscriber.started and scheduler.started
        assert subscriber.on_payload == lifecycle.processor.enqueue_message
        assert scheduler.job == lifecycle.processor.run_aggregation_cycle

    assert subscriber.stopped and scheduler.stopped
    assert lifecycle.processor.executor._shutdown is True


def test_missing_broker_url_aborts_startup(monkeypatch) -> None:
    lifecycle = Lifecycle()
    _install_processor(monkeypatch, lifecycle)

    def build_subscriber(on_payload):
        raise ConfigurationError("MQTT broker URL is not configured.")

    monkeypatch.setattr("app.main.build_default_subscriber", build_subscriber)

    with pytest.raises(ConfigurationError):
        with TestClient(create_app()):
            pass


def test_health(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}


def test_ingest_reading_returns_status(api_client: TestClient) -> None:
    response = api_client.post(
        "/readings",
        json={"sensorId": "t-1", "sensorType": "temperature", "value": 40.0, "unit": "C"},
    )

    assert response.status_code == 202
    body = response.json()
    assert body["sensorId"] == "t-1"
    assert body["status"] == "ALERT"
    assert body["timestamp"] is not None


def test_ingest_reading_ignores_client_status(api_client: TestClient) -> None:
    response = api_client.post(
        "/readings",
        json={"sensorId": "t-1", "sensorType": "temperature", "value": 20.0, "status": "ALERT"},
    )

    assert response.json()["status"] == "NORMAL"


def test_ingest_invalid_reading_is_rejected(api_client: TestClient) -> None:
    response = api_client.post("/readings", json={"sensorId": "t-1"})

    assert response.status_code == 422


def test_aggregate_and_list_summaries(api_client: TestClient) -> None:
    now = datetime.now(timezone.utc)
    for value in (10.0, 20.0, 30.0):
        api_client.post(
            "/readings",
            json={
                "sensorId": "t-1",
                "sensorType": "temperature",
                "value": value,
                "unit": "C",
                "latitude": 5.0,
                "longitude": -3.0,
                "timestamp": (now - timedelta(seconds=30)).isoformat(),
            },
        )

    aggregation = api_client.post("/aggregations")
    assert aggregation.status_code == 200
    assert aggregation.json() == {"summaryCount": 1, "sensorTypes": ["temperature"]}

    summaries = api_client.get("/summaries", params={"limit": 5}).json()
    assert len(summaries) == 1
    summary = summaries[0]
    assert summary["sensorId"] == "t-1"
    assert summary["averageValue"] == 20.0
    assert summary["sampleCount"] == 3
    assert summary["area"] == "Noroeste"
    assert summary["alertTriggered"] is False


def test_aggregate_with_no_readings(api_client: TestClient) -> None:
    response = api_client.post("/aggregations")

    assert response.json() == {"summaryCount": 0, "sensorTypes": []}


def test_summaries_limit_is_validated(api_client: TestClient) -> None:
    assert api_client.get("/summaries", params={"limit": 0}).status_code == 422
