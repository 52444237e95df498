from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from datastore.telemetry_store import build_default_store
from logging_config import configure_logging
from services.dashboard import build_default_sink
from services.processor import build_default_processor
from services.scheduler import build_default_scheduler
from transport.subscriber import build_default_subscriber


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    processor = build_default_processor()
    # Configuration errors raised here abort startup.
    subscriber = build_default_subscriber(processor.enqueue_message)
    scheduler = build_default_scheduler(processor.run_aggregation_cycle)
    subscriber.start()
    scheduler.start()
    try:
        yield
    finally:
        subscriber.stop()
        scheduler.stop()
        processor.shutdown()
        build_default_processor.cache_clear()
        build_default_sink.cache_clear()
        build_default_store.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Sensor Telemetry Aggregator",
        description="MQTT telemetry ingestion with windowed per-sensor summaries.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app


app = create_app()
