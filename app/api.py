"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import AggregationResponse, IngestResponse
from models.records import SensorReading, SensorSummary
from services.processor import TelemetryProcessor, build_default_processor

router = APIRouter()


def get_processor() -> TelemetryProcessor:
    return build_default_processor()


@router.post(
    "/readings",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=IngestResponse,
    summary="Ingest a single sensor reading.",
)
def ingest_reading(
    reading: SensorReading,
    processor: TelemetryProcessor = Depends(get_processor),
) -> IngestResponse:
    reading.status = None
    processor.ingest(reading)
    if reading.status is None or reading.timestamp is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reading could not be stored.",
        )
    return IngestResponse(
        sensor_id=reading.sensor_id,
        status=reading.status,
        timestamp=reading.timestamp,
    )


@router.get(
    "/summaries",
    response_model=List[SensorSummary],
    summary="List the most recent summaries, newest first.",
)
async def list_summaries(
    limit: int = Query(100, ge=1, le=500),
    processor: TelemetryProcessor = Depends(get_processor),
) -> List[SensorSummary]:
    return processor.repository.find_recent_summaries(limit)


@router.post(
    "/aggregations",
    response_model=AggregationResponse,
    summary="Run an aggregation cycle over the current window immediately.",
)
def trigger_aggregation(
    processor: TelemetryProcessor = Depends(get_processor),
) -> AggregationResponse:
    summaries = processor.run_aggregation_cycle()
    sensor_types = sorted({summary.sensor_type for summary in summaries})
    return AggregationResponse(summary_count=len(summaries), sensor_types=sensor_types)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
