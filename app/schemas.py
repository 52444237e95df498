"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models.records import ReadingStatus


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IngestResponse(_CamelModel):
    """Outcome of ingesting a reading over HTTP."""

    sensor_id: str
    status: ReadingStatus
    timestamp: datetime


class AggregationResponse(_CamelModel):
    """Result of a manually triggered aggregation cycle."""

    summary_count: int = Field(..., ge=0)
    sensor_types: List[str] = Field(default_factory=list)
