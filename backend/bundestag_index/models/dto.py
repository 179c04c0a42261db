"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class TriggerResponse(BaseModel):
    success: bool
    message: str


class IndexerStatusResponse(BaseModel):
    enabled: bool
    scheduled: bool
    running: bool
    mode: Literal["full", "incremental", "mixed"] | None = None
    last_started_at: datetime | None = None
    last_finished_at: datetime | None = None
    last_success_at: datetime | None = None
    last_duration: float | None = Field(default=None, description="Seconds")
    last_status: str | None = None
    last_indexed: int = 0
    last_chunks: int = 0
    last_skipped: int = 0
    total_indexed: int = 0
    total_chunks: int = 0
    errors: int = 0
    periods: list[int]
    categories: list[str]
    interval_minutes: int
    circuit: dict[str, Any] | None = None
    rate_limiter: dict[str, Any] | None = None


class WatermarkResponse(BaseModel):
    period: int
    category: str
    last_indexed_at: datetime
    indexed_count: int


class WatermarkClearResponse(BaseModel):
    status: Literal["ok", "noop"]
    deleted: int


class BootstrapResponse(BaseModel):
    status: Literal["ok", "noop"]
    written: int


__all__ = [
    "BootstrapResponse",
    "IndexerStatusResponse",
    "TriggerResponse",
    "WatermarkClearResponse",
    "WatermarkResponse",
]
