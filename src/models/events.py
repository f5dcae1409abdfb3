from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from src.domain.events import EventStatus


class EventListItem(BaseModel):
    id: str
    event_id: str | None = None
    store_id: str
    external_id: str
    source: str | None = None
    type: str
    payload: str | None = None
    status: EventStatus
    retries: int = 0
    last_attempt_at: datetime | None = None
    last_platform: str | None = None
    last_http_status: int | None = None
    last_error: str | None = None
    last_response: str | None = None
    created_at: datetime | None = None


class EventStatusCounts(BaseModel):
    pending: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0


class EventStatsResponse(BaseModel):
    store_id: str
    hours: int
    total: int
    by_status: EventStatusCounts


class EventRetryResponse(BaseModel):
    status: Literal["retry_attempted"]
    id: str
    event_status: str | None = None
    retries: int | None = None
