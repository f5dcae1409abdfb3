from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel


class Ga4ConnectRequest(BaseModel):
    store_id: str | None = None
    measurement_id: str | None = None
    api_secret: str | None = None
    enabled: bool | None = None


class Ga4ConnectResponse(BaseModel):
    ok: bool
    status: Literal["ga4_connected"]
    store_id: str
    enabled: bool


class Ga4ValidateResponse(BaseModel):
    status: Literal["validated"]
    store_id: str
    validation_messages: list[Any]


class StoreListItem(BaseModel):
    store_id: str
    status: str | None = None
    scope: str | None = None
    installed_at: datetime | None = None
    updated_at: datetime | None = None


class MetricsResponse(BaseModel):
    counters: dict[str, int]
    dispatch_pending: int
