from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.auth import OperatorContext, get_current_operator
from src.config import settings
from src.datastore import events, ga4_settings, stores
from src.models.events import EventListItem, EventRetryResponse, EventStatsResponse
from src.models.platforms import (
    Ga4ConnectRequest,
    Ga4ConnectResponse,
    Ga4ValidateResponse,
    MetricsResponse,
    StoreListItem,
)
from src.observability import log_event, metrics_snapshot
from src.pipeline import dispatcher
from src.providers.ga4 import client as ga4_client
from src.security.encryption import encrypt


router = APIRouter(prefix="/platforms", tags=["platforms"])


def _request_id(request: Request | None) -> str | None:
    if not request:
        return None
    return getattr(getattr(request, "state", None), "request_id", None)


def _required_ga4_fields(data: Ga4ConnectRequest) -> tuple[str, str, str]:
    store_id = str(data.store_id or "").strip()
    measurement_id = str(data.measurement_id or "").strip()
    api_secret = str(data.api_secret or "").strip()
    if not store_id or not measurement_id or not api_secret:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing fields: store_id, measurement_id, api_secret",
        )
    return store_id, measurement_id, api_secret


@router.post("/ga4/connect", response_model=Ga4ConnectResponse)
async def connect_ga4(
    data: Ga4ConnectRequest,
    request: Request,
    _ctx: OperatorContext = Depends(get_current_operator),
):
    store_id, measurement_id, api_secret = _required_ga4_fields(data)
    enabled = True if data.enabled is None else bool(data.enabled)
    ga4_settings.save_ga4_settings(
        store_id=store_id,
        measurement_id=measurement_id,
        api_secret_encrypted=encrypt(api_secret, settings.encryption_key),
        enabled=enabled,
    )
    log_event(
        "ga4_settings_saved",
        request_id=_request_id(request),
        store_id=store_id,
        measurement_id=measurement_id,
        enabled=enabled,
    )
    return Ga4ConnectResponse(ok=True, status="ga4_connected", store_id=store_id, enabled=enabled)


@router.post("/ga4/validate", response_model=Ga4ValidateResponse)
def validate_ga4(
    data: Ga4ConnectRequest,
    request: Request,
    _ctx: OperatorContext = Depends(get_current_operator),
):
    store_id, measurement_id, api_secret = _required_ga4_fields(data)
    req_id = _request_id(request)
    try:
        messages = ga4_client.validate_connection(
            store_id=store_id,
            measurement_id=measurement_id,
            api_secret=api_secret,
        )
    except ga4_client.Ga4ProviderError as exc:
        log_event(
            "ga4_validation_failed",
            level=logging.WARNING,
            request_id=req_id,
            store_id=store_id,
            category=exc.category,
            error=str(exc),
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "type": "provider_error",
                "provider": "ga4",
                "operation": "validate_connection",
                "category": exc.category,
                "retryable": exc.retryable,
                "message": "GA4 validation failed",
            },
        ) from exc

    ga4_settings.save_ga4_settings(
        store_id=store_id,
        measurement_id=measurement_id,
        api_secret_encrypted=encrypt(api_secret, settings.encryption_key),
        enabled=True,
    )
    log_event("ga4_settings_validated", request_id=req_id, store_id=store_id, measurement_id=measurement_id)
    return Ga4ValidateResponse(status="validated", store_id=store_id, validation_messages=messages)


@router.get("/events", response_model=list[EventListItem])
async def list_platform_events(
    store_id: str | None = None,
    limit: int = 50,
    offset: int = 0,
    _ctx: OperatorContext = Depends(get_current_operator),
):
    store_id = str(store_id or "").strip()
    if not store_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing store_id")
    bounded_limit = max(1, min(limit, 200))
    bounded_offset = max(0, offset)
    return events.list_events(store_id, limit=bounded_limit, offset=bounded_offset)


@router.get("/stats", response_model=EventStatsResponse)
async def get_platform_stats(
    store_id: str | None = None,
    hours: int = 24,
    _ctx: OperatorContext = Depends(get_current_operator),
):
    store_id = str(store_id or "").strip()
    if not store_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing store_id")
    bounded_hours = max(1, min(hours, 24 * 90))
    return events.event_stats(store_id, hours=bounded_hours)


@router.post("/events/{record_id}/retry", response_model=EventRetryResponse)
def retry_platform_event(
    record_id: str,
    request: Request,
    _ctx: OperatorContext = Depends(get_current_operator),
):
    record_id = record_id.strip()
    if not record_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing id")
    row = dispatcher.retry_event(record_id, request_id=_request_id(request))
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return EventRetryResponse(
        status="retry_attempted",
        id=record_id,
        event_status=row.get("status"),
        retries=row.get("retries"),
    )


@router.get("/stores", response_model=list[StoreListItem])
async def list_platform_stores(_ctx: OperatorContext = Depends(get_current_operator)):
    return stores.list_stores(limit=50)


@router.get("/metrics", response_model=MetricsResponse)
async def get_platform_metrics(
    prefix: str | None = None,
    _ctx: OperatorContext = Depends(get_current_operator),
):
    return MetricsResponse(
        counters=metrics_snapshot(prefix),
        dispatch_pending=dispatcher.dispatch_queue.pending_count(),
    )
