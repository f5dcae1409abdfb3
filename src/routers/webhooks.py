from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request, status

from src.config import settings
from src.datastore import events
from src.datastore.client import DuplicateRecordError
from src.observability import incr_metric, log_event
from src.pipeline import dispatcher, idempotency, lifecycle, tenant_gate
from src.pipeline.normalizer import normalize
from src.security.signature import extract_signature, verify


router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _request_id(request: Request | None) -> str | None:
    if not request:
        return None
    return getattr(getattr(request, "state", None), "request_id", None)


def _reject(req_id: str | None, reason: str, status_code: int, detail: Any) -> HTTPException:
    incr_metric("webhook.events.rejected", provider_slug="salla", reason=reason)
    log_event(
        "webhook_rejected",
        level=logging.WARNING,
        request_id=req_id,
        provider_slug="salla",
        reason=reason,
        status_code=status_code,
    )
    return HTTPException(status_code=status_code, detail=detail)


def _parse_payload(raw_body: bytes, req_id: str | None) -> dict[str, Any]:
    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise _reject(req_id, "invalid_json", status.HTTP_400_BAD_REQUEST, "Invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise _reject(req_id, "invalid_payload", status.HTTP_400_BAD_REQUEST, "Invalid payload")
    return payload


def _ingest(payload: dict[str, Any], req_id: str | None) -> dict[str, Any]:
    try:
        handled = lifecycle.route(payload, request_id=req_id)
    except lifecycle.LifecyclePayloadError as exc:
        raise _reject(req_id, "invalid_payload", status.HTTP_400_BAD_REQUEST, "Invalid payload") from exc
    if handled:
        return {"received": True, "handled": handled}

    event = normalize(payload)
    if not event.store_id or not event.type:
        raise _reject(req_id, "invalid_payload", status.HTTP_400_BAD_REQUEST, "Invalid payload")

    log_event(
        "webhook_received",
        request_id=req_id,
        provider_slug="salla",
        store_id=event.store_id,
        event_type=event.type,
        external_id=event.external_id,
    )

    admission = tenant_gate.admit(event.store_id, request_id=req_id)
    if not admission.active:
        raise _reject(
            req_id,
            "store_not_active",
            status.HTTP_403_FORBIDDEN,
            {
                "message": "Store not active",
                "status": (admission.record or {}).get("status"),
            },
        )

    if idempotency.exists(event.store_id, event.external_id, event.type):
        return _duplicate_ack(event.store_id, event.external_id, event.type, req_id)

    try:
        saved = events.save_event(event)
    except DuplicateRecordError:
        # Lost the race against a concurrent delivery of the same webhook.
        return _duplicate_ack(event.store_id, event.external_id, event.type, req_id)

    record_id = str(saved["id"])
    incr_metric("webhook.events.accepted", provider_slug="salla", event_type=event.type)
    if not dispatcher.dispatch_queue.submit(event, record_id, request_id=req_id):
        log_event(
            "dispatch_queue_full",
            level=logging.WARNING,
            request_id=req_id,
            record_id=record_id,
            store_id=event.store_id,
        )
        dispatcher.mark_queue_full(event, record_id, request_id=req_id)
    return {"received": True}


def _duplicate_ack(store_id: str, external_id: str, event_type: str, req_id: str | None) -> dict[str, Any]:
    incr_metric("webhook.events.duplicate", provider_slug="salla")
    log_event(
        "webhook_duplicate_ignored",
        request_id=req_id,
        provider_slug="salla",
        store_id=store_id,
        event_type=event_type,
        external_id=external_id,
    )
    return {"received": True, "deduplicated": True}


@router.post("/salla")
async def ingest_salla_webhook(request: Request):
    req_id = _request_id(request)
    raw_body = await request.body()
    incr_metric("webhook.events.received", provider_slug="salla")

    signature = extract_signature(
        request.headers.get(settings.salla_webhook_signature_header),
        request.headers.get("Authorization"),
    )
    if not verify(raw_body, signature, settings.salla_webhook_secret):
        raise _reject(req_id, "invalid_signature", status.HTTP_401_UNAUTHORIZED, "Invalid signature")

    payload = _parse_payload(raw_body, req_id)
    try:
        return _ingest(payload, req_id)
    except HTTPException:
        raise
    except Exception as exc:
        incr_metric("webhook.events.failed", provider_slug="salla")
        log_event(
            "webhook_failed",
            level=logging.ERROR,
            request_id=req_id,
            provider_slug="salla",
            error=str(exc),
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook failed",
        ) from exc
