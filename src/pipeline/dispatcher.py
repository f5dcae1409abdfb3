"""Deliver stored events to GA4 and record the outcome on the event row.

Every path ends in exactly one terminal status (``sent``, ``failed`` or
``skipped``); nothing here raises to the caller.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from threading import Lock
from typing import Any, Final

from src.config import settings
from src.datastore import events, ga4_settings, stores
from src.domain.events import (
    MAX_ERROR_CHARS,
    MAX_RESPONSE_CHARS,
    PLATFORM_GA4,
    REASON_EVENT_DISABLED,
    REASON_MANUAL_RETRY,
    REASON_NOT_CONFIGURED,
    REASON_ORDER_MISSING,
    REASON_QUEUE_FULL,
    REASON_SETTINGS_NOT_FOUND,
    REASON_STORE_UNINSTALLED,
    REASON_UNSUPPORTED_EVENT,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SENT,
    STATUS_SKIPPED,
    NormalizedEvent,
    now_iso,
    truncate,
)
from src.observability import incr_metric, log_event
from src.pipeline.tenant_gate import is_uninstalled
from src.providers.ga4 import client as ga4_client
from src.providers.ga4.mapper import extract_order, map_order_to_purchase
from src.security.encryption import EncryptionError, decrypt


SUPPORTED_EVENT_TYPES: Final[frozenset[str]] = frozenset({"order.created"})


def _is_enabled(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in {"true", "1", "yes"}


def _record_outcome(
    event: NormalizedEvent,
    record_id: str,
    status_value: str,
    *,
    error: str | None = None,
    http_status: int | None = None,
    response_text: str | None = None,
    bump_retries: bool = False,
    request_id: str | None = None,
) -> None:
    patch: dict[str, Any] = {
        "status": status_value,
        "last_attempt_at": now_iso(),
        "last_platform": PLATFORM_GA4,
        "last_http_status": http_status,
        "last_error": truncate(error, MAX_ERROR_CHARS),
        "last_response": truncate(response_text, MAX_RESPONSE_CHARS),
    }
    if bump_retries:
        event.retries += 1
        patch["retries"] = event.retries
    event.status = status_value
    event.last_attempt_at = patch["last_attempt_at"]
    try:
        events.update_event(record_id, patch)
    except Exception as exc:
        log_event(
            "dispatch_status_persist_failed",
            level=logging.ERROR,
            request_id=request_id,
            record_id=record_id,
            status=status_value,
            error=str(exc),
        )
        return
    incr_metric("dispatch.outcome", status=status_value)
    log_event(
        "dispatch_outcome",
        level=logging.WARNING if status_value == STATUS_FAILED else logging.INFO,
        request_id=request_id,
        record_id=record_id,
        store_id=event.store_id,
        event_type=event.type,
        external_id=event.external_id,
        status=status_value,
        http_status=http_status,
        reason=truncate(error, 200),
        retries=event.retries,
    )


def _skip(event: NormalizedEvent, record_id: str, reason: str, request_id: str | None) -> None:
    incr_metric("dispatch.skipped", reason=reason)
    _record_outcome(event, record_id, STATUS_SKIPPED, error=reason, request_id=request_id)


def _store_uninstalled(store_id: str, request_id: str | None) -> bool:
    try:
        return is_uninstalled(stores.get_store(store_id))
    except Exception as exc:
        # Tenant lookup only guards against late uninstalls; never stall delivery on it.
        log_event(
            "dispatch_store_lookup_failed",
            level=logging.WARNING,
            request_id=request_id,
            store_id=store_id,
            error=str(exc),
        )
        return False


def _deliver(event: NormalizedEvent, record_id: str, request_id: str | None) -> None:
    if _store_uninstalled(event.store_id, request_id):
        _skip(event, record_id, REASON_STORE_UNINSTALLED, request_id)
        return

    if event.type not in SUPPORTED_EVENT_TYPES:
        _skip(event, record_id, REASON_UNSUPPORTED_EVENT, request_id)
        return

    ga4 = ga4_settings.get_ga4_settings(event.store_id)
    if ga4 is None:
        _skip(event, record_id, REASON_SETTINGS_NOT_FOUND, request_id)
        return
    if not _is_enabled(ga4.get("enabled")):
        _skip(event, record_id, REASON_EVENT_DISABLED, request_id)
        return

    measurement_id = str(ga4.get("measurement_id") or "").strip()
    encrypted_secret = str(ga4.get("api_secret") or "").strip()
    if not measurement_id or not encrypted_secret:
        _skip(event, record_id, REASON_NOT_CONFIGURED, request_id)
        return
    try:
        api_secret = decrypt(encrypted_secret, settings.encryption_key)
    except EncryptionError as exc:
        log_event(
            "dispatch_secret_unreadable",
            level=logging.WARNING,
            request_id=request_id,
            store_id=event.store_id,
            error=str(exc),
        )
        _skip(event, record_id, REASON_NOT_CONFIGURED, request_id)
        return

    order = extract_order(event)
    if order is None:
        _record_outcome(event, record_id, STATUS_FAILED, error=REASON_ORDER_MISSING, request_id=request_id)
        return

    payload = map_order_to_purchase(event, order)
    try:
        response = ga4_client.send_event(
            measurement_id=measurement_id,
            api_secret=api_secret,
            payload=payload,
        )
    except ga4_client.Ga4ProviderError as exc:
        _record_outcome(
            event,
            record_id,
            STATUS_FAILED,
            error=str(exc),
            bump_retries=True,
            request_id=request_id,
        )
        return

    if response.ok:
        _record_outcome(
            event,
            record_id,
            STATUS_SENT,
            http_status=response.status_code,
            response_text=response.text,
            request_id=request_id,
        )
        return

    _record_outcome(
        event,
        record_id,
        STATUS_FAILED,
        error=f"GA4 returned HTTP {response.status_code}",
        http_status=response.status_code,
        response_text=response.text,
        bump_retries=True,
        request_id=request_id,
    )


def dispatch(event: NormalizedEvent, record_id: str, *, request_id: str | None = None) -> None:
    try:
        _deliver(event, record_id, request_id)
    except Exception as exc:
        log_event(
            "dispatch_unexpected_error",
            level=logging.ERROR,
            request_id=request_id,
            record_id=record_id,
            store_id=event.store_id,
            event_type=event.type,
            error=str(exc),
        )
        _record_outcome(event, record_id, STATUS_FAILED, error=f"DISPATCH_ERROR: {exc}", request_id=request_id)


def mark_queue_full(event: NormalizedEvent, record_id: str, *, request_id: str | None = None) -> None:
    _record_outcome(event, record_id, STATUS_FAILED, error=REASON_QUEUE_FULL, request_id=request_id)


def retry_event(record_id: str, *, request_id: str | None = None) -> dict[str, Any] | None:
    """Reset a stored event to pending, bump its retry count and dispatch it inline."""
    row = events.get_event(record_id)
    if row is None:
        return None
    retries = int(row.get("retries") or 0) + 1
    events.update_event(
        record_id,
        {
            "status": STATUS_PENDING,
            "retries": retries,
            "last_error": REASON_MANUAL_RETRY,
            "last_attempt_at": now_iso(),
        },
    )
    incr_metric("dispatch.manual_retry")
    event = NormalizedEvent.from_record({**row, "status": STATUS_PENDING, "retries": retries})
    dispatch(event, record_id, request_id=request_id)
    return events.get_event(record_id) or {**row, "status": event.status, "retries": event.retries}


class DispatchQueue:
    """Bounded worker pool that runs dispatches off the webhook request path."""

    def __init__(self, max_workers: int, max_pending: int):
        self.max_workers = max(1, max_workers)
        self.max_pending = max(self.max_workers, max_pending)
        self._lock = Lock()
        self._executor: ThreadPoolExecutor | None = None
        self._pending: set[Future[None]] = set()

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix="ga4-dispatch",
            )
        return self._executor

    def _discard(self, future: Future[None]) -> None:
        with self._lock:
            self._pending.discard(future)

    def submit(self, event: NormalizedEvent, record_id: str, *, request_id: str | None = None) -> bool:
        with self._lock:
            if len(self._pending) >= self.max_pending:
                incr_metric("dispatch.queue_full")
                return False
            future = self._get_executor().submit(dispatch, event, record_id, request_id=request_id)
            self._pending.add(future)
        future.add_done_callback(self._discard)
        incr_metric("dispatch.submitted")
        return True

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def wait_idle(self, timeout: float | None = None) -> bool:
        with self._lock:
            snapshot = set(self._pending)
        if not snapshot:
            return True
        _, not_done = wait(snapshot, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_pending: bool = True) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait_for_pending)


dispatch_queue = DispatchQueue(
    max_workers=settings.dispatch_max_workers,
    max_pending=settings.dispatch_queue_size,
)
