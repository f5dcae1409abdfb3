"""Tenant lifecycle writes and the active-tenant admission check."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from src.config import settings
from src.datastore import stores
from src.domain.events import STORE_ACTIVE, STORE_INSTALLED, STORE_UNINSTALLED
from src.observability import incr_metric, log_event
from src.security.encryption import encrypt


@dataclass
class Admission:
    active: bool
    record: dict[str, Any] | None


def is_uninstalled(record: dict[str, Any] | None) -> bool:
    if not record:
        return False
    return str(record.get("status") or "").strip().lower() == STORE_UNINSTALLED


def _ensure_store(store_id: str, *, request_id: str | None = None) -> dict[str, Any] | None:
    record = stores.get_store(store_id)
    if record is not None:
        return record
    stores.create_store(store_id, status_value=STORE_INSTALLED)
    incr_metric("tenant.placeholder_created")
    log_event("tenant_placeholder_created", request_id=request_id, store_id=store_id)
    return stores.get_store(store_id)


def admit(store_id: str, *, request_id: str | None = None) -> Admission:
    # Data events may arrive before app.installed / app.store.authorize.
    record = _ensure_store(store_id, request_id=request_id)
    if record is None or is_uninstalled(record):
        return Admission(active=False, record=record)
    return Admission(active=True, record=record)


def _expires_at(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        return str(value)
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        return None


def handle_authorize(store_id: str, payload: dict[str, Any], *, request_id: str | None = None) -> None:
    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    fields: dict[str, Any] = {"status": STORE_ACTIVE}
    access_token = data.get("access_token")
    refresh_token = data.get("refresh_token")
    if access_token:
        fields["access_token"] = encrypt(str(access_token), settings.encryption_key)
    if refresh_token:
        fields["refresh_token"] = encrypt(str(refresh_token), settings.encryption_key)
    if data.get("expires") is not None:
        fields["token_expires_at"] = _expires_at(data.get("expires"))
    if data.get("scope"):
        fields["scope"] = str(data["scope"])

    if stores.get_store(store_id) is None:
        stores.create_store(store_id, status_value=STORE_ACTIVE, fields=fields)
    else:
        stores.update_store(store_id, fields)
    log_event(
        "tenant_authorized",
        request_id=request_id,
        store_id=store_id,
        has_access_token=bool(access_token),
        has_refresh_token=bool(refresh_token),
    )


def handle_installed(store_id: str, *, request_id: str | None = None) -> None:
    record = stores.get_store(store_id)
    if record is None:
        stores.create_store(store_id, status_value=STORE_INSTALLED)
    elif is_uninstalled(record):
        stores.update_store(store_id, {"status": STORE_INSTALLED})
    log_event("tenant_installed", request_id=request_id, store_id=store_id, existed=record is not None)


def handle_uninstalled(store_id: str, *, request_id: str | None = None) -> None:
    record = stores.get_store(store_id)
    if record is None:
        log_event("tenant_uninstall_unknown_store", request_id=request_id, store_id=store_id)
        return
    if not is_uninstalled(record):
        stores.update_store(store_id, {"status": STORE_UNINSTALLED})
    log_event("tenant_uninstalled", request_id=request_id, store_id=store_id)
