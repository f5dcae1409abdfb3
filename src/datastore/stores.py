from __future__ import annotations

from typing import Any

from src.datastore.client import DuplicateRecordError, RecordStore
from src.domain.events import now_iso


STORES_TABLE = "stores"

# Stored as access_token until app.store.authorize delivers real credentials.
PENDING_TOKEN_SENTINEL = "PENDING_AUTHORIZE"

stores_store = RecordStore(STORES_TABLE)


def get_store(store_id: str) -> dict[str, Any] | None:
    if not store_id:
        return None
    return stores_store.find_one({"store_id": store_id})


def create_store(store_id: str, *, status_value: str, fields: dict[str, Any] | None = None) -> dict[str, Any]:
    now = now_iso()
    record = {
        "store_id": store_id,
        "status": status_value,
        "access_token": PENDING_TOKEN_SENTINEL,
        "refresh_token": None,
        "token_expires_at": None,
        "scope": None,
        "installed_at": now,
        "updated_at": now,
    }
    record.update(fields or {})
    try:
        return stores_store.insert(record)
    except DuplicateRecordError:
        # A concurrent delivery created the row first.
        existing = get_store(store_id)
        if existing is None:
            raise
        return existing


def update_store(store_id: str, patch: dict[str, Any]) -> list[dict[str, Any]]:
    patch = {key: value for key, value in patch.items() if key != "installed_at"}
    patch["updated_at"] = now_iso()
    return stores_store.update_by_key({"store_id": store_id}, patch)


def list_stores(*, limit: int = 50) -> list[dict[str, Any]]:
    return stores_store.find_many(order_by="updated_at", limit=limit)
