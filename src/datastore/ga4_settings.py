from __future__ import annotations

from typing import Any

from src.datastore.client import DuplicateRecordError, RecordStore
from src.domain.events import now_iso


GA4_SETTINGS_TABLE = "ga4_settings"

ga4_settings_store = RecordStore(GA4_SETTINGS_TABLE)


def get_ga4_settings(store_id: str) -> dict[str, Any] | None:
    if not store_id:
        return None
    return ga4_settings_store.find_one({"store_id": store_id})


def save_ga4_settings(
    *,
    store_id: str,
    measurement_id: str,
    api_secret_encrypted: str,
    enabled: bool,
) -> dict[str, Any]:
    patch = {
        "measurement_id": measurement_id,
        "api_secret": api_secret_encrypted,
        "enabled": enabled,
        "updated_at": now_iso(),
    }
    updated = ga4_settings_store.update_by_key({"store_id": store_id}, patch)
    if updated:
        return updated[0]
    try:
        return ga4_settings_store.insert({"store_id": store_id, **patch})
    except DuplicateRecordError:
        updated = ga4_settings_store.update_by_key({"store_id": store_id}, patch)
        return updated[0] if updated else {"store_id": store_id, **patch}
