from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from src.datastore.client import RecordStore
from src.domain.events import EVENT_STATUSES, NormalizedEvent


EVENTS_TABLE = "events"

events_store = RecordStore(EVENTS_TABLE)


def save_event(event: NormalizedEvent) -> dict[str, Any]:
    """Insert the event; raises DuplicateRecordError when the dedup key already exists."""
    return events_store.insert(event.to_record())


def find_by_dedup_key(store_id: str, external_id: str, event_type: str) -> dict[str, Any] | None:
    if not store_id or not external_id or not event_type:
        return None
    return events_store.find_one(
        {"store_id": store_id, "external_id": external_id, "type": event_type}
    )


def get_event(record_id: str) -> dict[str, Any] | None:
    if not record_id:
        return None
    return events_store.find_one({"id": record_id})


def update_event(record_id: str, patch: dict[str, Any]) -> list[dict[str, Any]]:
    return events_store.update_by_key({"id": record_id}, patch)


def list_events(store_id: str, *, limit: int = 50, offset: int = 0) -> list[dict[str, Any]]:
    return events_store.find_many({"store_id": store_id}, limit=limit, offset=offset)


def event_stats(store_id: str, *, hours: int = 24) -> dict[str, Any]:
    since = datetime.now(timezone.utc) - timedelta(hours=hours)
    by_status = {
        status_value: events_store.count({"store_id": store_id, "status": status_value}, since=since)
        for status_value in EVENT_STATUSES
    }
    return {
        "store_id": store_id,
        "hours": hours,
        "total": events_store.count({"store_id": store_id}, since=since),
        "by_status": by_status,
    }
