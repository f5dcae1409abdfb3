from __future__ import annotations

from src.datastore import events


def exists(store_id: str, external_id: str, event_type: str) -> bool:
    # Partial keys never dedupe.
    if not store_id or not external_id or not event_type:
        return False
    return events.find_by_dedup_key(store_id, external_id, event_type) is not None
