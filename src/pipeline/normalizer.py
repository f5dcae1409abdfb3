"""Turn Salla webhook bodies into ``NormalizedEvent`` records.

Each field is resolved by an ordered list of payload paths; the first
non-empty value wins. Keeping the paths as data means each fallback can be
checked on its own and new payload shapes only add a row.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Final
from uuid import uuid4

from src.domain.events import SOURCE_SALLA, STATUS_PENDING, NormalizedEvent


Path = tuple[str, ...]

EVENT_TYPE_PATHS: Final[tuple[Path, ...]] = (
    ("event",),
    ("event_type",),
    ("type",),
)

STORE_ID_PATHS: Final[tuple[Path, ...]] = (
    ("store_id",),
    ("merchant",),
    ("merchant", "id"),
    ("data", "store", "id"),
    ("data", "store_id"),
    ("data", "merchant", "id"),
)

BUSINESS_ID_PATHS: Final[tuple[Path, ...]] = (
    ("data", "id"),
    ("data", "order_id"),
    ("data", "order", "id"),
    ("data", "shipment", "id"),
)

CREATED_AT_PATHS: Final[tuple[Path, ...]] = (
    ("created_at",),
    ("data", "created_at"),
    ("data", "date", "date"),
)


def dig(payload: Any, path: Path) -> Any:
    current = payload
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _as_text(value: Any) -> str | None:
    if value is None or isinstance(value, (bool, dict, list)):
        return None
    text = str(value).strip()
    return text or None


def first_text(payload: Any, paths: tuple[Path, ...]) -> str | None:
    for path in paths:
        text = _as_text(dig(payload, path))
        if text:
            return text
    return None


def extract_event_type(payload: Any) -> str:
    return first_text(payload, EVENT_TYPE_PATHS) or ""


def extract_store_id(payload: Any) -> str:
    return first_text(payload, STORE_ID_PATHS) or ""


def fallback_external_id(event_type: str, store_id: str, payload: Any) -> str:
    # Only non-volatile fields go into the hash so redeliveries collapse.
    stable_subset = {
        "event": event_type,
        "store_id": store_id,
        "created_at": first_text(payload, CREATED_AT_PATHS),
    }
    encoded = json.dumps(stable_subset, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def derive_external_id(event_type: str, store_id: str, payload: Any) -> str:
    business_id = first_text(payload, BUSINESS_ID_PATHS)
    if business_id:
        return business_id
    return fallback_external_id(event_type, store_id, payload)


def normalize(payload: Any) -> NormalizedEvent:
    body = payload if isinstance(payload, dict) else {}
    event_type = extract_event_type(body)
    store_id = extract_store_id(body)
    return NormalizedEvent(
        event_id=str(uuid4()),
        store_id=store_id,
        external_id=derive_external_id(event_type, store_id, body),
        type=event_type,
        payload=body,
        source=SOURCE_SALLA,
        status=STATUS_PENDING,
        retries=0,
        last_attempt_at=None,
    )
