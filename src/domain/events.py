from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Final, Literal


EventStatus = Literal["pending", "sent", "failed", "skipped"]

STATUS_PENDING: Final[str] = "pending"
STATUS_SENT: Final[str] = "sent"
STATUS_FAILED: Final[str] = "failed"
STATUS_SKIPPED: Final[str] = "skipped"
EVENT_STATUSES: Final[tuple[str, ...]] = (STATUS_PENDING, STATUS_SENT, STATUS_FAILED, STATUS_SKIPPED)

STORE_ACTIVE: Final[str] = "active"
STORE_INSTALLED: Final[str] = "installed"
STORE_UNINSTALLED: Final[str] = "uninstalled"

SOURCE_SALLA: Final[str] = "salla"
PLATFORM_GA4: Final[str] = "ga4"

# Coded reasons written to last_error.
REASON_UNSUPPORTED_EVENT: Final[str] = "UNSUPPORTED_EVENT_TYPE"
REASON_EVENT_DISABLED: Final[str] = "EVENT_DISABLED"
REASON_SETTINGS_NOT_FOUND: Final[str] = "GA4_SETTINGS_NOT_FOUND"
REASON_NOT_CONFIGURED: Final[str] = "GA4_NOT_CONFIGURED"
REASON_STORE_UNINSTALLED: Final[str] = "STORE_UNINSTALLED"
REASON_ORDER_MISSING: Final[str] = "ORDER_PAYLOAD_MISSING"
REASON_QUEUE_FULL: Final[str] = "DISPATCH_QUEUE_FULL"
REASON_MANUAL_RETRY: Final[str] = "MANUAL_RETRY"

MAX_ERROR_CHARS: Final[int] = 2000
MAX_RESPONSE_CHARS: Final[int] = 5000


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def truncate(value: Any, limit: int) -> str | None:
    if value is None:
        return None
    text = value if isinstance(value, str) else str(value)
    return text[:limit]


@dataclass
class NormalizedEvent:
    """Canonical form of a Salla data webhook."""

    event_id: str
    store_id: str
    external_id: str
    type: str
    payload: dict[str, Any]
    source: str = SOURCE_SALLA
    status: EventStatus = STATUS_PENDING
    retries: int = 0
    last_attempt_at: str | None = None

    @property
    def dedup_key(self) -> tuple[str, str, str]:
        return (self.store_id, self.external_id, self.type)

    def to_record(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "store_id": self.store_id,
            "external_id": self.external_id,
            "source": self.source,
            "type": self.type,
            "payload": json.dumps(self.payload, ensure_ascii=False),
            "status": self.status,
            "retries": self.retries,
            "last_attempt_at": self.last_attempt_at,
        }

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> "NormalizedEvent":
        raw_payload = row.get("payload")
        if isinstance(raw_payload, str):
            try:
                payload = json.loads(raw_payload)
            except ValueError:
                payload = {}
        else:
            payload = raw_payload or {}
        if not isinstance(payload, dict):
            payload = {}
        return cls(
            event_id=str(row.get("event_id") or ""),
            store_id=str(row.get("store_id") or ""),
            external_id=str(row.get("external_id") or ""),
            type=str(row.get("type") or ""),
            payload=payload,
            source=str(row.get("source") or SOURCE_SALLA),
            status=str(row.get("status") or STATUS_PENDING),
            retries=int(row.get("retries") or 0),
            last_attempt_at=row.get("last_attempt_at"),
        )
