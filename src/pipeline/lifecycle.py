from __future__ import annotations

from typing import Any, Final

from src.observability import incr_metric
from src.pipeline import tenant_gate
from src.pipeline.normalizer import extract_event_type, extract_store_id


AUTHORIZE_EVENTS: Final[frozenset[str]] = frozenset({"app.store.authorize"})
INSTALL_EVENTS: Final[frozenset[str]] = frozenset({"app.installed", "app.updated"})
UNINSTALL_EVENTS: Final[frozenset[str]] = frozenset({"app.uninstalled", "app.store.uninstalled"})


class LifecyclePayloadError(ValueError):
    """Lifecycle notification without a resolvable store id."""


def is_lifecycle_event(event_type: str) -> bool:
    return event_type in AUTHORIZE_EVENTS or event_type in INSTALL_EVENTS or event_type in UNINSTALL_EVENTS


def route(payload: dict[str, Any], *, request_id: str | None = None) -> str | None:
    """Apply a lifecycle notification and return its type, or None for data events."""
    event_type = extract_event_type(payload)
    if not is_lifecycle_event(event_type):
        return None

    store_id = extract_store_id(payload)
    if not store_id:
        raise LifecyclePayloadError(f"{event_type} without store id")

    if event_type in AUTHORIZE_EVENTS:
        tenant_gate.handle_authorize(store_id, payload, request_id=request_id)
    elif event_type in INSTALL_EVENTS:
        tenant_gate.handle_installed(store_id, request_id=request_id)
    else:
        tenant_gate.handle_uninstalled(store_id, request_id=request_id)
    incr_metric("webhook.lifecycle.handled", event_type=event_type)
    return event_type
