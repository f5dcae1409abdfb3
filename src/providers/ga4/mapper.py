from __future__ import annotations

import math
from typing import Any, Final

from src.config import settings
from src.domain.events import NormalizedEvent
from src.pipeline.normalizer import Path, dig, first_text


ORDER_PATHS: Final[tuple[Path, ...]] = (
    ("data", "order"),
    ("data",),
)

TRANSACTION_ID_PATHS: Final[tuple[Path, ...]] = (
    ("id",),
    ("order_id",),
    ("reference_id",),
)

VALUE_PATHS: Final[tuple[Path, ...]] = (
    ("amounts", "total", "amount"),
    ("total", "amount"),
    ("total",),
    ("amount",),
)

CURRENCY_PATHS: Final[tuple[Path, ...]] = (
    ("currency",),
    ("amounts", "total", "currency"),
    ("total", "currency"),
)


def extract_order(event: NormalizedEvent) -> dict[str, Any] | None:
    for path in ORDER_PATHS:
        current = dig(event.payload, path)
        if isinstance(current, dict) and current:
            return current
    return None


def _first_number(order: dict[str, Any]) -> float:
    for path in VALUE_PATHS:
        raw = first_text(order, (path,))
        if raw is None:
            continue
        try:
            number = float(raw)
        except ValueError:
            continue
        if math.isfinite(number):
            return number
    return 0.0


def map_order_to_purchase(event: NormalizedEvent, order: dict[str, Any]) -> dict[str, Any]:
    return {
        "client_id": f"server_{event.store_id}",
        "events": [
            {
                "name": "purchase",
                "params": {
                    "transaction_id": first_text(order, TRANSACTION_ID_PATHS) or event.external_id,
                    "value": _first_number(order),
                    "currency": first_text(order, CURRENCY_PATHS) or settings.ga4_default_currency,
                    "engagement_time_msec": 1,
                },
            }
        ],
    }
