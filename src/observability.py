from __future__ import annotations

import json
import logging
from collections import Counter
from threading import Lock
from typing import Any, Final


logger = logging.getLogger("salla_ga4_bridge")

# Field names whose values never reach the log stream.
REDACTED_FIELDS: Final[frozenset[str]] = frozenset(
    {"access_token", "refresh_token", "api_secret", "authorization", "signature", "secret"}
)
REDACTED: Final[str] = "[redacted]"

_metrics_lock = Lock()
_metrics_counter: Counter[str] = Counter()


def _normalize(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(k): _redact(str(k), v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_normalize(v) for v in value]
    return str(value)


def _redact(key: str, value: Any) -> Any:
    if key.lower() in REDACTED_FIELDS and value not in (None, ""):
        return REDACTED
    return _normalize(value)


def metric_key(name: str, **labels: Any) -> str:
    if not labels:
        return name
    ordered = ",".join(f"{k}={labels[k]}" for k in sorted(labels))
    return f"{name}|{ordered}"


def incr_metric(name: str, value: int = 1, **labels: Any) -> None:
    key = metric_key(name, **{k: _normalize(v) for k, v in labels.items()})
    with _metrics_lock:
        _metrics_counter[key] += value


def metrics_snapshot(prefix: str | None = None) -> dict[str, int]:
    with _metrics_lock:
        if not prefix:
            return dict(_metrics_counter)
        return {key: count for key, count in _metrics_counter.items() if key.startswith(prefix)}


def reset_metrics() -> None:
    with _metrics_lock:
        _metrics_counter.clear()


def configure_logging(level: str | int = logging.INFO) -> None:
    """Attach a plain stream handler once; each record is already a JSON line."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    logger.propagate = False


def log_event(
    event: str,
    *,
    level: int = logging.INFO,
    request_id: str | None = None,
    **fields: Any,
) -> None:
    payload = {"event": event}
    if request_id:
        payload["request_id"] = request_id
    for key, value in fields.items():
        payload[key] = _redact(key, value)
    logger.log(level, json.dumps(payload, sort_keys=True))
