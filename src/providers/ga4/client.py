from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from src.config import settings


class Ga4ProviderError(Exception):
    """Provider-level exception for GA4 Measurement Protocol failures."""

    @property
    def category(self) -> str:
        message = str(self).lower()
        if (
            "connectivity error" in message
            or "timed out" in message
            or "http 429" in message
            or "http 500" in message
            or "http 502" in message
            or "http 503" in message
            or "http 504" in message
        ):
            return "transient"
        if "missing ga4" in message or "validation failed" in message:
            return "terminal"
        return "unknown"

    @property
    def retryable(self) -> bool:
        return self.category == "transient"


@dataclass
class Ga4Response:
    status_code: int
    text: str
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def _headers() -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "Accept": "application/json",
    }


def _parse_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _post(
    *,
    url: str,
    measurement_id: str,
    api_secret: str,
    payload: dict[str, Any],
    timeout_seconds: float | None = None,
) -> Ga4Response:
    if not measurement_id or not api_secret:
        raise Ga4ProviderError("Missing GA4 measurement_id or api_secret")
    timeout = timeout_seconds if timeout_seconds is not None else settings.ga4_timeout_seconds
    params = {"measurement_id": measurement_id, "api_secret": api_secret}
    try:
        with httpx.Client(timeout=timeout) as client:
            response = client.post(url, params=params, headers=_headers(), json=payload)
            response.read()
    except httpx.TimeoutException as exc:
        raise Ga4ProviderError(f"GA4 request timed out after {timeout}s") from exc
    except httpx.HTTPError as exc:
        raise Ga4ProviderError(f"GA4 connectivity error: {exc.__class__.__name__}") from exc
    return Ga4Response(status_code=response.status_code, text=response.text, body=_parse_body(response))


def send_event(*, measurement_id: str, api_secret: str, payload: dict[str, Any]) -> Ga4Response:
    """Deliver a Measurement Protocol payload. Non-2xx responses are returned, not raised."""
    return _post(
        url=settings.ga4_collect_url,
        measurement_id=measurement_id,
        api_secret=api_secret,
        payload=payload,
    )


def send_debug_event(*, measurement_id: str, api_secret: str, payload: dict[str, Any]) -> Ga4Response:
    return _post(
        url=settings.ga4_debug_url,
        measurement_id=measurement_id,
        api_secret=api_secret,
        payload=payload,
    )


def validation_messages(response: Ga4Response) -> list[Any]:
    if isinstance(response.body, dict):
        messages = response.body.get("validationMessages")
        if isinstance(messages, list):
            return messages
    return []


def validate_connection(*, store_id: str, measurement_id: str, api_secret: str) -> list[Any]:
    """Send a test event to the validation endpoint.

    The debug endpoint answers 200 even for invalid payloads, so the body's
    ``validationMessages`` decide the outcome as much as the status code.
    """
    payload = {
        "client_id": f"server_{store_id}",
        "events": [
            {
                "name": "ga4_connection_test",
                "params": {"engagement_time_msec": 1},
            }
        ],
    }
    response = send_debug_event(measurement_id=measurement_id, api_secret=api_secret, payload=payload)
    if not response.ok:
        raise Ga4ProviderError(f"GA4 validation failed: HTTP {response.status_code}: {response.text[:200]}")
    messages = validation_messages(response)
    if messages:
        raise Ga4ProviderError(f"GA4 validation failed: {messages}")
    return messages
