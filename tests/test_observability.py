import json
import logging

from fastapi.testclient import TestClient

from src.main import app
from src.observability import (
    configure_logging,
    incr_metric,
    log_event,
    logger,
    metric_key,
    metrics_snapshot,
    reset_metrics,
)


def test_metric_keys_sort_labels():
    assert metric_key("dispatch.outcome") == "dispatch.outcome"
    assert metric_key("dispatch.skipped", reason="EVENT_DISABLED", a=1) == "dispatch.skipped|a=1,reason=EVENT_DISABLED"


def test_snapshot_filters_by_prefix():
    reset_metrics()
    incr_metric("webhook.events.received", provider_slug="salla")
    incr_metric("webhook.events.received", provider_slug="salla")
    incr_metric("dispatch.outcome", status="sent")

    assert metrics_snapshot("webhook.") == {"webhook.events.received|provider_slug=salla": 2}
    assert len(metrics_snapshot()) == 2


def test_log_event_redacts_secrets(caplog):
    caplog.set_level(logging.INFO, logger="salla_ga4_bridge")

    log_event(
        "tenant_authorized",
        request_id="req-1",
        store_id="S1",
        access_token="at-plain",
        details={"api_secret": "s3", "measurement_id": "G-1"},
    )

    record = json.loads(caplog.records[-1].getMessage())
    assert record["event"] == "tenant_authorized"
    assert record["request_id"] == "req-1"
    assert record["access_token"] == "[redacted]"
    assert record["details"] == {"api_secret": "[redacted]", "measurement_id": "G-1"}
    assert "at-plain" not in caplog.text


def test_configure_logging_installs_one_handler():
    original_handlers = list(logger.handlers)
    original_propagate = logger.propagate
    try:
        logger.handlers.clear()
        configure_logging("debug")
        configure_logging("debug")

        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG
    finally:
        logger.handlers[:] = original_handlers
        logger.propagate = original_propagate


def test_metrics_endpoint_filters_by_prefix(fake_db, operator):
    reset_metrics()
    incr_metric("dispatch.outcome", status="sent")
    incr_metric("webhook.events.received", provider_slug="salla")
    client = TestClient(app)

    response = client.get("/platforms/metrics", params={"prefix": "dispatch."})

    assert response.status_code == 200
    assert response.json()["counters"] == {"dispatch.outcome|status=sent": 1}
