import json

from src.pipeline.normalizer import derive_external_id, extract_event_type, extract_store_id, normalize


def test_business_id_becomes_external_id():
    event = normalize({"event": "order.created", "store_id": "S1", "data": {"id": "O100"}})

    assert event.external_id == "O100"
    assert event.dedup_key == ("S1", "O100", "order.created")
    assert event.status == "pending"
    assert event.retries == 0
    assert event.source == "salla"


def test_numeric_identifiers_are_stringified():
    event = normalize({"event": "order.created", "merchant": 1234, "data": {"id": 98765}})

    assert event.store_id == "1234"
    assert event.external_id == "98765"


def test_store_id_fallback_order():
    assert extract_store_id({"store_id": "A", "merchant": "B"}) == "A"
    assert extract_store_id({"merchant": {"id": "M"}}) == "M"
    assert extract_store_id({"data": {"store": {"id": "D1"}}}) == "D1"
    assert extract_store_id({"data": {"store_id": "D2"}}) == "D2"
    assert extract_store_id({"data": {"merchant": {"id": "D3"}}}) == "D3"
    assert extract_store_id({"store_id": "  ", "merchant": "B"}) == "B"
    assert extract_store_id({}) == ""


def test_event_type_fallback_order():
    assert extract_event_type({"event": "a", "type": "b"}) == "a"
    assert extract_event_type({"event_type": "b"}) == "b"
    assert extract_event_type({"type": "c"}) == "c"
    assert extract_event_type({}) == ""


def test_nested_order_id_is_used_when_data_id_missing():
    payload = {"event": "order.created", "store_id": "S1", "data": {"order": {"id": "O7"}}}

    assert normalize(payload).external_id == "O7"


def test_fallback_external_id_is_stable_across_redeliveries():
    first = {"event": "customer.login", "store_id": "S1", "created_at": "2024-05-01T10:00:00Z", "data": {}}
    redelivery = dict(first, delivery_attempt=3, sent_at="2024-05-01T10:05:00Z")

    first_id = derive_external_id("customer.login", "S1", first)

    assert first_id == derive_external_id("customer.login", "S1", redelivery)
    assert len(first_id) == 64


def test_fallback_external_id_differs_for_distinct_events():
    a = {"event": "customer.login", "store_id": "S1", "created_at": "2024-05-01T10:00:00Z"}
    b = {"event": "customer.login", "store_id": "S1", "created_at": "2024-05-01T11:00:00Z"}

    assert derive_external_id("customer.login", "S1", a) != derive_external_id("customer.login", "S1", b)


def test_malformed_payload_normalizes_without_raising():
    event = normalize({"event": ["bad"], "store_id": {"nested": True}, "data": "text"})

    assert event.type == ""
    assert event.store_id == ""
    assert event.external_id


def test_non_dict_payload_is_treated_as_empty():
    event = normalize(["not", "a", "dict"])

    assert event.payload == {}
    assert event.store_id == ""


def test_event_ids_are_unique():
    payload = {"event": "order.created", "store_id": "S1", "data": {"id": "O1"}}

    assert normalize(payload).event_id != normalize(payload).event_id


def test_stored_payload_keeps_key_order_and_text():
    payload = {"store_id": "S1", "event": "order.created", "data": {"id": "O1", "customer": "متجر"}}

    stored = normalize(payload).to_record()["payload"]

    assert stored == json.dumps(payload, ensure_ascii=False)
    assert list(json.loads(stored)) == ["store_id", "event", "data"]
    assert "متجر" in stored
