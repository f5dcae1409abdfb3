import os
import threading
from datetime import datetime, timezone

os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("ENCRYPTION_KEY", "T_DOFAwb3Z68MbypaClCdzBGRrlLrrBdwKQnHhFyXrc=")

import pytest

from src import db
from src.config import settings
from src.auth.context import OperatorContext
from src.auth.dependencies import get_current_operator
from src.main import app
from src.pipeline.dispatcher import dispatch_queue
from src.providers.ga4 import client as ga4_client


UNIQUE_KEYS = {
    "events": ("store_id", "external_id", "type"),
    "stores": ("store_id",),
    "ga4_settings": ("store_id",),
}


def _ts() -> str:
    return datetime.now(timezone.utc).isoformat()


class FakeResponse:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    def __init__(self, table_name: str, db: "FakeSupabase"):
        self.table_name = table_name
        self.db = db
        self.operation = "select"
        self.insert_payload = None
        self.update_payload = None
        self.filters = []
        self.order_by = None
        self.order_desc = False
        self.row_range = None
        self.row_limit = None
        self.count_mode = None
        self.head = False

    def select(self, _fields: str, count=None, head=False):
        self.operation = "select"
        self.count_mode = count
        self.head = bool(head)
        return self

    def insert(self, payload: dict):
        self.operation = "insert"
        self.insert_payload = payload
        return self

    def update(self, payload: dict):
        self.operation = "update"
        self.update_payload = payload
        return self

    def eq(self, key: str, value):
        self.filters.append(("eq", key, value))
        return self

    def gte(self, key: str, value):
        self.filters.append(("gte", key, value))
        return self

    def order(self, key: str, desc: bool = False):
        self.order_by = key
        self.order_desc = desc
        return self

    def range(self, start: int, end: int):
        self.row_range = (start, end)
        return self

    def limit(self, count: int):
        self.row_limit = count
        return self

    def _matches(self, row: dict) -> bool:
        for kind, key, value in self.filters:
            if kind == "eq" and row.get(key) != value:
                return False
            if kind == "gte" and (row.get(key) is None or str(row.get(key)) < str(value)):
                return False
        return True

    def execute(self):
        self.db.maybe_fail(self.table_name, self.operation)
        with self.db.lock:
            table = self.db.tables.setdefault(self.table_name, [])
            if self.operation == "insert":
                unique = UNIQUE_KEYS.get(self.table_name)
                if unique:
                    candidate = tuple(self.insert_payload.get(key) for key in unique)
                    for row in table:
                        if tuple(row.get(key) for key in unique) == candidate:
                            raise Exception("duplicate key value violates unique constraint")
                row = dict(self.insert_payload or {})
                self.db.counter += 1
                row.setdefault("id", f"{self.table_name}-{self.db.counter}")
                row.setdefault("created_at", _ts())
                table.append(row)
                return FakeResponse([dict(row)])

            if self.operation == "update":
                updated = []
                for row in table:
                    if self._matches(row):
                        row.update(self.update_payload or {})
                        updated.append(dict(row))
                return FakeResponse(updated)

            rows = [dict(row) for row in table if self._matches(row)]
            if self.count_mode:
                return FakeResponse([] if self.head else rows, count=len(rows))
            if self.order_by:
                rows.sort(key=lambda row: str(row.get(self.order_by) or ""), reverse=self.order_desc)
            if self.row_range:
                start, end = self.row_range
                rows = rows[start:end + 1]
            if self.row_limit is not None:
                rows = rows[: self.row_limit]
            return FakeResponse(rows)


class FakeSupabase:
    def __init__(self, tables: dict | None = None):
        self.tables = tables or {}
        self.lock = threading.Lock()
        self.counter = 0
        self.failures: dict[tuple[str, str], Exception] = {}

    def table(self, table_name: str):
        return FakeQuery(table_name, self)

    def fail(self, table_name: str, operation: str, exc: Exception) -> None:
        self.failures[(table_name, operation)] = exc

    def maybe_fail(self, table_name: str, operation: str) -> None:
        exc = self.failures.get((table_name, operation))
        if exc is not None:
            raise exc


class FakeGa4:
    def __init__(self, status_code: int = 204, text: str = "", exc: Exception | None = None):
        self.status_code = status_code
        self.text = text
        self.exc = exc
        self.calls = []

    def __call__(self, *, measurement_id: str, api_secret: str, payload: dict):
        self.calls.append(
            {"measurement_id": measurement_id, "api_secret": api_secret, "payload": payload}
        )
        if self.exc is not None:
            raise self.exc
        return ga4_client.Ga4Response(status_code=self.status_code, text=self.text)


@pytest.fixture
def fake_db(monkeypatch):
    fake = FakeSupabase({"events": [], "stores": [], "ga4_settings": []})
    monkeypatch.setattr(db, "_client", fake)
    return fake


@pytest.fixture
def fake_ga4(monkeypatch):
    fake = FakeGa4()
    monkeypatch.setattr(ga4_client, "send_event", fake)
    return fake


@pytest.fixture
def operator():
    async def _override():
        return OperatorContext(operator_id="op-1")

    app.dependency_overrides[get_current_operator] = _override
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def webhook_secret(monkeypatch):
    monkeypatch.setattr(settings, "salla_webhook_secret", "whsec-test")
    return "whsec-test"


@pytest.fixture(autouse=True)
def _drain_dispatch_queue(monkeypatch):
    # Depends on monkeypatch so queued dispatches finish before patches are undone.
    yield
    assert dispatch_queue.wait_idle(timeout=5)
