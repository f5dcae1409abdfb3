from __future__ import annotations

from datetime import datetime
from typing import Any

from src import db


class DuplicateRecordError(Exception):
    """Raised when an insert collides with a table's unique key."""


def _is_unique_violation(exc: Exception) -> bool:
    # PostgREST reports unique violations as SQLSTATE 23505.
    if str(getattr(exc, "code", "") or "") == "23505":
        return True
    text = str(exc).lower()
    return "duplicate" in text or "unique" in text


class RecordStore:
    """Keyed record access for a single datastore table.

    Exposes only insert, update-by-key and filtered reads so callers never
    depend on a particular query language.
    """

    def __init__(self, table: str):
        self.table = table

    def _query(self):
        return db.get_supabase().table(self.table)

    def insert(self, record: dict[str, Any]) -> dict[str, Any]:
        try:
            result = self._query().insert(record).execute()
        except Exception as exc:
            if _is_unique_violation(exc):
                raise DuplicateRecordError(f"{self.table}: duplicate key") from exc
            raise
        rows = result.data or []
        return rows[0] if rows else dict(record)

    def update_by_key(self, key: dict[str, Any], patch: dict[str, Any]) -> list[dict[str, Any]]:
        if not key:
            raise ValueError("update_by_key requires a non-empty key")
        query = self._query().update(patch)
        for column, value in key.items():
            query = query.eq(column, value)
        result = query.execute()
        return result.data or []

    def find_one(self, filters: dict[str, Any]) -> dict[str, Any] | None:
        query = self._query().select("*")
        for column, value in filters.items():
            query = query.eq(column, value)
        result = query.limit(1).execute()
        rows = result.data or []
        return rows[0] if rows else None

    def count(self, filters: dict[str, Any] | None = None, *, since: datetime | None = None) -> int:
        query = self._query().select("id", count="exact", head=True)
        for column, value in (filters or {}).items():
            query = query.eq(column, value)
        if since is not None:
            query = query.gte("created_at", since.isoformat())
        result = query.execute()
        return int(result.count or 0)

    def find_many(
        self,
        filters: dict[str, Any] | None = None,
        *,
        order_by: str = "created_at",
        descending: bool = True,
        limit: int = 50,
        offset: int = 0,
        since: datetime | None = None,
    ) -> list[dict[str, Any]]:
        query = self._query().select("*")
        for column, value in (filters or {}).items():
            query = query.eq(column, value)
        if since is not None:
            query = query.gte("created_at", since.isoformat())
        query = query.order(order_by, desc=descending)
        query = query.range(offset, offset + limit - 1)
        result = query.execute()
        return result.data or []
