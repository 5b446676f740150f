from __future__ import annotations

from copy import deepcopy
from datetime import datetime, timedelta, timezone
import os
from types import SimpleNamespace
from typing import Any
import uuid

import pytest
from postgrest.exceptions import APIError

os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "service-key")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")

from app.auth import dependencies as auth_dependencies  # noqa: E402
from app.auth.models import AuthContext  # noqa: E402
from app.services import (  # noqa: E402
    asset_processor,
    developer_access,
    pipeline_events,
    processing_jobs,
    submission_store,
)

_UNIQUE_KEYS: dict[str, tuple[str, ...]] = {
    "app_submissions": ("developer_id", "name"),
    "app_processing_jobs": ("app_submission_id",),
}

_EPOCH = datetime(2025, 1, 1, tzinfo=timezone.utc)


class _Query:
    def __init__(self, db: "FakeSupabase", table: str, op: str, payload: Any = None, columns: str = "*"):
        self.db = db
        self.table = table
        self.op = op
        self.payload = payload
        self.columns = columns
        self.filters: list[tuple[str, Any]] = []
        self._limit: int | None = None
        self._order: tuple[str, bool] | None = None

    def eq(self, key: str, value: Any):
        self.filters.append((key, value))
        return self

    def limit(self, count: int):
        self._limit = count
        return self

    def order(self, column: str, desc: bool = False):
        self._order = (column, desc)
        return self

    def execute(self):
        return SimpleNamespace(data=self.db.run(self))


class _Table:
    def __init__(self, db: "FakeSupabase", name: str):
        self.db = db
        self.name = name

    def select(self, columns: str = "*"):
        return _Query(self.db, self.name, "select", columns=columns)

    def insert(self, payload: dict[str, Any]):
        return _Query(self.db, self.name, "insert", payload=payload)

    def update(self, payload: dict[str, Any]):
        return _Query(self.db, self.name, "update", payload=payload)


class FakeSupabase:
    """In-memory stand-in for the supabase client used by the services."""

    def __init__(self):
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.failures: dict[tuple[str, str], Exception] = {}
        self.calls: list[tuple[str, str]] = []
        self._seq = 0

    def table(self, name: str) -> _Table:
        return _Table(self, name)

    def rows(self, table: str) -> list[dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def seed(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        self.rows(table).append(dict(row))
        return row

    def fail(self, table: str, op: str, exc: Exception) -> None:
        self.failures[(table, op)] = exc

    def run(self, query: _Query) -> list[dict[str, Any]]:
        self.calls.append((query.table, query.op))
        failure = self.failures.get((query.table, query.op))
        if failure is not None:
            raise failure
        if query.op == "insert":
            return [self._insert(query.table, query.payload)]
        matched = [
            row
            for row in self.rows(query.table)
            if all(row.get(key) == value for key, value in query.filters)
        ]
        if query.op == "update":
            for row in matched:
                row.update(deepcopy(query.payload))
            return deepcopy(matched)
        if query._order:
            column, desc = query._order
            matched = sorted(matched, key=lambda row: row.get(column) or "", reverse=desc)
        if query._limit is not None:
            matched = matched[: query._limit]
        result = deepcopy(matched)
        if "processing_job:app_processing_jobs" in query.columns:
            for row in result:
                row["processing_job"] = [
                    deepcopy(job)
                    for job in self.rows("app_processing_jobs")
                    if job.get("app_submission_id") == row["id"]
                ]
        return result

    def _insert(self, table: str, payload: dict[str, Any]) -> dict[str, Any]:
        keys = _UNIQUE_KEYS.get(table)
        if keys:
            for row in self.rows(table):
                if all(row.get(key) == payload.get(key) for key in keys):
                    raise APIError(
                        {
                            "message": f'duplicate key value violates unique constraint "{table}_key"',
                            "code": "23505",
                            "hint": None,
                            "details": None,
                        }
                    )
        self._seq += 1
        row = {
            "id": str(uuid.uuid4()),
            "created_at": (_EPOCH + timedelta(seconds=self._seq)).isoformat(),
            **deepcopy(payload),
        }
        self.rows(table).append(row)
        return deepcopy(row)


@pytest.fixture
def supabase(monkeypatch: pytest.MonkeyPatch) -> FakeSupabase:
    fake = FakeSupabase()
    for module in (
        auth_dependencies,
        asset_processor,
        developer_access,
        pipeline_events,
        processing_jobs,
        submission_store,
    ):
        monkeypatch.setattr(module, "get_supabase_client", lambda: fake)
    return fake


@pytest.fixture
def developer(supabase: FakeSupabase) -> dict[str, Any]:
    return supabase.seed(
        "developer_profiles",
        {"id": "dev1", "user_id": "user-1", "payment_status": "active"},
    )


@pytest.fixture
def auth() -> AuthContext:
    return AuthContext(user_id="user-1", role="developer", auth_method="jwt")
