"""Shared fixtures: an in-process stand-in for the Supabase query builder."""

import uuid
from typing import Any, Dict, List, Optional, Union

import pytest

from db_utils import InMemoryDataSource, SupabaseDataSource


class FakeResponse:
    def __init__(self, data: List[Dict[str, Any]]):
        self.data = data
        self.count = len(data)


class BackendUnavailable(Exception):
    pass


class FakeQuery:
    def __init__(self, client: "FakeSupabaseClient", table: str):
        self.client = client
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.filters = []
        self.orders = []
        self.limit_to: Optional[int] = None
        self.payload: Any = None
        self.on_conflict: Optional[str] = None

    def select(self, columns: str = "*", count: Optional[str] = None):
        self.columns = columns
        return self

    def eq(self, column: str, value: Any):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column: str, values: List[Any]):
        allowed = list(values)
        self.filters.append(lambda row: row.get(column) in allowed)
        return self

    def order(self, column: str, desc: bool = False):
        self.orders.append((column, desc))
        return self

    def limit(self, size: int):
        self.limit_to = size
        return self

    def upsert(self, row: Dict[str, Any], on_conflict: Optional[str] = None):
        self.op = "upsert"
        self.payload = row
        self.on_conflict = on_conflict
        return self

    def insert(self, rows: Union[Dict[str, Any], List[Dict[str, Any]]]):
        self.op = "insert"
        self.payload = rows
        return self

    def update(self, values: Dict[str, Any]):
        self.op = "update"
        self.payload = values
        return self

    def delete(self):
        self.op = "delete"
        return self

    def _matches(self, row: Dict[str, Any]) -> bool:
        return all(check(row) for check in self.filters)

    def execute(self) -> FakeResponse:
        self.client.calls.append((self.table, self.op))
        if self.table in self.client.failing_tables:
            raise BackendUnavailable(f"{self.table} unavailable")
        rows = self.client.tables.setdefault(self.table, [])

        if self.op == "upsert":
            self.client.upserts.append((self.table, dict(self.payload), self.on_conflict))
            key = self.on_conflict
            rows[:] = [row for row in rows if not key or row.get(key) != self.payload.get(key)]
            rows.append(dict(self.payload))
            return FakeResponse([dict(self.payload)])
        if self.op == "insert":
            batch = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = [{"id": str(uuid.uuid4()), **row} for row in batch]
            rows.extend(inserted)
            return FakeResponse([dict(row) for row in inserted])
        if self.op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    updated.append(dict(row))
            return FakeResponse(updated)
        if self.op == "delete":
            removed = [dict(row) for row in rows if self._matches(row)]
            rows[:] = [row for row in rows if not self._matches(row)]
            return FakeResponse(removed)

        result = [dict(row) for row in rows if self._matches(row)]
        for column, desc in reversed(self.orders):
            result.sort(
                key=lambda row: (row.get(column) is None, row.get(column) if row.get(column) is not None else 0),
                reverse=desc,
            )
        if self.limit_to is not None:
            result = result[: self.limit_to]
        if self.columns != "*":
            wanted = [name.strip() for name in self.columns.split(",")]
            result = [{name: row.get(name) for name in wanted} for row in result]
        return FakeResponse(result)


class FakeRpc:
    def __init__(self, client: "FakeSupabaseClient", name: str, params: Dict[str, Any]):
        self.client = client
        self.name = name
        self.params = params

    def execute(self) -> FakeResponse:
        self.client.rpc_calls.append((self.name, self.params))
        if self.name in self.client.failing_rpcs:
            raise BackendUnavailable(f"rpc {self.name} failed")
        return FakeResponse([])


class FakeSupabaseClient:
    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables = {name: [dict(row) for row in rows] for name, rows in (tables or {}).items()}
        self.failing_tables = set()
        self.failing_rpcs = set()
        self.calls = []
        self.upserts = []
        self.rpc_calls = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: Dict[str, Any]) -> FakeRpc:
        return FakeRpc(self, name, params)


@pytest.fixture
def fake_client():
    return FakeSupabaseClient()


@pytest.fixture
def supabase_source(fake_client):
    return SupabaseDataSource(fake_client)


@pytest.fixture
def memory_source():
    return InMemoryDataSource()
