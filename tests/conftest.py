"""Root conftest — shared test configuration and an in-memory RemoteStore.

Invariants:
    - Tests never reach a real store: FakeStore implements RemoteStore in memory
    - FakeStore matches rows on EVERY filter (AND), like a real store
    - Failures are injected per method with fail_next(method, error, times)
    - Backoff sleeps are recorded, never awaited for real
"""

import copy
import operator
import os
from datetime import datetime, timezone

import pytest

from tenant_store.core.key_mapper import KeyMapper
from tenant_store.core.store_protocols import Filter, FilterOp
from tenant_store.services.data_access import DataAccessLayer
from tenant_store.services.tenant_context import TenantContext

# Ensure tests don't accidentally use real credentials
os.environ.setdefault("TENANT_STORE_SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("TENANT_STORE_SUPABASE_ANON_KEY", "anon-test-key")

FIXED_NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

_COMPARATORS = {
    FilterOp.EQ: operator.eq,
    FilterOp.NEQ: operator.ne,
    FilterOp.GT: operator.gt,
    FilterOp.GTE: operator.ge,
    FilterOp.LT: operator.lt,
    FilterOp.LTE: operator.le,
}


def _matches(row: dict, f: Filter) -> bool:
    value = row.get(f.column)
    if f.op is FilterOp.IN:
        return value in f.value
    if f.op is FilterOp.IS:
        return value is f.value
    if value is None:
        return False
    return _COMPARATORS[f.op](value, f.value)


class FakeStore:
    """In-memory RemoteStore with call recording and failure injection."""

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.user: dict | None = {"id": "user-1"}
        self.profiles: dict[str, dict] = {
            "user-1": {"id": "profile-1", "user_id": "user-1", "department_id": "dept-a"},
        }
        self.calls: list[tuple[str, str | None, dict]] = []
        self._failures: dict[str, list[Exception]] = {}
        self._next_id = 0

    # -- test helpers ----------------------------------------------------------

    def seed(self, table: str, *rows: dict) -> None:
        self.tables.setdefault(table, []).extend(copy.deepcopy(list(rows)))

    def rows(self, table: str) -> list[dict]:
        return self.tables.get(table, [])

    def fail_next(self, method: str, error: Exception, times: int = 1) -> None:
        self._failures.setdefault(method, []).extend([error] * times)

    def calls_to(self, method: str) -> list[tuple[str, str | None, dict]]:
        return [c for c in self.calls if c[0] == method]

    def _record(self, method: str, table: str | None, **kwargs) -> None:
        self.calls.append((method, table, kwargs))
        pending = self._failures.get(method)
        if pending:
            raise pending.pop(0)

    # -- RemoteStore -----------------------------------------------------------

    async def select(
        self, table, *, columns="*", filters=None, order=None, range=None,
        limit=None,
    ):
        self._record(
            "select", table, columns=columns, filters=list(filters or []),
            order=list(order or []), range=range, limit=limit,
        )
        rows = [
            r for r in self.rows(table)
            if all(_matches(r, f) for f in filters or [])
        ]
        for o in reversed(order or []):
            rows.sort(
                key=lambda r: (r.get(o.column) is None, r.get(o.column)),
                reverse=not o.ascending,
            )
        if range is not None:
            rows = rows[range[0]:range[1] + 1]
        elif limit is not None:
            rows = rows[:limit]
        if columns != "*":
            wanted = [c.strip() for c in columns.split(",")]
            rows = [{c: r.get(c) for c in wanted} for r in rows]
        return copy.deepcopy(rows)

    async def insert(self, table, row):
        self._record("insert", table, row=copy.deepcopy(row))
        stored = copy.deepcopy(row)
        if "id" not in stored:
            self._next_id += 1
            stored["id"] = f"{table}-{self._next_id}"
        self.tables.setdefault(table, []).append(stored)
        return copy.deepcopy(stored)

    async def update(self, table, patch, filters):
        self._record(
            "update", table, patch=copy.deepcopy(patch), filters=list(filters),
        )
        updated = []
        for r in self.rows(table):
            if all(_matches(r, f) for f in filters):
                r.update(copy.deepcopy(patch))
                updated.append(copy.deepcopy(r))
        return updated

    async def delete(self, table, filters):
        self._record("delete", table, filters=list(filters))
        keep = [
            r for r in self.rows(table)
            if not all(_matches(r, f) for f in filters)
        ]
        removed = len(self.rows(table)) - len(keep)
        self.tables[table] = keep
        return removed

    async def get_current_user(self):
        self._record("get_current_user", None)
        return copy.deepcopy(self.user)

    async def get_profile(self, user_id):
        self._record("get_profile", None, user_id=user_id)
        return copy.deepcopy(self.profiles.get(user_id))


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mapper() -> KeyMapper:
    return KeyMapper()


@pytest.fixture
def tenant(store, clock) -> TenantContext:
    return TenantContext(store, ttl_seconds=300, clock=clock)


@pytest.fixture
def observed_faults() -> list:
    return []


@pytest.fixture
def dal(store, mapper, tenant, observed_faults) -> DataAccessLayer:
    return DataAccessLayer(
        store,
        mapper=mapper,
        tenant=tenant,
        fault_observer=observed_faults.append,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def sleeps() -> list:
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)
    return _sleep
