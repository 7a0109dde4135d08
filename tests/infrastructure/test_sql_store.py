"""SQL Store — SQLAlchemy async Core against in-memory SQLite.

Invariants:
    - integrity violations surface as RemoteError with PostgreSQL SQLSTATE codes
    - unknown tables/columns surface as RemoteError, never raw SQLAlchemy errors
    - the DAL keeps tenant isolation end to end on a real SQL engine
"""

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from tenant_store.core.domain_types import FaultKind
from tenant_store.core.errors import Fault, RecordNotFoundError
from tenant_store.core.faults import classify
from tenant_store.core.store_protocols import Filter, FilterOp, Ordering, RemoteError
from tenant_store.infrastructure.sql_store import SqlStore
from tenant_store.services.data_access import DataAccessLayer, QueryOptions
from tenant_store.services.tenant_context import TenantContext

SCHEMA = (
    """
    CREATE TABLE user_profiles (
        id TEXT PRIMARY KEY,
        user_id TEXT UNIQUE NOT NULL,
        department_id TEXT
    )
    """,
    """
    CREATE TABLE equipment (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        department_id TEXT NOT NULL,
        name TEXT,
        serial_number TEXT UNIQUE,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    "INSERT INTO user_profiles (id, user_id, department_id)"
    " VALUES ('profile-9', 'auth-u1', 'dept-a')",
    "INSERT INTO user_profiles (id, user_id, department_id)"
    " VALUES ('profile-7', 'auth-u2', 'dept-b')",
)


@pytest.fixture
async def sql_store():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        for statement in SCHEMA:
            await conn.execute(text(statement))
    store = SqlStore(engine=engine)
    yield store
    await store.aclose()


@pytest.fixture
def sql_dal(sql_store):
    sql_store.set_current_user("auth-u1")
    return DataAccessLayer(sql_store, tenant=TenantContext(sql_store))


async def test_insert_returns_generated_row(sql_store):
    row = await sql_store.insert(
        "equipment", {"department_id": "dept-a", "name": "Helmet"},
    )
    assert row["id"] == 1
    assert row["name"] == "Helmet"


async def test_select_filters_orders_and_pages(sql_store):
    for i, dept in enumerate(["dept-a", "dept-a", "dept-b", "dept-a"]):
        await sql_store.insert("equipment", {
            "department_id": dept, "name": f"item-{i}", "created_at": f"2024-01-0{i + 1}",
        })

    rows = await sql_store.select(
        "equipment",
        filters=[Filter("department_id", "dept-a")],
        order=[Ordering("created_at")],
        range=(0, 1),
    )

    assert [r["name"] for r in rows] == ["item-3", "item-1"]


async def test_select_projection_and_operators(sql_store):
    await sql_store.insert("equipment", {"department_id": "dept-a", "name": "Boots"})
    await sql_store.insert("equipment", {"department_id": "dept-a", "name": "Helmet"})

    rows = await sql_store.select(
        "equipment",
        columns="id, name",
        filters=[Filter("name", ["Helmet", "Gloves"], FilterOp.IN)],
    )

    assert rows == [{"id": 2, "name": "Helmet"}]


async def test_unique_violation_maps_to_sqlstate(sql_store):
    await sql_store.insert("equipment", {"department_id": "dept-a", "serial_number": "A1"})

    with pytest.raises(RemoteError) as exc_info:
        await sql_store.insert("equipment", {"department_id": "dept-a", "serial_number": "A1"})

    assert exc_info.value.code == "23505"
    assert classify(exc_info.value).kind is FaultKind.UNIQUE_CONSTRAINT


async def test_unknown_table_is_remote_error(sql_store):
    with pytest.raises(RemoteError) as exc_info:
        await sql_store.select("no_such_table")
    assert exc_info.value.code == "42P01"


async def test_unknown_column_is_remote_error(sql_store):
    with pytest.raises(RemoteError) as exc_info:
        await sql_store.select("equipment", filters=[Filter("bogus", 1)])
    assert exc_info.value.code == "42703"


async def test_update_and_delete_report_affected_rows(sql_store):
    row = await sql_store.insert("equipment", {"department_id": "dept-a", "name": "old"})
    scope = [Filter("id", row["id"]), Filter("department_id", "dept-a")]

    updated = await sql_store.update("equipment", {"name": "new"}, scope)
    assert [r["name"] for r in updated] == ["new"]

    assert await sql_store.delete("equipment", scope) == 1
    assert await sql_store.delete("equipment", scope) == 0


async def test_current_user_and_profile(sql_store):
    assert await sql_store.get_current_user() is None
    sql_store.set_current_user("auth-u2")
    user = await sql_store.get_current_user()
    profile = await sql_store.get_profile(user["id"])
    assert profile == {
        "id": "profile-7", "user_id": "auth-u2", "department_id": "dept-b",
    }


async def test_department_resolved_via_profile_user_id(sql_dal, sql_store):
    # profile id differs from the auth user id
    assert await sql_dal.resolve_department_id() == "dept-a"
    assert await sql_store.get_profile("profile-9") is None


async def test_health_check(sql_store):
    assert await sql_store.health_check() is True


async def test_dal_isolation_on_sql(sql_dal, sql_store):
    mine = await sql_dal.insert("equipment", {"name": "Helmet", "serialNumber": "A1"})
    theirs = await sql_store.insert(
        "equipment", {"department_id": "dept-b", "name": "Other", "serial_number": "B1"},
    )

    rows = await sql_dal.query("equipment")
    assert [r["id"] for r in rows] == [mine["id"]]
    assert rows[0]["serialNumber"] == "A1"
    assert rows[0]["departmentId"] == "dept-a"

    with pytest.raises(RecordNotFoundError):
        await sql_dal.update("equipment", theirs["id"], {"name": "hijacked"})
    with pytest.raises(RecordNotFoundError):
        await sql_dal.delete("equipment", theirs["id"])

    updated = await sql_dal.update("equipment", mine["id"], {"name": "Helmet v2"})
    assert updated["name"] == "Helmet v2"
    assert updated["updatedAt"] is not None


async def test_dal_duplicate_insert_raises_unique_fault(sql_dal):
    await sql_dal.insert("equipment", {"serialNumber": "A1"})

    with pytest.raises(Fault) as exc_info:
        await sql_dal.insert("equipment", {"serialNumber": "A1"})

    assert exc_info.value.kind is FaultKind.UNIQUE_CONSTRAINT
    assert exc_info.value.retryable is False


async def test_dal_query_unknown_table_degrades(sql_dal):
    result = await sql_dal.query_result(
        "no_such_table", QueryOptions(order_by=None),
    )
    assert result.rows == []
    assert result.fault.kind is FaultKind.UNKNOWN
    assert result.fault.remote_code == "42P01"


async def test_dal_projection_with_internal_names(sql_dal):
    await sql_dal.insert("equipment", {"name": "Helmet", "serialNumber": "A1"})

    result = await sql_dal.query_result(
        "equipment", QueryOptions(columns="id,serialNumber"),
    )

    assert result.fault is None
    assert result.rows == [{"id": 1, "serialNumber": "A1"}]
