"""SQL Store — RemoteStore over SQLAlchemy async Core with reflected tables.

Invariants:
    - Every write runs in its own transaction (engine.begin); commit on success,
      rollback on exception
    - Every SQLAlchemy exception is re-raised as RemoteError; the SQLSTATE code is
      threaded through when the driver provides one
    - Invalidated/unreachable connections raise RemoteError("Network error: ...")
    - Tables are reflected once per store and reused

Design Decisions:
    - Core over ORM: tables are caller-supplied names, not mapped classes
    - SQLite integrity messages mapped to 23505/23503 so the classifier sees the
      same codes as on PostgreSQL
    - The current user is bound by the session collaborator (set_current_user)
"""

import logging
from typing import Any

from sqlalchemy import MetaData, Table, delete, insert, select, text, update
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, NoSuchTableError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from tenant_store.core.domain_types import Record
from tenant_store.core.faults import FOREIGN_KEY_VIOLATION, UNIQUE_VIOLATION
from tenant_store.core.store_protocols import (
    Filter, FilterOp, Ordering, RemoteError,
)

logger = logging.getLogger(__name__)

UNDEFINED_TABLE = "42P01"
UNDEFINED_COLUMN = "42703"


def _sqlstate(error: DBAPIError) -> str | None:
    """SQLSTATE from the DB-API exception (asyncpg: sqlstate, psycopg: pgcode)."""
    orig = error.orig
    for attr in ("sqlstate", "pgcode"):
        code = getattr(orig, attr, None)
        if code:
            return str(code)
    cause = getattr(orig, "__cause__", None)
    code = getattr(cause, "sqlstate", None)
    return str(code) if code else None


def to_remote_error(error: SQLAlchemyError) -> RemoteError:
    """Map a SQLAlchemy exception to the raw {message, code} fault shape."""
    if isinstance(error, NoSuchTableError):
        return RemoteError(f"relation \"{error}\" does not exist", UNDEFINED_TABLE)
    if isinstance(error, DBAPIError):
        message = str(error.orig) if error.orig is not None else str(error)
        if error.connection_invalidated:
            return RemoteError(f"Network error: {message}")
        code = _sqlstate(error)
        if code is None and isinstance(error, IntegrityError):
            lowered = message.lower()
            if "unique constraint" in lowered:
                code = UNIQUE_VIOLATION
            elif "foreign key constraint" in lowered:
                code = FOREIGN_KEY_VIOLATION
        return RemoteError(message, code)
    return RemoteError(str(error))


def _column(table: Table, name: str):
    try:
        return table.c[name]
    except KeyError:
        raise RemoteError(
            f"column \"{name}\" of relation \"{table.name}\" does not exist",
            UNDEFINED_COLUMN,
        ) from None


def _predicate(table: Table, f: Filter):
    column = _column(table, f.column)
    if f.op is FilterOp.EQ:
        return column == f.value
    if f.op is FilterOp.NEQ:
        return column != f.value
    if f.op is FilterOp.GT:
        return column > f.value
    if f.op is FilterOp.GTE:
        return column >= f.value
    if f.op is FilterOp.LT:
        return column < f.value
    if f.op is FilterOp.LTE:
        return column <= f.value
    if f.op is FilterOp.LIKE:
        return column.like(f.value)
    if f.op is FilterOp.ILIKE:
        return column.ilike(f.value)
    if f.op is FilterOp.IN:
        return column.in_(list(f.value))
    return column.is_(f.value)


class SqlStore:
    """RemoteStore backed by a relational database through SQLAlchemy."""

    def __init__(
        self,
        database_url: str | None = None,
        *,
        engine: AsyncEngine | None = None,
        profiles_table: str = "user_profiles",
        profile_user_column: str = "user_id",
        **engine_kwargs: Any,
    ):
        if engine is None:
            if database_url is None:
                raise ValueError("SqlStore needs a database_url or an engine")
            engine = create_async_engine(
                database_url, pool_pre_ping=True, **engine_kwargs,
            )
        self.engine = engine
        self._profiles_table = profiles_table
        self._profile_user_column = profile_user_column
        self._metadata = MetaData()
        self._current_user_id: str | None = None

    def set_current_user(self, user_id: str | None) -> None:
        self._current_user_id = user_id

    async def aclose(self) -> None:
        await self.engine.dispose()

    # ─── RemoteStore ─────────────────────────────────────────────

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: list[Filter] | None = None,
        order: list[Ordering] | None = None,
        range: tuple[int, int] | None = None,
        limit: int | None = None,
    ) -> list[Record]:
        try:
            t = await self._table(table)
            if columns.strip() == "*":
                stmt = select(t)
            else:
                stmt = select(*(_column(t, c.strip()) for c in columns.split(",")))
            for f in filters or []:
                stmt = stmt.where(_predicate(t, f))
            for o in order or []:
                # unknown order columns are ignored
                if o.column in t.c:
                    column = t.c[o.column]
                    stmt = stmt.order_by(column.asc() if o.ascending else column.desc())
            if range is not None:
                start, end = range
                stmt = stmt.offset(start).limit(max(0, end - start + 1))
            elif limit is not None:
                stmt = stmt.limit(limit)
            async with self.engine.connect() as conn:
                result = await conn.execute(stmt)
                return [dict(row) for row in result.mappings()]
        except SQLAlchemyError as e:
            raise self._remote_error("select", table, e) from e

    async def insert(self, table: str, row: Record) -> Record:
        try:
            t = await self._table(table)
            stmt = insert(t).values(**row).returning(*t.c)
            async with self.engine.begin() as conn:
                result = await conn.execute(stmt)
                return dict(result.mappings().one())
        except SQLAlchemyError as e:
            raise self._remote_error("insert", table, e) from e

    async def update(
        self, table: str, patch: Record, filters: list[Filter],
    ) -> list[Record]:
        try:
            t = await self._table(table)
            stmt = update(t).values(**patch)
            for f in filters:
                stmt = stmt.where(_predicate(t, f))
            async with self.engine.begin() as conn:
                result = await conn.execute(stmt.returning(*t.c))
                return [dict(row) for row in result.mappings()]
        except SQLAlchemyError as e:
            raise self._remote_error("update", table, e) from e

    async def delete(self, table: str, filters: list[Filter]) -> int:
        try:
            t = await self._table(table)
            stmt = delete(t)
            for f in filters:
                stmt = stmt.where(_predicate(t, f))
            async with self.engine.begin() as conn:
                result = await conn.execute(stmt)
                return result.rowcount
        except SQLAlchemyError as e:
            raise self._remote_error("delete", table, e) from e

    async def get_current_user(self) -> Record | None:
        if self._current_user_id is None:
            return None
        return {"id": self._current_user_id}

    async def get_profile(self, user_id: str) -> Record | None:
        rows = await self.select(
            self._profiles_table,
            filters=[Filter(self._profile_user_column, user_id)],
            limit=1,
        )
        return rows[0] if rows else None

    async def health_check(self) -> bool:
        """Raw connectivity probe (SELECT 1)."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    # ─── Internals ───────────────────────────────────────────────

    async def _table(self, name: str) -> Table:
        table = self._metadata.tables.get(name)
        if table is not None:
            return table
        async with self.engine.connect() as conn:
            return await conn.run_sync(
                lambda sync_conn: Table(name, self._metadata, autoload_with=sync_conn),
            )

    def _remote_error(
        self, operation: str, table: str, error: SQLAlchemyError,
    ) -> RemoteError:
        remote = to_remote_error(error)
        logger.error(
            f"DB {operation} on {table} failed: {remote.message}",
            extra={"table": table, "operation": operation, "error_code": remote.code},
        )
        return remote
