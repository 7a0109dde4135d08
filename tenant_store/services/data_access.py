"""Data Access Layer — tenant-scoped CRUD over an opaque remote store.

Invariants:
    - Every query/update/delete carries department_id = resolved tenant; caller
      filters are ANDed with it and can never widen the result
    - Inserts always carry the resolved tenant's department_id
    - Reads (query, health_check) never raise: they degrade to [] / unhealthy and
      surface the Fault via QueryResult, logs and the optional fault observer
    - Writes (insert, update, delete) always raise: NotAuthenticatedError without a
      tenant, RecordNotFoundError when the tenant-scoped predicate matches no row,
      or the classified Fault
    - Payloads leave in the external convention and come back internal

Design Decisions:
    - No automatic retry here; callers wrap write operations with RetryExecutor
    - created_at stamped only when absent so a pre-stamped retried insert is idempotent
    - Store/tenant/mapper injected; one DAL instance owns one TenantContext
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from tenant_store.core.domain_types import (
    FaultKind, OperationState, Record, TenantId,
)
from tenant_store.core.errors import (
    ErrorContext, Fault, NotAuthenticatedError, RecordNotFoundError,
)
from tenant_store.core.faults import classify
from tenant_store.core.key_mapper import KeyMapper
from tenant_store.core.store_protocols import Filter, Ordering, RemoteStore
from tenant_store.infrastructure.observability import fault_fields
from tenant_store.services.tenant_context import TenantContext

logger = logging.getLogger(__name__)

TENANT_COLUMN = "department_id"
CREATED_AT = "created_at"
UPDATED_AT = "updated_at"
DEFAULT_ORDER_BY = "createdAt"
DEFAULT_HEALTH_TABLE = "departments"


@dataclass(frozen=True)
class QueryOptions:
    """Caller options for query(); column names in the internal convention."""
    filters: Mapping[str, Any] | list[Filter] = field(default_factory=dict)
    order_by: str | None = DEFAULT_ORDER_BY
    ascending: bool = False
    range: tuple[int, int] | None = None
    columns: str = "*"


@dataclass(frozen=True)
class QueryResult:
    rows: list[Record]
    authenticated: bool = True
    fault: Fault | None = None

    @property
    def ok(self) -> bool:
        return self.authenticated and self.fault is None


@dataclass(frozen=True)
class HealthReport:
    healthy: bool
    connected: bool
    fault: Fault | None = None

    def to_dict(self) -> dict:
        return {
            "healthy": self.healthy,
            "connected": self.connected,
            "error": self.fault.message if self.fault else None,
        }


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DataAccessLayer:
    """Tenant-scoped query/insert/update/delete/health_check."""

    def __init__(
        self,
        store: RemoteStore,
        mapper: KeyMapper | None = None,
        tenant: TenantContext | None = None,
        health_table: str = DEFAULT_HEALTH_TABLE,
        fault_observer: Callable[[Fault], None] | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._store = store
        self._mapper = mapper or KeyMapper()
        self._tenant = tenant or TenantContext(store)
        self._health_table = health_table
        self._fault_observer = fault_observer
        self._clock = clock

    # ─── Tenant context ──────────────────────────────────────────

    @property
    def department_id(self) -> TenantId | None:
        return self._tenant.department_id

    async def resolve_department_id(self) -> TenantId | None:
        return await self._tenant.resolve()

    def set_department_id(self, department_id: str | None) -> None:
        self._tenant.set_department_id(department_id)

    def clear_department_context(self) -> None:
        self._tenant.clear()

    # ─── Reads ───────────────────────────────────────────────────

    async def query(
        self, table: str, options: QueryOptions | None = None,
    ) -> list[Record]:
        """Tenant-scoped select. [] when unauthenticated or on a remote fault."""
        return (await self.query_result(table, options)).rows

    async def query_result(
        self, table: str, options: QueryOptions | None = None,
    ) -> QueryResult:
        options = options or QueryOptions()
        self._trace(OperationState.RESOLVING_TENANT, "query", table)
        tenant_id = await self._tenant.resolve()
        if tenant_id is None:
            self._trace(OperationState.UNAUTHENTICATED, "query", table)
            logger.warning(
                "Query without department context",
                extra={"table": table, "operation": "query"},
            )
            return QueryResult(rows=[], authenticated=False)

        filters = self._external_filters(options.filters)
        filters.append(Filter(TENANT_COLUMN, tenant_id))
        order = (
            [Ordering(self._mapper.key_to_external(options.order_by), options.ascending)]
            if options.order_by else None
        )

        self._trace(OperationState.EXECUTING, "query", table)
        try:
            rows = await self._store.select(
                table,
                columns=self._external_columns(options.columns),
                filters=filters,
                order=order,
                range=options.range,
            )
        except Exception as e:
            fault = self._fault(e, "query", table, tenant_id)
            self._observe(fault)
            return QueryResult(rows=[], fault=fault)

        self._trace(OperationState.SUCCEEDED, "query", table)
        return QueryResult(rows=self._mapper.to_internal(list(rows or [])))

    async def health_check(self) -> HealthReport:
        """Minimal tenant-independent read; never raises."""
        try:
            await self._store.select(self._health_table, columns="id", limit=1)
        except Exception as e:
            fault = self._fault(e, "health_check", self._health_table, None)
            self._observe(fault)
            return HealthReport(healthy=False, connected=False, fault=fault)
        return HealthReport(healthy=True, connected=True)

    # ─── Writes ──────────────────────────────────────────────────

    async def insert(self, table: str, record: Record) -> Record:
        tenant_id = await self._require_tenant("insert", table)
        payload = self._mapper.to_external(dict(record))
        payload[TENANT_COLUMN] = tenant_id
        if payload.get(CREATED_AT) is None:
            payload[CREATED_AT] = self._timestamp()

        self._trace(OperationState.EXECUTING, "insert", table)
        try:
            row = await self._store.insert(table, payload)
        except Exception as e:
            raise self._fault(e, "insert", table, tenant_id) from e

        self._trace(OperationState.SUCCEEDED, "insert", table)
        return self._mapper.to_internal(row)

    async def update(self, table: str, id: str, patch: Record) -> Record:
        tenant_id = await self._require_tenant("update", table)
        payload = self._mapper.to_external(dict(patch))
        payload.pop("id", None)
        payload.pop(TENANT_COLUMN, None)
        payload[UPDATED_AT] = self._timestamp()

        self._trace(OperationState.EXECUTING, "update", table)
        try:
            rows = await self._store.update(
                table, payload, self._scoped_to(id, tenant_id),
            )
        except Exception as e:
            raise self._fault(e, "update", table, tenant_id) from e

        if not rows:
            raise self._not_found("update", table, id, tenant_id)
        self._trace(OperationState.SUCCEEDED, "update", table)
        return self._mapper.to_internal(rows[0])

    async def delete(self, table: str, id: str) -> bool:
        tenant_id = await self._require_tenant("delete", table)

        self._trace(OperationState.EXECUTING, "delete", table)
        try:
            deleted = await self._store.delete(
                table, self._scoped_to(id, tenant_id),
            )
        except Exception as e:
            raise self._fault(e, "delete", table, tenant_id) from e

        if not deleted:
            raise self._not_found("delete", table, id, tenant_id)
        self._trace(OperationState.SUCCEEDED, "delete", table)
        return True

    # ─── Helpers ─────────────────────────────────────────────────

    async def _require_tenant(self, operation: str, table: str) -> TenantId:
        self._trace(OperationState.RESOLVING_TENANT, operation, table)
        tenant_id = await self._tenant.resolve()
        if tenant_id is None:
            self._trace(OperationState.UNAUTHENTICATED, operation, table)
            raise NotAuthenticatedError(operation, ErrorContext(table=table))
        return tenant_id

    def _scoped_to(self, id: str, tenant_id: TenantId) -> list[Filter]:
        return [Filter("id", id), Filter(TENANT_COLUMN, tenant_id)]

    def _external_columns(self, columns: str) -> str:
        if columns.strip() == "*":
            return columns
        return ",".join(
            self._mapper.key_to_external(c.strip()) for c in columns.split(",")
        )

    def _external_filters(
        self, filters: Mapping[str, Any] | list[Filter],
    ) -> list[Filter]:
        if isinstance(filters, Mapping):
            return [
                Filter(self._mapper.key_to_external(name), value)
                for name, value in filters.items()
            ]
        return [
            Filter(self._mapper.key_to_external(f.column), f.value, f.op)
            for f in filters
        ]

    def _timestamp(self) -> str:
        return self._clock().isoformat()

    def _fault(
        self, error: Exception, operation: str, table: str,
        tenant_id: TenantId | None,
    ) -> Fault:
        fault = classify(
            error,
            ErrorContext(tenant_id=tenant_id, table=table, operation=operation),
        )
        self._trace(OperationState.FAULTED, operation, table)
        logger.error(
            f"{operation} on {table} failed: {fault.detail or fault.message}",
            extra=fault_fields(fault),
        )
        return fault

    def _not_found(
        self, operation: str, table: str, id: str, tenant_id: TenantId,
    ) -> RecordNotFoundError:
        self._trace(OperationState.FAULTED, operation, table)
        logger.warning(
            f"{operation} on {table} matched no row in department",
            extra={
                "tenant_id": tenant_id,
                "table": table,
                "operation": operation,
                "fault_kind": FaultKind.NOT_FOUND.value,
            },
        )
        return RecordNotFoundError(
            table, str(id), ErrorContext(tenant_id=tenant_id, operation=operation),
        )

    def _observe(self, fault: Fault) -> None:
        if self._fault_observer is None:
            return
        try:
            self._fault_observer(fault)
        except Exception:
            logger.exception("Fault observer raised")

    def _trace(self, state: OperationState, operation: str, table: str) -> None:
        logger.debug(
            f"{operation} {table}: {state.value}",
            extra={"table": table, "operation": operation},
        )
