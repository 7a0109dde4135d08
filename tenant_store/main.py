"""Tenant Store API — composition root and FastAPI application factory.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - One store, one DataAccessLayer and one UsageTracker per app, held on app.state
    - Store resources are closed on shutdown via the lifespan context manager
    - No module-level instances: callers build apps with create_app()

Design Decisions:
    - build_store() selects the adapter from settings.store_backend
    - A caller-supplied store (tests, embedding apps) is used as-is and not closed
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tenant_store.api.error_handlers import register_error_handlers
from tenant_store.api.routes import health, usage
from tenant_store.config import Settings, get_settings
from tenant_store.core.key_mapper import KeyMapper
from tenant_store.core.plans import limits_for_plan
from tenant_store.core.store_protocols import RemoteStore
from tenant_store.core.usage import UsageTracker
from tenant_store.infrastructure.observability import setup_logging
from tenant_store.infrastructure.rest_store import RestStore
from tenant_store.infrastructure.sql_store import SqlStore
from tenant_store.services.data_access import DataAccessLayer
from tenant_store.services.retry import RetryExecutor
from tenant_store.services.tenant_context import TenantContext

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> RestStore | SqlStore:
    settings.validate_backend()
    if settings.store_backend == "sql":
        return SqlStore(
            settings.database_url,
            profiles_table=settings.profiles_table,
            profile_user_column=settings.profile_user_column,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
        )
    return RestStore(
        settings.supabase_url,
        settings.supabase_anon_key,
        profiles_table=settings.profiles_table,
        profile_user_column=settings.profile_user_column,
        timeout_seconds=settings.request_timeout_seconds,
    )


def build_data_access(
    store: RemoteStore, settings: Settings, mapper: KeyMapper | None = None,
) -> DataAccessLayer:
    tenant = TenantContext(store, ttl_seconds=settings.tenant_cache_ttl_seconds)
    return DataAccessLayer(
        store,
        mapper=mapper or KeyMapper(),
        tenant=tenant,
        health_table=settings.health_check_table,
    )


def build_retry_executor(settings: Settings) -> RetryExecutor:
    return RetryExecutor(
        max_attempts=settings.retry_max_attempts,
        base_delay_ms=settings.retry_base_delay_ms,
        max_delay_ms=settings.retry_max_delay_ms,
    )


def create_app(
    settings: Settings | None = None,
    store: RemoteStore | None = None,
    usage_tracker: UsageTracker | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    owns_store = store is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level, settings.log_format)
        logger.info("Tenant store API started")
        yield
        if owns_store:
            await app.state.store.aclose()
        logger.info("Tenant store API shutting down")

    app = FastAPI(
        title="Tenant Store API",
        version="1.0.0",
        debug=settings.debug_mode,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store if store is not None else build_store(settings)
    app.state.data_access = build_data_access(app.state.store, settings)
    app.state.usage_tracker = usage_tracker or UsageTracker(
        limits_for_plan(settings.default_plan),
    )

    app.include_router(health.router)
    app.include_router(usage.router)
    register_error_handlers(app)
    return app
