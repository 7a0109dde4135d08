"""Tenant Context — resolves and caches the active department id for one DAL instance.

Invariants:
    - In-memory slot wins: a set slot is returned without any lookup
    - TTL cache holds at most one entry; a valid entry repopulates the slot
    - Lookup chain: current user -> profile -> department id
    - Any failure in the chain resolves to None and leaves the cache empty
    - set_department_id() invalidates the TTL cache; clear() resets both

Design Decisions:
    - Absence of a tenant is a valid state, not an error: resolve() never raises
    - Clock injected (time.monotonic by default) so TTL expiry is testable
    - No lock: concurrent writers are last-writer-wins
"""

import logging
import time
from collections.abc import Callable

from tenant_store.core.domain_types import Record, TenantId
from tenant_store.core.store_protocols import RemoteStore

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0


def extract_department_id(profile: Record | None) -> TenantId | None:
    """Read the department id from a profile row (flat or embedded department)."""
    if not profile:
        return None
    department_id = profile.get("department_id")
    if department_id is None:
        department = profile.get("department")
        if isinstance(department, dict):
            department_id = department.get("id")
    if department_id in (None, ""):
        return None
    return TenantId(str(department_id))


class TenantContext:
    """Single-entry tenant id cache with TTL and explicit invalidation."""

    def __init__(
        self,
        store: RemoteStore,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._department_id: TenantId | None = None
        self._cached_id: TenantId | None = None
        self._cached_at: float | None = None

    @property
    def department_id(self) -> TenantId | None:
        """Current in-memory slot; never triggers a lookup."""
        return self._department_id

    async def resolve(self) -> TenantId | None:
        if self._department_id is not None:
            return self._department_id

        cached = self._cached()
        if cached is not None:
            self._department_id = cached
            return cached

        department_id = await self._lookup()
        if department_id is not None:
            self._department_id = department_id
            self._cached_id = department_id
            self._cached_at = self._clock()
        return department_id

    def set_department_id(self, department_id: str | None) -> None:
        self._department_id = (
            TenantId(department_id) if department_id is not None else None
        )
        self._invalidate_cache()
        logger.info(
            "Department context set",
            extra={"tenant_id": self._department_id},
        )

    def clear(self) -> None:
        self._department_id = None
        self._invalidate_cache()
        logger.info("Department context cleared")

    def _cached(self) -> TenantId | None:
        if self._cached_id is None or self._cached_at is None:
            return None
        if self._clock() - self._cached_at >= self._ttl_seconds:
            self._invalidate_cache()
            return None
        return self._cached_id

    def _invalidate_cache(self) -> None:
        self._cached_id = None
        self._cached_at = None

    async def _lookup(self) -> TenantId | None:
        try:
            user = await self._store.get_current_user()
            if not user or not user.get("id"):
                logger.debug("No authenticated user; department unresolved")
                return None
            profile = await self._store.get_profile(str(user["id"]))
        except Exception as e:
            logger.warning(f"Department lookup failed: {e}")
            return None

        department_id = extract_department_id(profile)
        if department_id is None:
            logger.debug("Profile has no department; department unresolved")
        return department_id
