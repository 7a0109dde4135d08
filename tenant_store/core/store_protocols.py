"""Boundary Protocols — contract between the data-access layer and a remote tabular store.

Invariants:
    - Core NEVER imports from infrastructure — adapters implement RemoteStore
    - Column names crossing this boundary are in the external (snake_case) convention
    - Every adapter failure is raised as RemoteError(message, code?)
    - delete() returns the number of rows removed; update() returns the updated rows

Design Decisions:
    - Protocol over ABC: structural subtyping, fakes in tests need no base class
    - Filters are data (Filter dataclass), not builder calls: adapters translate
      them to PostgREST query params or SQLAlchemy expressions
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from tenant_store.core.domain_types import Record


class FilterOp(str, Enum):
    """Predicate operators supported by every adapter."""
    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    LIKE = "like"
    ILIKE = "ilike"
    IN = "in"
    IS = "is"


@dataclass(frozen=True)
class Filter:
    """Single column predicate; filters passed together are ANDed."""
    column: str
    value: Any
    op: FilterOp = FilterOp.EQ


@dataclass(frozen=True)
class Ordering:
    column: str
    ascending: bool = False


class RemoteError(Exception):
    """Raw error raised by a store adapter: a message plus an optional code."""

    def __init__(
        self, message: str, code: str | None = None, status: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status

    def __repr__(self) -> str:
        return f"RemoteError(message={self.message!r}, code={self.code!r})"


class RemoteStore(Protocol):
    """Contract for the opaque remote store — implemented by infrastructure."""

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: list[Filter] | None = None,
        order: list[Ordering] | None = None,
        range: tuple[int, int] | None = None,
        limit: int | None = None,
    ) -> list[Record]: ...

    async def insert(self, table: str, row: Record) -> Record: ...

    async def update(
        self, table: str, patch: Record, filters: list[Filter],
    ) -> list[Record]: ...

    async def delete(self, table: str, filters: list[Filter]) -> int: ...

    async def get_current_user(self) -> Record | None: ...

    async def get_profile(self, user_id: str) -> Record | None: ...
