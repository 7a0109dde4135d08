"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - TenantId wraps the opaque department identifier; None means unresolved
    - Records are plain dicts; no schema is assumed by the core
    - All valid states encoded as Enums — no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders
"""

from enum import Enum
from typing import Any, NewType


# ─── Identity Types ──────────────────────────────────────────────

TenantId = NewType("TenantId", str)
UserId = NewType("UserId", str)


# ─── Value Types ─────────────────────────────────────────────────

Record = dict[str, Any]


# ─── Enums ───────────────────────────────────────────────────────

class FaultKind(str, Enum):
    """Bounded taxonomy of remote-store faults."""
    NETWORK = "network"
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCESS_DENIED = "access_denied"
    UNIQUE_CONSTRAINT = "unique_constraint"
    FOREIGN_KEY_CONSTRAINT = "foreign_key_constraint"
    INSUFFICIENT_PRIVILEGE = "insufficient_privilege"
    NOT_AUTHENTICATED = "not_authenticated"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"


class OperationState(str, Enum):
    """Lifecycle of a single data-access operation."""
    IDLE = "idle"
    RESOLVING_TENANT = "resolving_tenant"
    UNAUTHENTICATED = "unauthenticated"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAULTED = "faulted"


class WarningSeverity(str, Enum):
    """Usage warning severity — critical at 95%, warning at 80%."""
    WARNING = "warning"
    CRITICAL = "critical"
