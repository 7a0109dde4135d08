"""Error Hierarchy — typed, categorized exceptions for all tenant-store failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Every Fault carries a FaultKind and a retryable verdict, fixed at creation
    - NotAuthenticatedError is a distinct Fault variant, never an UNKNOWN fault
    - to_response() produces the REST envelope; no internal details leaked in `message`

Design Decisions:
    - Single hierarchy with TenantStoreError base: one FastAPI handler catches all
    - Fault.detail keeps the original remote message for logs, separate from the
      user-facing message
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone

from tenant_store.core.domain_types import FaultKind


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    DATABASE = "database"
    NETWORK = "network"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    tenant_id: str | None = None
    table: str | None = None
    operation: str | None = None
    debug_info: dict[str, Any] | None = None


class TenantStoreError(Exception):
    """Base exception for all tenant-store errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "table": self.context.table,
                    "operation": self.context.operation,
                },
            }
        }


# ─── Faults ──────────────────────────────────────────────────────

# kind -> (code, category, severity, http_status)
_FAULT_SHAPES: dict[FaultKind, tuple[str, ErrorCategory, ErrorSeverity, int]] = {
    FaultKind.NETWORK: (
        "NETWORK_ERROR", ErrorCategory.NETWORK, ErrorSeverity.WARNING, 503,
    ),
    FaultKind.INVALID_CREDENTIALS: (
        "INVALID_CREDENTIALS", ErrorCategory.AUTHENTICATION, ErrorSeverity.ERROR, 401,
    ),
    FaultKind.ACCESS_DENIED: (
        "ACCESS_DENIED", ErrorCategory.AUTHORIZATION, ErrorSeverity.ERROR, 403,
    ),
    FaultKind.UNIQUE_CONSTRAINT: (
        "UNIQUE_CONSTRAINT", ErrorCategory.CONFLICT, ErrorSeverity.ERROR, 409,
    ),
    FaultKind.FOREIGN_KEY_CONSTRAINT: (
        "FOREIGN_KEY_CONSTRAINT", ErrorCategory.CONFLICT, ErrorSeverity.ERROR, 409,
    ),
    FaultKind.INSUFFICIENT_PRIVILEGE: (
        "INSUFFICIENT_PRIVILEGE", ErrorCategory.AUTHORIZATION, ErrorSeverity.ERROR, 403,
    ),
    FaultKind.NOT_AUTHENTICATED: (
        "NOT_AUTHENTICATED", ErrorCategory.AUTHENTICATION, ErrorSeverity.WARNING, 401,
    ),
    FaultKind.NOT_FOUND: (
        "RECORD_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND, ErrorSeverity.ERROR, 404,
    ),
    FaultKind.UNKNOWN: (
        "DATABASE_ERROR", ErrorCategory.DATABASE, ErrorSeverity.CRITICAL, 500,
    ),
}


class Fault(TenantStoreError):
    """Normalized remote-store error with a retryability verdict."""

    def __init__(
        self,
        kind: FaultKind,
        message: str,
        retryable: bool = False,
        remote_code: str | None = None,
        detail: str | None = None,
        context: ErrorContext | None = None,
    ):
        code, category, severity, http_status = _FAULT_SHAPES[kind]
        super().__init__(message, code, category, severity, context, http_status)
        self.kind = kind
        self.retryable = retryable
        self.remote_code = remote_code
        self.detail = detail

    def to_response(self) -> dict:
        response = super().to_response()
        response["error"]["kind"] = self.kind.value
        response["error"]["retryable"] = self.retryable
        return response

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind.value!r}, "
            f"message={self.message!r}, retryable={self.retryable})"
        )


class NotAuthenticatedError(Fault):
    """No tenant could be resolved for a write operation."""
    def __init__(self, operation: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.operation = operation
        super().__init__(
            FaultKind.NOT_AUTHENTICATED,
            "No authenticated department context. Please sign in again.",
            retryable=False,
            context=ctx,
        )


class RecordNotFoundError(Fault):
    """A tenant-scoped update/delete matched no row."""
    def __init__(
        self, table: str, record_id: str, context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.table = table
        super().__init__(
            FaultKind.NOT_FOUND,
            f"{table} record '{record_id}' not found",
            retryable=False,
            context=ctx,
        )
        self.record_id = record_id


# ─── Configuration ───────────────────────────────────────────────

class ConfigurationError(TenantStoreError):
    """Settings are missing or invalid for the selected backend."""
    def __init__(self, problems: list[str]):
        super().__init__(
            "Configuration errors:\n" + "\n".join(problems),
            "CONFIGURATION_ERROR", ErrorCategory.CONFIGURATION,
            ErrorSeverity.CRITICAL, None, 500,
        )
        self.problems = problems
