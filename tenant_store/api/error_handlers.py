"""Error Handlers — map the tenant-store error hierarchy onto HTTP responses.

Invariants:
    - TenantStoreError → its own to_response() body and http_status
    - Retryable faults carry Retry-After (seconds, from the configured base delay)
    - Faults are logged with tenant/fault extras: WARNING below 500, ERROR above
    - RequestValidationError → 400 with field-level details
    - Anything else → opaque 500, never leaks internals
"""

import logging
import math

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tenant_store.core.errors import ErrorSeverity, Fault, TenantStoreError
from tenant_store.infrastructure.observability import fault_fields

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TenantStoreError, handle_store_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)


def retry_after_seconds(request: Request) -> int:
    settings = getattr(request.app.state, "settings", None)
    base_ms = settings.retry_base_delay_ms if settings is not None else 1000
    return max(1, math.ceil(base_ms / 1000))


async def handle_store_error(request: Request, exc: TenantStoreError):
    headers = {}
    if isinstance(exc, Fault):
        extra = {**fault_fields(exc), "path": request.url.path}
        if exc.retryable:
            headers["Retry-After"] = str(retry_after_seconds(request))
    else:
        extra = {"error_code": exc.code, "path": request.url.path}
    level = logging.ERROR if exc.http_status >= 500 else logging.WARNING
    logger.log(level, f"{exc.code}: {exc.message}", extra=extra)
    return JSONResponse(
        status_code=exc.http_status, content=exc.to_response(), headers=headers,
    )


async def handle_validation_error(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(loc) for loc in e["loc"]),
            "message": e["msg"],
            "type": e["type"],
        }
        for e in exc.errors()
    ]
    logger.warning(
        f"Rejected request: {len(details)} invalid field(s)",
        extra={"path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request data",
                "category": "validation",
                "severity": ErrorSeverity.ERROR.value,
                "details": details,
            },
        },
    )


async def handle_unexpected_error(request: Request, exc: Exception):
    logger.error(
        f"Unhandled {type(exc).__name__}",
        exc_info=exc,
        extra={"path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "category": "internal",
                "severity": ErrorSeverity.CRITICAL.value,
            },
        },
    )
