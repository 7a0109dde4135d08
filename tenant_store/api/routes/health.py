"""Health & Readiness Probes — liveness and readiness endpoints.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 if the remote store is unreachable (readiness)
    - Readiness does not require an authenticated department
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from tenant_store.api.dependencies import get_data_access
from tenant_store.services.data_access import DataAccessLayer

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {"status": "healthy", "service": "tenant-store"}


@router.get("/ready")
async def readiness_check(dal: DataAccessLayer = Depends(get_data_access)):
    """Readiness probe — includes remote store connectivity."""
    report = await dal.health_check()
    if not report.healthy:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "reason": "store_unavailable",
                "checks": report.to_dict(),
            },
        )
    return {"status": "ready", "checks": report.to_dict()}
