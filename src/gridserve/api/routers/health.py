"""Health check endpoints for gridserve.

Provides Kubernetes-compatible liveness and readiness probes:
- /health/live  - Liveness probe (always returns OK if process is running)
- /health/ready - Readiness probe (checks the storage engine answers)
"""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from gridserve.api.deps import BlobStoreDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])

PROBE_KEY = "__gridserve_health_probe__"


@router.get("/live")
async def live() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def ready(store: BlobStoreDep) -> JSONResponse:
    """Report whether the storage engine can be queried."""
    started = time.perf_counter()
    try:
        await store.exists(PROBE_KEY)
    except Exception as exc:
        logger.warning(f"Storage engine not ready: {exc}")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "message": str(exc)},
        )
    latency_ms = round((time.perf_counter() - started) * 1000, 2)
    return JSONResponse(content={"status": "healthy", "latency_ms": latency_ms})
