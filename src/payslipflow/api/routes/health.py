"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from payslipflow.api.deps import Services, get_services

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
def ready(services: Services = Depends(get_services)):
    cache = services.cache
    if cache is None:
        return {"status": "ready", "cache": "disabled"}
    ping = getattr(cache, "ping", None)
    if ping is not None and not ping():
        return JSONResponse(status_code=503, content={"status": "degraded", "cache": "unavailable"})
    return {"status": "ready", "cache": "ok"}
