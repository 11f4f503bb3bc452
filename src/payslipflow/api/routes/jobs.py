"""Job status and ingestion log lookups."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from payslipflow.api.deps import Services, get_services
from payslipflow.models.job import LogLevel

router = APIRouter(tags=["jobs"])


@router.get("/{upload_id}")
def get_job(upload_id: str, services: Services = Depends(get_services)) -> dict[str, Any]:
    job = services.ingestion.jobs.get(upload_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"No job for upload {upload_id}")
    return job.to_document()


@router.get("/{upload_id}/logs")
def get_logs(
    upload_id: str,
    level: LogLevel | None = None,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    entries = services.ingestion.log.entries(upload_id, level)
    return {"uploadId": upload_id, "entries": [entry.to_document() for entry in entries]}
