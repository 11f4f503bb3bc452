"""Ingestion entry point."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from payslipflow.api.deps import Services, get_services
from payslipflow.models.job import IngestionRequest

router = APIRouter(tags=["ingest"])


@router.post("/ingest")
def ingest(body: IngestionRequest, services: Services = Depends(get_services)) -> dict[str, Any]:
    result = services.ingestion.ingest(body)
    return result.to_document()
