"""Explicit userId backfill for a company's payslips."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from payslipflow.api.deps import Services, get_services
from payslipflow.ingestion.backfill import backfill_user_ids
from payslipflow.models.mapping import PayslipKind

router = APIRouter(tags=["backfill"])


@router.post("/{company_id}")
def backfill(
    company_id: str,
    kind: PayslipKind = PayslipKind.REGULAR,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    fixed = backfill_user_ids(services.store, services.directory, company_id, kind)
    return {"success": True, "fixedCount": fixed}
