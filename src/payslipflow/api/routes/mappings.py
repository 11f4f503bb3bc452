"""Mapping settings endpoints: save, load, build from two rows, delete."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from payslipflow.api.deps import Services, get_services
from payslipflow.mapping.builder import build_from_config, build_from_rows
from payslipflow.mapping.store import load_mapping, mapping_data, save_mapping
from payslipflow.models.base import CamelModel
from payslipflow.models.mapping import PayslipKind

router = APIRouter(tags=["mappings"])


class BuildRequest(CamelModel):
    header_row: str = ""
    label_row: str = ""


@router.put("/{tenant_id}")
def put_mapping(
    tenant_id: str,
    document: dict[str, Any] = Body(...),
    kind: PayslipKind = PayslipKind.REGULAR,
    updated_by: str | None = None,
    services: Services = Depends(get_services),
):
    model = build_from_config(document)
    result = save_mapping(services.mappings, tenant_id, model, kind=kind, updated_by=updated_by)
    if not result["success"]:
        # Only validation failures carry problems; anything else is a store fault.
        status_code = 400 if "problems" in result else 500
        return JSONResponse(status_code=status_code, content=result)
    return result


@router.get("/{tenant_id}")
def get_mapping(
    tenant_id: str,
    kind: PayslipKind = PayslipKind.REGULAR,
    services: Services = Depends(get_services),
):
    result = load_mapping(services.mappings, tenant_id, kind)
    if not result["success"]:
        return JSONResponse(status_code=404, content=result)
    return result


@router.post("/{tenant_id}/build")
def build_mapping(
    tenant_id: str,
    body: BuildRequest,
    kind: PayslipKind = PayslipKind.REGULAR,
    save: bool = False,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    model = build_from_rows(body.header_row, body.label_row)
    if save:
        model = services.mappings.save(tenant_id, model, kind=kind)
    return {"success": True, "saved": save, "data": mapping_data(model)}


@router.delete("/{tenant_id}")
def delete_mapping(
    tenant_id: str,
    confirm: str = "",
    kind: PayslipKind = PayslipKind.REGULAR,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    services.mappings.delete(tenant_id, kind, confirm)
    return {"success": True}
