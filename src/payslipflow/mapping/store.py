"""Mapping store: one header mapping document per tenant and payslip kind.

Documents are written in the current shape and read through the versioned
adapters, so legacy documents keep working until the tenant saves again.
A Redis cache in front of the document store is optional.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from payslipflow.core.exceptions import (
    CacheError,
    IngestionError,
    MappingNotFoundError,
    MappingValidationError,
    PayslipFlowError,
)
from payslipflow.core.protocols import ICacheBackend, IDocumentStore
from payslipflow.mapping.adapters import normalize_document
from payslipflow.mapping.validation import find_swapped_columns, validate_mapping
from payslipflow.models.mapping import Category, HeaderMappingModel, PayslipKind
from payslipflow.persistence import tables

logger = logging.getLogger(__name__)


def _cache_key(tenant_id: str, kind: str) -> str:
    return f"mapping:{tenant_id}:{kind}"


class MappingStore:
    """Durable per-tenant persistence of HeaderMappingModel."""

    def __init__(self, store: IDocumentStore, cache: ICacheBackend | None = None,
                 cache_ttl: int = 300) -> None:
        self._store = store
        self._cache = cache
        self._cache_ttl = cache_ttl

    def save(
        self,
        tenant_id: str,
        model: HeaderMappingModel,
        kind: PayslipKind | str = PayslipKind.REGULAR,
        updated_by: str | None = None,
    ) -> HeaderMappingModel:
        """Validate and upsert the whole model as a single document."""
        kind = PayslipKind(kind)
        validate_mapping(model)
        stored = model.model_copy(deep=True)
        stored.updated_at = datetime.now(timezone.utc)
        stored.updated_by = updated_by or model.updated_by

        document = stored.to_document()
        document["PK"] = tables.company_pk(tenant_id)
        document["SK"] = tables.mapping_sk(kind)
        document["payslipKind"] = kind.value
        self._store.put_item(tables.MAPPINGS, document)
        self._invalidate(tenant_id, kind)
        logger.info(
            f"Saved {kind} mapping for tenant {tenant_id}: {stored.category_counts()}"
        )
        return stored

    def load(
        self, tenant_id: str, kind: PayslipKind | str = PayslipKind.REGULAR
    ) -> HeaderMappingModel:
        """Load and normalize the tenant's mapping; raises MappingNotFoundError."""
        kind = PayslipKind(kind)
        cached = self._cache_get(tenant_id, kind)
        if cached is not None:
            return HeaderMappingModel.model_validate(cached)

        document = self._store.get_item(
            tables.MAPPINGS, tables.company_pk(tenant_id), tables.mapping_sk(kind)
        )
        if document is None:
            raise MappingNotFoundError(tenant_id, kind)

        model = normalize_document(document)
        for column in find_swapped_columns(model):
            logger.warning(
                f"Tenant {tenant_id} {kind} mapping: column {column.id} "
                f"({column.header_name!r} / {column.item_name!r}) looks swapped"
            )
        self._cache_put(tenant_id, kind, model)
        return model

    def delete(self, tenant_id: str, kind: PayslipKind | str, confirm: str) -> None:
        """Explicit administrative deletion; ``confirm`` must repeat the tenant id."""
        kind = PayslipKind(kind)
        if confirm != tenant_id:
            raise IngestionError(
                "failed-precondition",
                "Deleting a mapping requires confirm to equal the tenant id",
            )
        self._store.delete_item(
            tables.MAPPINGS, tables.company_pk(tenant_id), tables.mapping_sk(kind)
        )
        self._invalidate(tenant_id, kind)
        logger.warning(f"Deleted {kind} mapping for tenant {tenant_id}")

    # ---- cache ----

    def _cache_get(self, tenant_id: str, kind: str) -> dict[str, Any] | None:
        if self._cache is None:
            return None
        try:
            raw = self._cache.get(_cache_key(tenant_id, kind))
        except CacheError as exc:
            logger.warning(f"Mapping cache read failed, using the store: {exc}")
            return None
        return json.loads(raw) if raw else None

    def _cache_put(self, tenant_id: str, kind: str, model: HeaderMappingModel) -> None:
        if self._cache is None:
            return
        try:
            self._cache.setex(
                _cache_key(tenant_id, kind), self._cache_ttl, json.dumps(model.to_document())
            )
        except CacheError as exc:
            logger.warning(f"Mapping cache write failed: {exc}")

    def _invalidate(self, tenant_id: str, kind: str) -> None:
        if self._cache is None:
            return
        try:
            self._cache.delete(_cache_key(tenant_id, kind))
        except CacheError as exc:
            logger.warning(f"Mapping cache invalidation failed: {exc}")


def mapping_data(model: HeaderMappingModel) -> dict[str, Any]:
    """Current-shape document with every category key present."""
    data = model.to_document()
    columns = data.setdefault("columnsByCategory", {})
    for category in Category:
        columns.setdefault(category.value, [])
    return data


def save_mapping(
    store: MappingStore,
    tenant_id: str,
    model: HeaderMappingModel,
    kind: PayslipKind | str = PayslipKind.REGULAR,
    updated_by: str | None = None,
) -> dict[str, Any]:
    """``{"success": True}`` or ``{"success": False, "error": ...}``."""
    try:
        store.save(tenant_id, model, kind=kind, updated_by=updated_by)
    except MappingValidationError as exc:
        return {"success": False, "error": str(exc), "problems": exc.problems}
    except PayslipFlowError as exc:
        logger.error(f"Saving mapping for tenant {tenant_id} failed: {exc}")
        return {"success": False, "error": str(exc)}
    return {"success": True}


def load_mapping(
    store: MappingStore, tenant_id: str, kind: PayslipKind | str = PayslipKind.REGULAR
) -> dict[str, Any]:
    """``{"success": True, "data": ...}``; a missing mapping yields ``data: None``."""
    try:
        model = store.load(tenant_id, kind)
    except MappingNotFoundError:
        return {"success": False, "data": None, "error": "not-found"}
    return {"success": True, "data": mapping_data(model)}
