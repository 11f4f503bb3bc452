"""Versioned adapters from stored mapping documents to HeaderMappingModel.

Several historical document shapes are still on disk. Each adapter is a pure
function for one shape; ``normalize_document`` tries them in a fixed order and
uses the first structural match. Results of two adapters are never merged.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from pydantic import ValidationError

from payslipflow.core.exceptions import MappingValidationError
from payslipflow.models.mapping import (
    Category,
    HeaderMappingModel,
    MainFieldRef,
    MainFields,
    MappedColumn,
)

logger = logging.getLogger(__name__)

# Flat category arrays, most specific first: the first list that names a
# header decides its category (old builders wrote items to several lists).
LEGACY_ARRAYS: tuple[tuple[str, Category], ...] = (
    ("incomeItems", Category.INCOME),
    ("deductionItems", Category.DEDUCTION),
    ("attendanceItems", Category.ATTENDANCE),
    ("totalItems", Category.TOTAL),
    ("summaryItems", Category.TOTAL),
    ("itemCodeItems", Category.OTHER),
    ("kyItems", Category.OTHER),
)

_MAIN_FIELD_KEYS = (
    ("employee_code", "employeeCode"),
    ("department_code", "departmentCode"),
    ("identification_code", "identificationCode"),
)


def _as_int(value: Any, default: int = -1) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_category(value: Any, default: Category = Category.OTHER) -> Category:
    try:
        return Category(str(value).strip().lower())
    except ValueError:
        return default


def _main_fields(doc: dict[str, Any]) -> MainFields:
    """Read ``mainFields``; fill gaps from a legacy ``employeeMapping``."""
    raw = doc.get("mainFields") or {}
    refs: dict[str, MainFieldRef] = {}
    for field, key in _MAIN_FIELD_KEYS:
        ref = raw.get(key)
        if isinstance(ref, dict) and str(ref.get("headerName") or "").strip():
            refs[field] = MainFieldRef(
                header_name=str(ref["headerName"]).strip(),
                item_name=str(ref.get("itemName") or "").strip(),
                column_index=_as_int(ref.get("columnIndex")),
            )

    legacy = doc.get("employeeMapping") or {}
    if "employee_code" not in refs and legacy.get("employeeIdColumn"):
        refs["employee_code"] = MainFieldRef(header_name=str(legacy["employeeIdColumn"]).strip())
    if "department_code" not in refs and legacy.get("departmentCodeColumn"):
        refs["department_code"] = MainFieldRef(
            header_name=str(legacy["departmentCodeColumn"]).strip()
        )
    return MainFields(**refs)


def _audit(doc: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if isinstance(doc.get("updatedAt"), str):
        out["updated_at"] = doc["updatedAt"]
    if isinstance(doc.get("updatedBy"), str):
        out["updated_by"] = doc["updatedBy"]
    return out


def _header_slots(doc: dict[str, Any]) -> list[str]:
    for key in ("headerSlots", "parsedHeaders"):
        if isinstance(doc.get(key), list):
            return [str(h or "").strip() for h in doc[key]]
    items = [i for i in doc.get("itemCodeItems") or [] if isinstance(i, dict)]
    items.sort(key=lambda i: _as_int(i.get("columnIndex"), 0))
    return [str(i.get("headerName") or "").strip() for i in items]


# ---------------------------------------------------------------------------
# Shape matchers and adapters
# ---------------------------------------------------------------------------

def _is_current(doc: dict[str, Any]) -> bool:
    return isinstance(doc.get("columnsByCategory"), dict)


def from_current(doc: dict[str, Any]) -> HeaderMappingModel:
    columns: dict[str, list[dict[str, Any]]] = {}
    for key, items in doc["columnsByCategory"].items():
        category = _as_category(key)
        columns.setdefault(category.value, []).extend(
            {**item, "category": category.value, "id": ""}
            for item in items or [] if isinstance(item, dict)
        )
    model = HeaderMappingModel.model_validate({**doc, "columnsByCategory": columns})
    model.main_fields = _main_fields(doc)
    return model


def _is_wrapped(doc: dict[str, Any]) -> bool:
    return isinstance(doc.get("csvMapping"), dict)


def from_wrapped(doc: dict[str, Any]) -> HeaderMappingModel:
    return from_categorized_arrays(doc["csvMapping"])


def _is_categorized(doc: dict[str, Any]) -> bool:
    return any(isinstance(doc.get(key), list) and doc[key] for key, _ in LEGACY_ARRAYS)


def from_categorized_arrays(doc: dict[str, Any]) -> HeaderMappingModel:
    main_fields = _main_fields(doc)
    reserved = main_fields.header_names()
    columns: dict[Category, list[MappedColumn]] = {c: [] for c in Category}
    seen: set[str] = set()
    for key, category in LEGACY_ARRAYS:
        if key == "summaryItems" and doc.get("totalItems"):
            continue
        for raw in doc.get(key) or []:
            if not isinstance(raw, dict):
                continue
            header_name = str(raw.get("headerName") or "").strip()
            if not header_name or header_name in reserved or header_name in seen:
                continue
            if category == Category.OTHER:
                target = _as_category(raw.get("category") or raw.get("type"))
            else:
                target = category
            seen.add(header_name)
            columns[target].append(MappedColumn(
                header_name=header_name,
                item_name=str(raw.get("itemName") or "").strip(),
                column_index=_as_int(raw.get("columnIndex")),
                category=target,
                is_visible=raw.get("isVisible") is not False,
            ))
    return HeaderMappingModel(
        main_fields=main_fields,
        columns_by_category=columns,
        header_slots=_header_slots(doc),
        **_audit(doc),
    )


def _is_simple_mapping(doc: dict[str, Any]) -> bool:
    return isinstance(doc.get("simpleMapping"), dict) and bool(doc["simpleMapping"])


def from_simple_mapping(doc: dict[str, Any]) -> HeaderMappingModel:
    labels: dict[str, Any] = doc["simpleMapping"]
    categories: dict[str, Any] = doc.get("itemCategories") or {}
    visibility: dict[str, Any] = doc.get("visibilitySettings") or {}
    main_fields = _main_fields(doc)
    reserved = main_fields.header_names()

    headers = list(labels) + [h for h in categories if h not in labels]
    columns: dict[Category, list[MappedColumn]] = {c: [] for c in Category}
    for index, header in enumerate(headers):
        header_name = header.strip()
        if not header_name or header_name in reserved:
            continue
        category = _as_category(categories.get(header))
        columns[category].append(MappedColumn(
            header_name=header_name,
            item_name=str(labels.get(header) or "").strip(),
            column_index=index,
            category=category,
            is_visible=visibility.get(header) is not False,
        ))
    return HeaderMappingModel(
        main_fields=main_fields,
        columns_by_category=columns,
        header_slots=[h.strip() for h in headers],
        **_audit(doc),
    )


def _is_bare_legacy(doc: dict[str, Any]) -> bool:
    keys = {key for key, _ in LEGACY_ARRAYS} | {"mainFields", "employeeMapping", "simpleMapping"}
    return any(key in doc for key in keys)


def from_bare_legacy(doc: dict[str, Any]) -> HeaderMappingModel:
    """Legacy document with no columns at all: only main fields survive."""
    return HeaderMappingModel(main_fields=_main_fields(doc), header_slots=_header_slots(doc), **_audit(doc))


ADAPTERS: tuple[tuple[str, Callable[[dict], bool], Callable[[dict], HeaderMappingModel]], ...] = (
    ("current", _is_current, from_current),
    ("wrapped", _is_wrapped, from_wrapped),
    ("categorized_arrays", _is_categorized, from_categorized_arrays),
    ("simple_mapping", _is_simple_mapping, from_simple_mapping),
    ("bare_legacy", _is_bare_legacy, from_bare_legacy),
)


def detect_shape(doc: dict[str, Any]) -> str:
    for name, matches, _ in ADAPTERS:
        if matches(doc):
            return name
    raise MappingValidationError("Unrecognized mapping document shape")


def normalize_document(doc: dict[str, Any]) -> HeaderMappingModel:
    """Normalize any supported stored shape into the current model."""
    for name, matches, adapt in ADAPTERS:
        if matches(doc):
            logger.debug(f"Mapping document matched adapter {name!r}")
            try:
                return adapt(doc)
            except ValidationError as exc:
                raise MappingValidationError(
                    f"Mapping document ({name}) is malformed",
                    [f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors()],
                ) from exc
    raise MappingValidationError("Unrecognized mapping document shape")
