"""Mapping builder: derives a HeaderMappingModel from two aligned text rows.

The header row carries the raw column codes of the HR export (``KY22_6``),
the label row the human names (``income tax``). The builder never guesses
income/deduction/attendance from a label: every non-main column lands in
``other`` and is classified later by an explicit edit.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from payslipflow.core.exceptions import MalformedInputError
from payslipflow.mapping.adapters import normalize_document
from payslipflow.models.mapping import (
    Category,
    HeaderMappingModel,
    MainFieldRef,
    MainFields,
    MappedColumn,
)

logger = logging.getLogger(__name__)

# Header codes the HR export uses for the main fields.
MAIN_FIELD_TOKENS: dict[str, frozenset[str]] = {
    "employee_code": frozenset({"KY03"}),
    "department_code": frozenset({"KY02"}),
    "identification_code": frozenset({"KY01"}),
}

# Case-insensitive label substrings, tried only when no header code matched.
MAIN_FIELD_MARKERS: dict[str, tuple[str, ...]] = {
    "employee_code": (
        "従業員コード", "従業員番号", "社員番号", "社員コード", "社員id",
        "employee code", "employee id", "employee no", "employee number",
    ),
    "department_code": (
        "部門コード", "部署コード", "department code", "dept code", "department id",
    ),
    "identification_code": ("識別コード", "identification code"),
}

_WHITESPACE = re.compile(r"\s+")


def detect_delimiter(*lines: str) -> str | None:
    """Tab if any line has one, else comma, else None (whitespace runs)."""
    if any("\t" in line for line in lines):
        return "\t"
    if any("," in line for line in lines):
        return ","
    return None


def split_row(line: str, delimiter: str | None) -> list[str]:
    """Split and trim. Tab/comma keep empty cells; whitespace runs cannot."""
    if delimiter is None:
        return [cell for cell in _WHITESPACE.split(line.strip()) if cell]
    return [cell.strip() for cell in line.split(delimiter)]


def _pad(cells: list[str], length: int) -> list[str]:
    return cells + [""] * (length - len(cells))


def _match_main_field(field: str, header_name: str, item_name: str, by_token: bool) -> bool:
    if by_token:
        return header_name in MAIN_FIELD_TOKENS[field]
    label = item_name.lower()
    return any(marker in label for marker in MAIN_FIELD_MARKERS[field])


def build_from_rows(header_row: str, label_row: str) -> HeaderMappingModel:
    """Build a mapping model from a header-code row and a semantic-label row."""
    lines = [line for line in (header_row or "", label_row or "") if line.strip()]
    if len(lines) < 2:
        raise MalformedInputError("Two non-empty rows are required: header codes and labels")

    delimiter = detect_delimiter(header_row, label_row)
    headers = split_row(header_row, delimiter)
    labels = split_row(label_row, delimiter)
    if not any(headers):
        raise MalformedInputError("Header row is empty after trimming")

    width = max(len(headers), len(labels))
    headers, labels = _pad(headers, width), _pad(labels, width)

    # Positions eligible for binding: non-empty, first occurrence of the code.
    positions: list[int] = []
    seen: set[str] = set()
    for i, (header_name, item_name) in enumerate(zip(headers, labels)):
        if not header_name:
            if item_name:
                logger.warning(f"Column {i}: label {item_name!r} has no header code; kept as placeholder")
            continue
        if header_name in seen:
            logger.warning(f"Column {i}: duplicate header code {header_name!r} ignored")
            continue
        seen.add(header_name)
        positions.append(i)

    main: dict[str, MainFieldRef] = {}
    claimed: set[int] = set()
    for by_token in (True, False):
        for field in MAIN_FIELD_TOKENS:
            if field in main:
                continue
            for i in positions:
                if i in claimed:
                    continue
                if _match_main_field(field, headers[i], labels[i], by_token):
                    main[field] = MainFieldRef(
                        header_name=headers[i], item_name=labels[i], column_index=i,
                    )
                    claimed.add(i)
                    break

    others = [
        MappedColumn(
            header_name=headers[i],
            item_name=labels[i],
            column_index=i,
            category=Category.OTHER,
            is_visible=bool(labels[i]),  # no label means explicitly unused
        )
        for i in positions
        if i not in claimed
    ]

    model = HeaderMappingModel(
        main_fields=MainFields(**main),
        columns_by_category={Category.OTHER: others},
        header_slots=headers,
    )
    logger.info(
        f"Built mapping: {width} slots, {len(others)} columns, main fields {sorted(main)}"
    )
    return model


def build_from_text(text: str) -> HeaderMappingModel:
    """Build from pasted text: the first two non-empty lines are used."""
    lines = [line for line in (text or "").splitlines() if line.strip()]
    if len(lines) < 2:
        raise MalformedInputError(
            f"Expected a header-code line and a label line, got {len(lines)} non-empty line(s)"
        )
    return build_from_rows(lines[0], lines[1])


def build_from_config(document: dict[str, Any]) -> HeaderMappingModel:
    """Build from a previously stored configuration of any supported shape."""
    return normalize_document(document)
