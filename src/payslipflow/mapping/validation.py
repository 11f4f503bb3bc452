"""Structural checks on a mapping model before it is persisted or used."""

from __future__ import annotations

import re
from collections import Counter

from payslipflow.core.exceptions import MappingValidationError
from payslipflow.models.mapping import HeaderMappingModel, MappedColumn

# Raw HR export codes look like KY22_6, KY03, ABC123.
MACHINE_CODE = re.compile(r"^[A-Za-z]{1,5}[0-9]{1,3}(_[0-9]+)?$")


def is_machine_code(value: str) -> bool:
    return bool(MACHINE_CODE.match(value or ""))


def find_duplicate_headers(model: HeaderMappingModel) -> list[str]:
    """Header names bound more than once across categories and main fields."""
    counts = Counter(column.header_name for column in model.iter_columns())
    counts.update(model.main_fields.header_names())
    return sorted(name for name, count in counts.items() if count > 1)


def find_swapped_columns(model: HeaderMappingModel) -> list[MappedColumn]:
    """Columns whose label looks like the code and whose code looks like a label."""
    return [
        column
        for column in model.iter_columns()
        if column.item_name
        and is_machine_code(column.item_name)
        and not is_machine_code(column.header_name)
    ]


def validate_mapping(model: HeaderMappingModel) -> None:
    """Raise MappingValidationError if the model must not be stored."""
    problems: list[str] = []
    for name in find_duplicate_headers(model):
        problems.append(f"header {name!r} is mapped more than once")
    for column in find_swapped_columns(model):
        problems.append(
            f"column {column.id}: headerName {column.header_name!r} and itemName "
            f"{column.item_name!r} look swapped"
        )
    for column in model.iter_columns():
        if not column.header_name:
            problems.append(f"column {column.id} has an empty headerName")
        elif not column.item_name and column.is_visible:
            problems.append(f"column {column.header_name!r} has no itemName but is visible")
    if problems:
        raise MappingValidationError(
            f"Mapping failed validation with {len(problems)} problem(s)", problems
        )
