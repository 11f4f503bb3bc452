"""Header mapping model: raw CSV column codes bound to semantic payroll fields.

One model exists per tenant and payslip kind. Columns are grouped by
category; the three main fields (employee, department and identification
code) drive row-to-employee resolution and never appear as line items.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Iterator

from pydantic import Field, PrivateAttr, field_validator, model_validator

from payslipflow.core.exceptions import MappingValidationError
from payslipflow.models.base import CamelModel


class Category(StrEnum):
    ATTENDANCE = "attendance"
    INCOME = "income"
    DEDUCTION = "deduction"
    TOTAL = "total"
    OTHER = "other"


class PayslipKind(StrEnum):
    REGULAR = "regular"
    BONUS = "bonus"


MAIN_FIELD_NAMES = ("employee_code", "department_code", "identification_code")


def make_column_id(category: Category | str, column_index: int) -> str:
    """Stable id of a column within one mapping snapshot."""
    return f"{Category(category).value}_{column_index}"


def _empty_categories() -> dict[Category, list[MappedColumn]]:
    return {category: [] for category in Category}


class MainFieldRef(CamelModel):
    """Reference to the column holding one of the main fields."""

    header_name: str
    item_name: str = ""
    column_index: int = -1


class MainFields(CamelModel):
    employee_code: MainFieldRef | None = None
    department_code: MainFieldRef | None = None
    identification_code: MainFieldRef | None = None

    def header_names(self) -> set[str]:
        return {
            ref.header_name
            for ref in (self.employee_code, self.department_code, self.identification_code)
            if ref is not None and ref.header_name
        }


class MappedColumn(CamelModel):
    """One column's semantic binding."""

    header_name: str
    item_name: str = ""
    column_index: int = -1  # provenance only, never used to locate data
    category: Category = Category.OTHER
    is_visible: bool = True
    id: str = ""

    @model_validator(mode="after")
    def _derive_id(self) -> MappedColumn:
        if not self.id:
            self.id = make_column_id(self.category, self.column_index)
        return self


class HeaderMappingModel(CamelModel):
    """Full per-tenant header mapping configuration."""

    main_fields: MainFields = Field(default_factory=MainFields)
    columns_by_category: dict[Category, list[MappedColumn]] = Field(
        default_factory=_empty_categories
    )
    header_slots: list[str] = Field(default_factory=list)
    version: int = 3
    updated_at: datetime | None = None
    updated_by: str | None = None

    _index: dict[str, MappedColumn] | None = PrivateAttr(default=None)

    @field_validator("columns_by_category", mode="after")
    @classmethod
    def _complete_categories(
        cls, value: dict[Category, list[MappedColumn]]
    ) -> dict[Category, list[MappedColumn]]:
        out = _empty_categories()
        for category, columns in value.items():
            for column in columns:
                if column.category != category:
                    column = column.model_copy(
                        update={
                            "category": category,
                            "id": make_column_id(category, column.column_index),
                        }
                    )
                out[category].append(column)
        return out

    # ---- lookups ----

    def iter_columns(self) -> Iterator[MappedColumn]:
        for category in Category:
            yield from self.columns_by_category[category]

    def header_index(self) -> dict[str, MappedColumn]:
        """O(1) headerName lookup, built once per model instance."""
        if self._index is None:
            index: dict[str, MappedColumn] = {}
            for column in self.iter_columns():
                index.setdefault(column.header_name, column)
            self._index = index
        return self._index

    def find(self, header_name: str) -> MappedColumn | None:
        return self.header_index().get(header_name)

    def _require(self, header_name: str) -> MappedColumn:
        column = self.find(header_name)
        if column is None:
            raise MappingValidationError(f"Header {header_name!r} is not mapped")
        return column

    # ---- edits (explicit user classification) ----

    def reclassify(self, header_name: str, category: Category | str) -> MappedColumn:
        """Move a column to another category and re-derive its id."""
        column = self._require(header_name)
        target = Category(category)
        if column.category == target:
            return column
        self.columns_by_category[column.category] = [
            c for c in self.columns_by_category[column.category] if c is not column
        ]
        moved = column.model_copy(
            update={"category": target, "id": make_column_id(target, column.column_index)}
        )
        self.columns_by_category[target].append(moved)
        self._index = None
        return moved

    def set_visibility(self, header_name: str, visible: bool) -> None:
        self._require(header_name).is_visible = visible

    def rename_item(self, header_name: str, item_name: str) -> None:
        self._require(header_name).item_name = item_name.strip()

    def category_counts(self) -> dict[str, int]:
        return {category.value: len(cols) for category, cols in self.columns_by_category.items()}
