"""Payslip record: one ingested CSV row materialized per employee and upload."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from pydantic import Field, computed_field

from payslipflow.models.base import CamelModel
from payslipflow.models.mapping import Category, PayslipKind


class PayslipItem(CamelModel):
    """A single line item, keyed by headerName in the record."""

    name: str  # itemName snapshot at ingestion time
    category: Category
    value: Decimal | str
    is_visible: bool = True

    @property
    def contributes(self) -> bool:
        """Only positive numeric values count towards totals."""
        return isinstance(self.value, Decimal) and self.value > 0


class PayslipRecord(CamelModel):
    """Materialized payslip. Totals are derived from items, never stored by hand."""

    company_id: str
    employee_id: str
    user_id: str | None = None
    department_code: str | None = None
    upload_id: str
    payslip_kind: PayslipKind = PayslipKind.REGULAR
    payment_date: date | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    items: dict[str, PayslipItem] = Field(default_factory=dict)

    def _sum(self, category: Category) -> Decimal:
        return sum(
            (item.value for item in self.items.values()
             if item.category == category and item.contributes),
            Decimal("0"),
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_income(self) -> Decimal:
        return self._sum(Category.INCOME)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_deduction(self) -> Decimal:
        return self._sum(Category.DEDUCTION)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def net_amount(self) -> Decimal:
        return self.total_income - self.total_deduction

    def to_document(self) -> dict[str, Any]:
        """Store amounts as Decimal so numeric and string values stay distinct."""
        doc = self.model_dump(
            mode="json",
            by_alias=True,
            exclude={"items", "total_income", "total_deduction", "net_amount"},
        )
        doc["items"] = {
            header: {
                "name": item.name,
                "category": item.category.value,
                "value": item.value,
                "isVisible": item.is_visible,
            }
            for header, item in self.items.items()
        }
        doc["totalIncome"] = self.total_income
        doc["totalDeduction"] = self.total_deduction
        doc["netAmount"] = self.net_amount
        return doc
