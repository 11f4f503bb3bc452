"""Backfill of ``userId`` on payslips created before their owner existed."""

from __future__ import annotations

import logging

from payslipflow.core.protocols import IDocumentStore, IEmployeeDirectory
from payslipflow.models.mapping import PayslipKind
from payslipflow.persistence import tables

logger = logging.getLogger(__name__)


def backfill_user_ids(
    store: IDocumentStore,
    directory: IEmployeeDirectory,
    company_id: str,
    kind: PayslipKind | str = PayslipKind.REGULAR,
) -> int:
    """Set ``userId`` where it is null and the directory now knows the employee.

    Only the ``userId`` field is written, in batches of the store's limit.
    Returns the number of payslips fixed; a second run returns 0.
    """
    kind = PayslipKind(kind)
    pk = tables.company_pk(company_id)
    payslips = store.query(tables.PAYSLIPS, pk, tables.payslip_prefix(kind))

    resolved: dict[str, str | None] = {}
    updates: list[tuple[str, str, dict[str, str]]] = []
    for payslip in payslips:
        employee_id = payslip.get("employeeId")
        if payslip.get("userId") or not employee_id:
            continue
        if employee_id not in resolved:
            resolved[employee_id] = directory.find_user_id(company_id, str(employee_id))
        user_id = resolved[employee_id]
        if user_id:
            updates.append((pk, payslip["SK"], {"userId": user_id}))

    for start in range(0, len(updates), store.max_batch_size):
        store.update_batch(tables.PAYSLIPS, updates[start:start + store.max_batch_size])

    unresolved = sum(1 for user_id in resolved.values() if not user_id)
    logger.info(
        f"Backfilled userId on {len(updates)} {kind} payslips for company {company_id}"
        f" ({unresolved} employees still without a user)"
    )
    return len(updates)
