"""Employee directory backed by the ``employees`` table."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from payslipflow.core.protocols import IDocumentStore
from payslipflow.persistence import tables

logger = logging.getLogger(__name__)


def code_candidates(employee_code: str) -> list[str]:
    """Exact code, then without leading zeros, then zero-padded to 3 digits."""
    code = employee_code.strip()
    candidates = [code]
    for variant in (code.lstrip("0"), code.zfill(3)):
        if variant and variant not in candidates:
            candidates.append(variant)
    return candidates


class DocumentEmployeeDirectory:
    """IEmployeeDirectory over employee documents keyed by company and code."""

    def __init__(self, store: IDocumentStore) -> None:
        self._store = store

    def find_user_id(self, company_id: str, employee_code: str) -> str | None:
        pk = tables.company_pk(company_id)
        for code in code_candidates(employee_code):
            document = self._store.get_item(tables.EMPLOYEES, pk, tables.employee_sk(code))
            if document and document.get("userId"):
                if code != employee_code:
                    logger.debug(f"Employee {employee_code!r} matched as {code!r}")
                return str(document["userId"])
        return None

    def register(
        self,
        company_id: str,
        employee_code: str,
        name: str | None = None,
        department_code: str | None = None,
    ) -> str:
        """Create an employee with a fresh user id; an existing one is reused."""
        existing = self.find_user_id(company_id, employee_code)
        if existing:
            return existing
        user_id = uuid.uuid4().hex
        self._store.put_item(tables.EMPLOYEES, {
            "PK": tables.company_pk(company_id),
            "SK": tables.employee_sk(employee_code),
            "companyId": company_id,
            "employeeCode": employee_code,
            "userId": user_id,
            "name": name or "",
            "departmentCode": department_code,
            "isActive": True,
            "createdAt": datetime.now(timezone.utc).isoformat(),
        })
        logger.info(f"Registered employee {employee_code} in company {company_id}")
        return user_id
