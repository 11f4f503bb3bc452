"""Table base names and PK/SK key layout."""

from __future__ import annotations

MAPPINGS = "csv-mappings"
PAYSLIPS = "payslips"
EMPLOYEES = "employees"
JOBS = "upload-jobs"
LOGS = "ingestion-logs"

ALL_TABLES = (MAPPINGS, PAYSLIPS, EMPLOYEES, JOBS, LOGS)

JOB_SK = "STATUS"
LOG_PREFIX = "LOG#"
EMPLOYEE_PREFIX = "EMPLOYEE#"


def company_pk(company_id: str) -> str:
    return f"COMPANY#{company_id}"


def upload_pk(upload_id: str) -> str:
    return f"UPLOAD#{upload_id}"


def mapping_sk(kind: str) -> str:
    return f"MAPPING#{kind}"


def payslip_prefix(kind: str) -> str:
    return f"PAYSLIP#{kind}#"


def payslip_sk(kind: str, upload_id: str, employee_id: str) -> str:
    return f"{payslip_prefix(kind)}{upload_id}#{employee_id}"


def employee_sk(employee_code: str) -> str:
    return f"{EMPLOYEE_PREFIX}{employee_code}"


def log_sk(sequence: int) -> str:
    return f"{LOG_PREFIX}{sequence:06d}"
