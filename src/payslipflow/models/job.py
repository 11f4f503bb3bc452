"""Ingestion job, request/result and log entry models."""

from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum

from payslipflow.models.base import CamelModel
from payslipflow.models.mapping import PayslipKind


class JobStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


# No retry state: a failed job is resubmitted as a new job.
ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING, JobStatus.ERROR}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.ERROR}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.ERROR: frozenset(),
}


class LogLevel(StrEnum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class IngestionRequest(CamelModel):
    """Ingestion entry point input. Required fields are checked by the service."""

    upload_id: str = ""
    file_url: str = ""
    company_id: str = ""
    payment_date: date | None = None
    register_new_employees: bool = False
    payslip_kind: PayslipKind = PayslipKind.REGULAR


class IngestionJob(CamelModel):
    """Status document for one upload batch."""

    upload_id: str
    company_id: str
    file_url: str
    payment_date: date | None = None
    payslip_kind: PayslipKind = PayslipKind.REGULAR
    status: JobStatus = JobStatus.PENDING
    row_count: int = 0
    processed_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    unresolved_user_count: int = 0
    employees_created: int = 0
    batch_count: int = 0
    error_message: str = ""
    created_at: datetime | None = None
    processing_started_at: datetime | None = None
    completed_at: datetime | None = None
    error_at: datetime | None = None


class IngestionResult(CamelModel):
    """Synchronous result returned to the caller of the entry point."""

    success: bool
    processed_count: int = 0
    message: str = ""
    skipped_count: int = 0
    error_count: int = 0
    unresolved_user_count: int = 0
    employees_created: int = 0


class LogEntry(CamelModel):
    """One entry of the queryable ingestion log."""

    upload_id: str
    sequence: int
    level: LogLevel = LogLevel.INFO
    message: str
    data: str | None = None
    timestamp: datetime
