"""Ingestion job status documents and their state machine."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from payslipflow.core.exceptions import InvalidTransitionError
from payslipflow.core.protocols import IDocumentStore
from payslipflow.models.job import ALLOWED_TRANSITIONS, IngestionJob, IngestionRequest, JobStatus
from payslipflow.persistence import tables

logger = logging.getLogger(__name__)

_TIMESTAMP_FIELD = {
    JobStatus.PROCESSING: "processingStartedAt",
    JobStatus.COMPLETED: "completedAt",
    JobStatus.ERROR: "errorAt",
}


class JobTracker:
    """Create, read and transition ``upload-jobs`` documents."""

    def __init__(self, store: IDocumentStore) -> None:
        self._store = store

    def create(self, request: IngestionRequest) -> IngestionJob:
        job = IngestionJob(
            upload_id=request.upload_id,
            company_id=request.company_id,
            file_url=request.file_url,
            payment_date=request.payment_date,
            payslip_kind=request.payslip_kind,
            created_at=datetime.now(timezone.utc),
        )
        document = job.to_document()
        document["PK"] = tables.upload_pk(job.upload_id)
        document["SK"] = tables.JOB_SK
        self._store.put_item(tables.JOBS, document)
        logger.info(f"Job {job.upload_id} created for company {job.company_id}")
        return job

    def get(self, upload_id: str) -> IngestionJob | None:
        document = self._store.get_item(tables.JOBS, tables.upload_pk(upload_id), tables.JOB_SK)
        return IngestionJob.model_validate(document) if document else None

    def transition(
        self, upload_id: str, target: JobStatus, **fields: Any
    ) -> IngestionJob:
        """Move the job to ``target``; extra camelCase fields are written alongside."""
        job = self.get(upload_id)
        if job is None:
            raise InvalidTransitionError(upload_id, "missing", target)
        if target not in ALLOWED_TRANSITIONS[job.status]:
            raise InvalidTransitionError(upload_id, job.status, target)
        now = datetime.now(timezone.utc).isoformat()
        update = {"status": target.value, _TIMESTAMP_FIELD[target]: now, **fields}
        self._store.update_item(tables.JOBS, tables.upload_pk(upload_id), tables.JOB_SK, update)
        logger.info(f"Job {upload_id}: {job.status} -> {target}")
        return job.model_copy(update={"status": target})

    def update(self, upload_id: str, **fields: Any) -> None:
        """Write progress counters without changing status."""
        if fields:
            self._store.update_item(tables.JOBS, tables.upload_pk(upload_id), tables.JOB_SK, fields)
