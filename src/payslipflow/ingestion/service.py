"""Ingestion entry point: validates the request, drives the job state machine
and maps failures to machine-readable error kinds.

Input errors (missing parameters, undecodable file, no data rows) are raised
before the job reaches ``processing``. Transport failures after that point
leave earlier committed batches in place and move the job to ``error``.
"""

from __future__ import annotations

import logging

from payslipflow.core.config import AppSettings
from payslipflow.core.exceptions import (
    DocumentStoreError,
    FileFetchError,
    IngestionError,
    MappingNotFoundError,
    MappingValidationError,
)
from payslipflow.core.protocols import IDocumentStore, IEmployeeDirectory, IFileFetcher
from payslipflow.ingestion.csv_reader import CsvTable, decode
from payslipflow.ingestion.jobs import JobTracker
from payslipflow.ingestion.log import IngestionLog
from payslipflow.ingestion.pipeline import IngestionPipeline, PipelineStats
from payslipflow.mapping.store import MappingStore
from payslipflow.mapping.validation import find_swapped_columns
from payslipflow.models.job import IngestionRequest, IngestionResult, JobStatus
from payslipflow.models.mapping import HeaderMappingModel

logger = logging.getLogger(__name__)


class IngestionService:
    """Runs one upload end to end and reports an IngestionResult."""

    def __init__(
        self,
        *,
        settings: AppSettings,
        store: IDocumentStore,
        mappings: MappingStore,
        fetcher: IFileFetcher,
        directory: IEmployeeDirectory,
        log: IngestionLog | None = None,
    ) -> None:
        self._settings = settings
        self._mappings = mappings
        self._fetcher = fetcher
        self._jobs = JobTracker(store)
        self._log = log or IngestionLog(store, data_limit=settings.ingest.log_data_limit)
        self._pipeline = IngestionPipeline(
            store=store,
            directory=directory,
            log=self._log,
            batch_size=settings.ingest.batch_size,
            progress_every=settings.ingest.progress_every,
        )

    @property
    def jobs(self) -> JobTracker:
        return self._jobs

    @property
    def log(self) -> IngestionLog:
        return self._log

    def ingest(self, request: IngestionRequest) -> IngestionResult:
        """Run the upload; raises IngestionError with a kind on any fatal failure."""
        missing = [
            name for name in ("upload_id", "file_url", "company_id")
            if not getattr(request, name).strip()
        ]
        if missing:
            raise IngestionError("invalid-argument", f"Missing required parameters: {', '.join(missing)}")

        try:
            return self._run(request)
        finally:
            self._log.release(request.upload_id)

    def _run(self, request: IngestionRequest) -> IngestionResult:
        upload_id = request.upload_id
        try:
            if self._jobs.get(upload_id) is not None:
                raise IngestionError(
                    "failed-precondition",
                    f"Upload {upload_id} already has a job; resubmit under a new upload id",
                )
            self._jobs.create(request)
        except DocumentStoreError as exc:
            raise IngestionError("internal", f"Could not create job: {exc}") from exc
        self._log.info(upload_id, "Ingestion started", request.to_document())

        try:
            mapping = self._load_mapping(request)
            table = self._read_file(request)
            self._check_columns(request, mapping, table)
        except IngestionError as exc:
            self._fail(upload_id, exc)
            raise

        try:
            self._jobs.transition(upload_id, JobStatus.PROCESSING)
        except DocumentStoreError as exc:
            error = IngestionError("internal", f"Could not start processing: {exc}")
            self._fail(upload_id, error)
            raise error from exc
        self._log.info(upload_id, "Processing rows", {"headers": len(table.headers)})
        stats = PipelineStats()
        try:
            self._pipeline.run(
                request, mapping, table,
                on_progress=lambda s: self._jobs.update(upload_id, **s.as_fields()),
                stats=stats,
            )
        except DocumentStoreError as exc:
            error = IngestionError(
                "internal",
                f"Store commit failed after {stats.processed_count} records: {exc}",
            )
            self._fail(upload_id, error, stats)
            raise error from exc

        if stats.processed_count == 0:
            error = IngestionError(
                "invalid-argument",
                f"No valid rows: {stats.skipped_count} skipped, {stats.error_count} errors",
            )
            self._fail(upload_id, error, stats)
            raise error

        message = self._summary(stats)
        try:
            self._jobs.transition(upload_id, JobStatus.COMPLETED, **stats.as_fields())
        except DocumentStoreError as exc:
            error = IngestionError(
                "internal",
                f"Could not record completion after {stats.processed_count} records: {exc}",
            )
            self._fail(upload_id, error, stats)
            raise error from exc
        self._log.info(upload_id, message, stats.as_fields())
        return IngestionResult(
            success=True,
            processed_count=stats.processed_count,
            message=message,
            skipped_count=stats.skipped_count,
            error_count=stats.error_count,
            unresolved_user_count=stats.unresolved_user_count,
            employees_created=stats.employees_created,
        )

    # ---- steps ----

    def _load_mapping(self, request: IngestionRequest) -> HeaderMappingModel:
        try:
            mapping = self._mappings.load(request.company_id, request.payslip_kind)
        except MappingNotFoundError as exc:
            raise IngestionError("failed-precondition", str(exc)) from exc
        except MappingValidationError as exc:
            raise IngestionError("failed-precondition", f"Stored mapping is unreadable: {exc}") from exc
        except DocumentStoreError as exc:
            raise IngestionError("internal", f"Could not load mapping: {exc}") from exc
        if mapping.main_fields.employee_code is None:
            raise IngestionError("failed-precondition", "Mapping has no employee code column")
        for column in find_swapped_columns(mapping):
            self._log.warning(
                request.upload_id,
                f"Mapping column {column.id} looks swapped: headerName "
                f"{column.header_name!r}, itemName {column.item_name!r}",
            )
        return mapping

    def _read_file(self, request: IngestionRequest) -> CsvTable:
        try:
            data = self._fetcher.fetch(request.file_url)
        except FileFetchError as exc:
            raise IngestionError("not-found", f"File download failed: {exc}") from exc
        self._log.info(request.upload_id, f"Downloaded {len(data)} bytes")
        table = CsvTable(decode(data, self._settings.ingest.encodings))
        for header in table.duplicate_headers():
            self._log.warning(request.upload_id, f"Duplicate CSV header {header!r}; first column used")
        if not table.has_data_rows():
            raise IngestionError("invalid-argument", "CSV file has no data rows")
        return table

    def _check_columns(self, request: IngestionRequest, mapping: HeaderMappingModel, table: CsvTable) -> None:
        employee_header = mapping.main_fields.employee_code.header_name
        if employee_header not in table.positions:
            raise IngestionError(
                "failed-precondition", f"Employee code column {employee_header!r} is not in the file"
            )
        resolvable = [c.header_name for c in mapping.iter_columns() if c.header_name in table.positions]
        if not resolvable:
            raise IngestionError("failed-precondition", "No mapped column is present in the file")
        unmapped = [
            h for h in table.positions
            if mapping.find(h) is None and h not in mapping.main_fields.header_names()
        ]
        self._log.info(
            request.upload_id,
            f"{len(resolvable)} mapped columns found, {len(unmapped)} file columns unmapped",
            {"unmapped": unmapped},
        )

    def _fail(self, upload_id: str, error: IngestionError, stats: PipelineStats | None = None) -> None:
        self._log.error(upload_id, error.message, {"kind": error.kind})
        fields = stats.as_fields() if stats else {}
        try:
            self._jobs.transition(upload_id, JobStatus.ERROR, errorMessage=error.message, **fields)
        except DocumentStoreError as exc:
            logger.error(f"Job {upload_id}: could not record error status: {exc}")

    @staticmethod
    def _summary(stats: PipelineStats) -> str:
        parts = [f"{stats.processed_count} payslips created"]
        if stats.skipped_count:
            parts.append(f"{stats.skipped_count} rows skipped")
        if stats.error_count:
            parts.append(f"{stats.error_count} rows failed")
        if stats.unresolved_user_count:
            parts.append(f"{stats.unresolved_user_count} without a user")
        if stats.employees_created:
            parts.append(f"{stats.employees_created} employees registered")
        return ", ".join(parts)
