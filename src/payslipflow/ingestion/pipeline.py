"""Per-row ingestion: CSV rows through a header mapping into payslip records.

Values are located by header name only, never by position, so the same
mapping serves uploads whose columns were reordered, added or dropped.
Records are committed in atomic batches no larger than the store allows.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable

from payslipflow.core.exceptions import PayslipFlowError
from payslipflow.core.protocols import IDocumentStore, IEmployeeDirectory
from payslipflow.ingestion.coercion import coerce_value, is_string_field
from payslipflow.ingestion.csv_reader import CsvTable
from payslipflow.ingestion.log import IngestionLog
from payslipflow.models.job import IngestionRequest
from payslipflow.models.mapping import HeaderMappingModel
from payslipflow.models.payslip import PayslipItem, PayslipRecord
from payslipflow.persistence import tables

logger = logging.getLogger(__name__)

# Labels of the employee-name column used when registering new employees.
NAME_MARKERS = ("従業員氏名", "氏名", "名前", "employee name", "name")


@dataclass
class PipelineStats:
    row_count: int = 0
    processed_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    unresolved_user_count: int = 0
    employees_created: int = 0
    batch_count: int = 0

    def as_fields(self) -> dict[str, int]:
        """Counters as camelCase job document fields."""
        out = {}
        for key, value in asdict(self).items():
            head, *rest = key.split("_")
            out[head + "".join(part.title() for part in rest)] = value
        return out


def name_header(mapping: HeaderMappingModel) -> str | None:
    """Header of the employee-name column, if the mapping has one."""
    for marker in NAME_MARKERS:
        for column in mapping.iter_columns():
            if marker in column.item_name.lower():
                return column.header_name
    return None


class IngestionPipeline:
    """Transforms one upload's rows and commits payslip records in batches."""

    def __init__(
        self,
        *,
        store: IDocumentStore,
        directory: IEmployeeDirectory,
        log: IngestionLog,
        batch_size: int = 450,
        progress_every: int = 100,
    ) -> None:
        self._store = store
        self._directory = directory
        self._log = log
        self._batch_size = max(1, min(batch_size, store.max_batch_size))
        self._progress_every = progress_every

    def run(
        self,
        request: IngestionRequest,
        mapping: HeaderMappingModel,
        table: CsvTable,
        on_progress: Callable[[PipelineStats], None] | None = None,
        stats: PipelineStats | None = None,
    ) -> PipelineStats:
        """Process every data row; store failures propagate, row failures are counted."""
        upload_id = request.upload_id
        stats = stats if stats is not None else PipelineStats()
        employee_header = mapping.main_fields.employee_code.header_name
        department_ref = mapping.main_fields.department_code
        department_header = department_ref.header_name if department_ref else None
        employee_name_header = name_header(mapping) if request.register_new_employees else None

        user_ids: dict[str, str | None] = {}
        seen_codes: set[str] = set()
        pending: list[dict[str, Any]] = []

        for line_number, row in table.rows():
            stats.row_count += 1
            employee_code = (row.get(employee_header) or "").strip()
            if not employee_code:
                stats.skipped_count += 1
                self._log.warning(upload_id, f"Line {line_number}: no employee code, row skipped",
                                  {"line": line_number, "header": employee_header})
                continue
            if employee_code in seen_codes:
                stats.error_count += 1
                self._log.error(upload_id, f"Line {line_number}: employee {employee_code} appears twice",
                                {"line": line_number, "employeeCode": employee_code})
                continue

            try:
                record = self._build_record(request, mapping, row, employee_code, department_header, line_number)
            except (PayslipFlowError, ValueError, KeyError, TypeError) as exc:
                stats.error_count += 1
                self._log.error(upload_id, f"Line {line_number}: {exc}",
                                {"line": line_number, "employeeCode": employee_code})
                continue
            seen_codes.add(employee_code)

            if employee_code not in user_ids:
                user_ids[employee_code] = self._resolve_user(
                    request, employee_code, row, employee_name_header, record.department_code, stats
                )
            record.user_id = user_ids[employee_code]
            if record.user_id is None:
                stats.unresolved_user_count += 1
                self._log.warning(upload_id, f"Line {line_number}: no user for employee {employee_code}",
                                  {"employeeCode": employee_code})

            document = record.to_document()
            document["PK"] = tables.company_pk(request.company_id)
            document["SK"] = tables.payslip_sk(request.payslip_kind, upload_id, employee_code)
            pending.append(document)
            if len(pending) >= self._batch_size:
                self._commit(upload_id, pending, stats)
                pending = []

            if on_progress and stats.row_count % self._progress_every == 0:
                on_progress(stats)

        if pending:
            self._commit(upload_id, pending, stats)
        logger.info(
            f"Upload {upload_id}: {stats.row_count} rows, {stats.processed_count} records "
            f"in {stats.batch_count} batches"
        )
        return stats

    def _build_record(
        self,
        request: IngestionRequest,
        mapping: HeaderMappingModel,
        row: dict[str, str],
        employee_code: str,
        department_header: str | None,
        line_number: int,
    ) -> PayslipRecord:
        department_code = (row.get(department_header) or "").strip() if department_header else ""
        items: dict[str, PayslipItem] = {}
        for column in mapping.iter_columns():
            if column.header_name not in row:
                continue
            raw = row[column.header_name]
            value = coerce_value(raw, column.item_name, column.header_name)
            if isinstance(value, str) and value and not is_string_field(column.item_name, column.header_name):
                self._log.warning(
                    request.upload_id,
                    f"Line {line_number}: {column.header_name} ({column.item_name}) "
                    f"is not numeric, kept as text",
                    {"line": line_number, "header": column.header_name, "value": value},
                )
            items[column.header_name] = PayslipItem(
                name=column.item_name,
                category=column.category,
                value=value,
                is_visible=column.is_visible,
            )
        return PayslipRecord(
            company_id=request.company_id,
            employee_id=employee_code,
            department_code=department_code or None,
            upload_id=request.upload_id,
            payslip_kind=request.payslip_kind,
            payment_date=request.payment_date,
            items=items,
        )

    def _resolve_user(
        self,
        request: IngestionRequest,
        employee_code: str,
        row: dict[str, str],
        employee_name_header: str | None,
        department_code: str | None,
        stats: PipelineStats,
    ) -> str | None:
        user_id = self._directory.find_user_id(request.company_id, employee_code)
        if user_id is not None or not request.register_new_employees:
            return user_id
        name = (row.get(employee_name_header) or "").strip() if employee_name_header else None
        user_id = self._directory.register(
            request.company_id, employee_code, name=name or None, department_code=department_code
        )
        stats.employees_created += 1
        self._log.info(request.upload_id, f"Registered new employee {employee_code}",
                       {"employeeCode": employee_code, "name": name})
        return user_id

    def _commit(self, upload_id: str, documents: list[dict[str, Any]], stats: PipelineStats) -> None:
        self._store.put_batch(tables.PAYSLIPS, documents)
        stats.batch_count += 1
        stats.processed_count += len(documents)
        self._log.info(
            upload_id,
            f"Committed batch {stats.batch_count} ({len(documents)} records, "
            f"{stats.processed_count} total)",
        )
