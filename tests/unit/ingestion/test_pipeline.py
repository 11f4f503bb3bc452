"""Row-level ingestion: header-name lookup, totals, batching and row failures."""

from __future__ import annotations

from decimal import Decimal

from payslipflow.ingestion.csv_reader import CsvTable
from payslipflow.ingestion.log import IngestionLog
from payslipflow.ingestion.pipeline import IngestionPipeline, PipelineStats, name_header
from payslipflow.mapping.builder import build_from_rows
from payslipflow.models.job import IngestionRequest
from payslipflow.models.mapping import Category
from payslipflow.persistence import tables
from tests.fakes import MemoryDirectory, MemoryDocumentStore

COMPANY = "C1"

HEADER = "KY03,KY02,KY05,KY11,KY12,KY22_6,KY51"


def payslips(store, kind="regular"):
    return store.query(tables.PAYSLIPS, tables.company_pk(COMPANY), tables.payslip_prefix(kind))


def payslip_batches(store):
    return [size for table, size in store.batch_log if table == tables.PAYSLIPS]


class TestSingleRowUploads:
    def test_deduction_only_row(self, mappings, store, make_service, request_for):
        model = build_from_rows("KY03\tKY22_6", "employee code\tincome tax")
        model.reclassify("KY22_6", Category.DEDUCTION)
        mappings.save(COMPANY, model)

        result = make_service().ingest(request_for("KY03,KY22_6\nE001,1200\n"))

        assert result.success and result.processed_count == 1
        [doc] = payslips(store)
        assert doc["employeeId"] == "E001"
        assert doc["items"]["KY22_6"]["value"] == Decimal("1200")
        assert doc["items"]["KY22_6"]["category"] == "deduction"
        assert doc["totalDeduction"] == 1200
        assert doc["totalIncome"] == 0
        assert doc["netAmount"] == -1200

    def test_empty_employee_code_skipped(self, payroll_mapping, store, make_service, request_for):
        csv_text = f"{HEADER}\nE001,D1,山田,1000,0,0,20\n,D1,nobody,5000,0,0,20\n"
        result = make_service().ingest(request_for(csv_text))
        assert result.processed_count == 1
        assert result.skipped_count == 1
        assert [doc["employeeId"] for doc in payslips(store)] == ["E001"]


class TestHeaderNameLookup:
    def test_column_order_does_not_matter(self, payroll_mapping, store, make_service, request_for):
        service = make_service()
        service.ingest(request_for(f"{HEADER}\nE001,D1,山田,300000,10000,8000,21\n", upload_id="U1"))
        service.ingest(request_for(
            "EXTRA,KY51,KY22_6,KY12,KY11,KY05,KY02,KY03\nx,21,8000,10000,300000,山田,D1,E001\n",
            upload_id="U2",
        ))
        first, second = payslips(store)
        assert first["uploadId"] == "U1" and second["uploadId"] == "U2"
        assert first["items"] == second["items"]
        assert "EXTRA" not in second["items"]

    def test_missing_mapped_column_is_omitted(self, payroll_mapping, store, make_service, request_for):
        make_service().ingest(request_for("KY03,KY11\nE001,1000\n"))
        [doc] = payslips(store)
        assert set(doc["items"]) == {"KY11"}
        assert doc["departmentCode"] is None

    def test_main_fields_are_not_items(self, payroll_mapping, store, make_service, request_for):
        make_service().ingest(request_for(f"{HEADER}\n0042,D7,山田,1,1,1,1\n"))
        [doc] = payslips(store)
        assert doc["employeeId"] == "0042"
        assert doc["departmentCode"] == "D7"
        assert "KY03" not in doc["items"] and "KY02" not in doc["items"]
        assert doc["items"]["KY05"]["value"] == "山田"


class TestTotals:
    def test_only_positive_numbers_count(self, payroll_mapping, store, make_service, request_for):
        csv_text = f"{HEADER}\nE001,D1,山田,\"300,000\",-500,N/A,20\n"
        make_service().ingest(request_for(csv_text))
        [doc] = payslips(store)
        assert doc["totalIncome"] == Decimal("300000")
        assert doc["totalDeduction"] == 0
        assert doc["netAmount"] == doc["totalIncome"] - doc["totalDeduction"]
        assert doc["items"]["KY12"]["value"] == Decimal("-500")
        assert doc["items"]["KY22_6"]["value"] == "N/A"

    def test_attendance_not_in_totals(self, payroll_mapping, store, make_service, request_for):
        make_service().ingest(request_for(f"{HEADER}\nE001,D1,山田,100,0,40,21\n"))
        [doc] = payslips(store)
        assert doc["items"]["KY51"]["category"] == "attendance"
        assert doc["totalIncome"] == 100
        assert doc["netAmount"] == 60

    def test_non_numeric_value_warns(self, payroll_mapping, make_service, request_for):
        service = make_service()
        service.ingest(request_for(f"{HEADER}\nE001,D1,山田,100,0,N/A,21\n"))
        warnings = [e.message for e in service.log.entries("U1", "warning")]
        assert any("KY22_6" in message and "not numeric" in message for message in warnings)

    def test_payment_date_stamped(self, payroll_mapping, store, make_service, request_for):
        make_service().ingest(request_for(f"{HEADER}\nE001,D1,山田,1,1,1,1\n"))
        [doc] = payslips(store)
        assert doc["paymentDate"] == "2024-06-25"
        assert doc["payslipKind"] == "regular"
        assert doc["userId"] == "user-1"


class TestBatching:
    def _rows(self, count):
        lines = [HEADER] + [f"E{i:03d},D1,name,{i},0,0,20" for i in range(1, count + 1)]
        return "\n".join(lines) + "\n"

    def test_commits_in_batches(self, payroll_mapping, store, make_service, request_for):
        result = make_service(batch_size=2).ingest(request_for(self._rows(5)))
        assert result.processed_count == 5
        assert payslip_batches(store) == [2, 2, 1]

    def test_batch_size_clamped_to_store_limit(self, payroll_mapping):
        store = MemoryDocumentStore(max_batch_size=3)
        pipeline = IngestionPipeline(
            store=store, directory=MemoryDirectory(), log=IngestionLog(store), batch_size=450,
        )
        request = IngestionRequest(upload_id="U1", file_url="x", company_id=COMPANY)
        stats = pipeline.run(request, payroll_mapping, CsvTable(self._rows(7)))
        assert payslip_batches(store) == [3, 3, 1]
        assert stats.batch_count == 3
        assert stats.processed_count == 7

    def test_progress_reported(self, payroll_mapping):
        store = MemoryDocumentStore()
        pipeline = IngestionPipeline(
            store=store, directory=MemoryDirectory(), log=IngestionLog(store), progress_every=2,
        )
        request = IngestionRequest(upload_id="U1", file_url="x", company_id=COMPANY)
        seen = []
        pipeline.run(request, payroll_mapping, CsvTable(self._rows(5)),
                     on_progress=lambda s: seen.append(s.row_count))
        assert seen == [2, 4]


class TestRowFailures:
    def test_duplicate_employee_is_row_error(self, payroll_mapping, store, make_service, request_for):
        csv_text = f"{HEADER}\nE001,D1,a,1,0,0,1\nE001,D1,b,2,0,0,1\n"
        service = make_service()
        result = service.ingest(request_for(csv_text))
        assert result.processed_count == 1
        assert result.error_count == 1
        [doc] = payslips(store)
        assert doc["items"]["KY11"]["value"] == Decimal("1")
        assert any("appears twice" in e.message for e in service.log.entries("U1", "error"))

    def test_failing_row_does_not_stop_job(self, payroll_mapping, store, make_service, request_for,
                                           monkeypatch):
        import payslipflow.ingestion.pipeline as pipeline_module

        original = pipeline_module.coerce_value

        def flaky(raw, item_name, header_name=""):
            if raw == "boom":
                raise ValueError("cannot coerce")
            return original(raw, item_name, header_name)

        monkeypatch.setattr(pipeline_module, "coerce_value", flaky)
        csv_text = f"{HEADER}\nE001,D1,a,1,0,0,1\nE002,D1,b,boom,0,0,1\nE003,D1,c,3,0,0,1\n"
        result = make_service().ingest(request_for(csv_text))
        assert result.processed_count == 2
        assert result.error_count == 1
        assert [doc["employeeId"] for doc in payslips(store)] == ["E001", "E003"]


class TestUserResolution:
    def test_unresolved_user_still_emits_record(self, payroll_mapping, store, make_service, request_for):
        result = make_service().ingest(request_for(f"{HEADER}\nE002,D1,b,1,0,0,1\n"))
        assert result.processed_count == 1
        assert result.unresolved_user_count == 1
        [doc] = payslips(store)
        assert doc["userId"] is None

    def test_register_new_employees(self, payroll_mapping, store, directory, make_service, request_for):
        csv_text = f"{HEADER}\nE001,D1,山田 太郎,1,0,0,1\nE002,D10,鈴木 花子,1,0,0,1\n"
        result = make_service().ingest(request_for(csv_text, register_new_employees=True))
        assert result.employees_created == 1
        assert result.unresolved_user_count == 0
        assert directory.registered == [
            {"employeeCode": "E002", "name": "鈴木 花子", "departmentCode": "D10"}
        ]
        assert {doc["employeeId"]: doc["userId"] for doc in payslips(store)} == {
            "E001": "user-1", "E002": "new-E002",
        }

    def test_without_register_flag_directory_untouched(self, payroll_mapping, directory,
                                                       make_service, request_for):
        make_service().ingest(request_for(f"{HEADER}\nE002,D1,b,1,0,0,1\n"))
        assert directory.registered == []
        assert directory.lookups == [(COMPANY, "E002")]


def test_name_header(payroll_mapping):
    assert name_header(payroll_mapping) == "KY05"


def test_stats_as_fields():
    fields = PipelineStats(processed_count=3, unresolved_user_count=1).as_fields()
    assert fields["processedCount"] == 3
    assert fields["unresolvedUserCount"] == 1
    assert set(fields) >= {"rowCount", "skippedCount", "errorCount", "employeesCreated", "batchCount"}
