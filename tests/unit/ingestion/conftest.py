"""Fixtures for ingestion tests: memory store, saved mapping and a service factory."""

from __future__ import annotations

import pytest

from payslipflow.core.config import AppSettings, IngestConfig
from payslipflow.ingestion.service import IngestionService
from payslipflow.mapping.builder import build_from_rows
from payslipflow.mapping.store import MappingStore
from payslipflow.models.job import IngestionRequest
from payslipflow.models.mapping import Category
from tests.fakes import MemoryDirectory, MemoryDocumentStore, MemoryFetcher

COMPANY = "C1"
FILE_URL = "https://files.example.com/upload.csv"


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def mappings(store):
    return MappingStore(store)


@pytest.fixture
def directory():
    return MemoryDirectory({(COMPANY, "E001"): "user-1"})


@pytest.fixture
def fetcher():
    return MemoryFetcher()


@pytest.fixture
def payroll_mapping(mappings):
    """KY03 employee, KY02 department, KY11 income, KY22_6 deduction, KY51 attendance."""
    model = build_from_rows(
        "KY03\tKY02\tKY05\tKY11\tKY12\tKY22_6\tKY51",
        "社員番号\t部門コード\t従業員氏名\t基本給\t通勤手当\t所得税\t出勤日数",
    )
    model.reclassify("KY11", Category.INCOME)
    model.reclassify("KY12", Category.INCOME)
    model.reclassify("KY22_6", Category.DEDUCTION)
    model.reclassify("KY51", Category.ATTENDANCE)
    mappings.save(COMPANY, model)
    return model


@pytest.fixture
def make_service(store, mappings, fetcher, directory):
    def _make(batch_size: int = 450) -> IngestionService:
        settings = AppSettings(ingest=IngestConfig(batch_size=batch_size, progress_every=2))
        return IngestionService(
            settings=settings,
            store=store,
            mappings=mappings,
            fetcher=fetcher,
            directory=directory,
        )
    return _make


@pytest.fixture
def request_for(fetcher):
    """Register CSV text under a URL and build the matching request."""
    def _request(csv_text: str, upload_id: str = "U1", **overrides) -> IngestionRequest:
        url = f"{FILE_URL}?u={upload_id}"
        fetcher.files[url] = csv_text.encode("utf-8")
        fields = {
            "upload_id": upload_id,
            "file_url": url,
            "company_id": COMPANY,
            "payment_date": "2024-06-25",
        }
        fields.update(overrides)
        return IngestionRequest(**fields)
    return _request
