"""Process-wide services and their request-scoped accessor."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from payslipflow.core.config import AppSettings
from payslipflow.core.protocols import ICacheBackend, IDocumentStore, IEmployeeDirectory
from payslipflow.ingestion.directory import DocumentEmployeeDirectory
from payslipflow.ingestion.log import IngestionLog
from payslipflow.ingestion.service import IngestionService
from payslipflow.mapping.store import MappingStore
from payslipflow.persistence import Persistence


@dataclass
class Services:
    """Everything the routes need, constructed once per process."""

    settings: AppSettings
    store: IDocumentStore
    cache: ICacheBackend | None
    mappings: MappingStore
    directory: IEmployeeDirectory
    ingestion: IngestionService


def build_services(settings: AppSettings, persistence: Persistence) -> Services:
    mapping_store = MappingStore(
        persistence.store, persistence.cache, cache_ttl=settings.redis.mapping_ttl
    )
    directory = DocumentEmployeeDirectory(persistence.store)
    ingestion = IngestionService(
        settings=settings,
        store=persistence.store,
        mappings=mapping_store,
        fetcher=persistence.fetcher,
        directory=directory,
        log=IngestionLog(persistence.store, data_limit=settings.ingest.log_data_limit),
    )
    return Services(
        settings=settings,
        store=persistence.store,
        cache=persistence.cache,
        mappings=mapping_store,
        directory=directory,
        ingestion=ingestion,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
