"""Pluggable persistence backends behind Protocol interfaces."""

from __future__ import annotations

from typing import NamedTuple

from payslipflow.core.config import AppSettings
from payslipflow.core.protocols import ICacheBackend, IDocumentStore, IFileFetcher
from payslipflow.persistence.dynamodb_backend import DynamoDBDocumentStore
from payslipflow.persistence.fetcher import FileFetcher
from payslipflow.persistence.redis_backend import RedisCacheBackend
from payslipflow.persistence.s3_backend import S3FileStore


class Persistence(NamedTuple):
    store: IDocumentStore
    cache: ICacheBackend | None
    fetcher: IFileFetcher


def create_persistence(settings: AppSettings | None = None) -> Persistence:
    """Create wired-up persistence backends from application settings.

    Called once per process; everything downstream receives these instances.
    """
    if settings is None:
        settings = AppSettings()

    cache = None
    if settings.redis.enabled:
        cache = RedisCacheBackend(
            host=settings.redis.host,
            port=settings.redis.port,
            db=settings.redis.db,
        )

    store = DynamoDBDocumentStore(
        table_prefix=settings.dynamodb.table_prefix,
        table_suffix=settings.dynamodb.table_suffix,
        region=settings.dynamodb.region,
        endpoint_url=settings.dynamodb.endpoint_url,
    )

    file_store = S3FileStore(
        bucket=settings.s3.bucket,
        region=settings.s3.region,
        endpoint_url=settings.s3.endpoint_url,
    )
    fetcher = FileFetcher(file_store, timeout=settings.ingest.download_timeout)

    return Persistence(store=store, cache=cache, fetcher=fetcher)
