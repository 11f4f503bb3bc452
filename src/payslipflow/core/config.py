"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class DynamoDBConfig(BaseSettings):
    """DynamoDB document store configuration."""

    model_config = {"env_prefix": "PAYSLIPFLOW_DYNAMO_"}

    table_prefix: str = "payslipflow-"
    table_suffix: str = ""  # "-dev", "-uat", or "" for prod
    region: str = "ap-northeast-1"
    endpoint_url: str | None = None  # LocalStack override


class RedisConfig(BaseSettings):
    """Redis cache configuration for loaded mapping documents."""

    model_config = {"env_prefix": "PAYSLIPFLOW_REDIS_"}

    enabled: bool = False
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    mapping_ttl: int = 300


class S3Config(BaseSettings):
    """S3 upload storage configuration."""

    model_config = {"env_prefix": "PAYSLIPFLOW_S3_"}

    bucket: str = "payslipflow-uploads"
    region: str = "ap-northeast-1"
    endpoint_url: str | None = None  # LocalStack override


class IngestConfig(BaseSettings):
    """CSV ingestion tuning."""

    model_config = {"env_prefix": "PAYSLIPFLOW_INGEST_"}

    batch_size: int = 450  # clamped to the document store's own limit
    download_timeout: float = 60.0
    encodings: list[str] = ["utf-8-sig", "cp932"]
    progress_every: int = 100
    log_data_limit: int = 1000


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "PAYSLIPFLOW_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"

    dynamodb: DynamoDBConfig = DynamoDBConfig()
    redis: RedisConfig = RedisConfig()
    s3: S3Config = S3Config()
    ingest: IngestConfig = IngestConfig()
