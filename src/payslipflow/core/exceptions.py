"""PayslipFlow exception hierarchy."""

from __future__ import annotations

from typing import Literal

ErrorKind = Literal["invalid-argument", "not-found", "failed-precondition", "internal"]


class PayslipFlowError(Exception):
    """Base exception for all PayslipFlow errors."""


class MalformedInputError(PayslipFlowError):
    """Two-row mapping input could not be turned into a mapping model."""


class MappingValidationError(PayslipFlowError):
    """A mapping model violates its structural invariants."""

    def __init__(self, message: str, problems: list[str] | None = None) -> None:
        self.problems = problems or []
        super().__init__(message)


class MappingNotFoundError(PayslipFlowError):
    """No header mapping stored for the tenant and payslip kind."""

    def __init__(self, tenant_id: str, kind: str) -> None:
        self.tenant_id = tenant_id
        self.kind = kind
        super().__init__(f"No {kind} mapping stored for tenant {tenant_id!r}")


class DocumentStoreError(PayslipFlowError):
    """Document store operation failed."""


class FileFetchError(PayslipFlowError):
    """Uploaded file could not be fetched."""


class CacheError(PayslipFlowError):
    """Redis cache operation failed."""


class InvalidTransitionError(PayslipFlowError):
    """Ingestion job status change not allowed by the state machine."""

    def __init__(self, upload_id: str, current: str, target: str) -> None:
        self.upload_id = upload_id
        self.current = current
        self.target = target
        super().__init__(f"Job {upload_id}: cannot move from {current} to {target}")


class IngestionError(PayslipFlowError):
    """Ingestion failure carrying a machine-readable kind."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        self.kind = kind
        self.message = message
        super().__init__(f"[{kind}] {message}")
