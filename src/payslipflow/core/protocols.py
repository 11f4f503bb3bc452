"""Protocol interfaces for all PayslipFlow abstractions.

All inter-layer communication uses these Protocols: structural typing with
no inheritance required, checkable with isinstance().
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


# ---------------------------------------------------------------------------
# Persistence: Document Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IDocumentStore(Protocol):
    """Key/value document store addressed by table + (PK, SK).

    ``put_batch`` and ``update_batch`` are atomic: either every operation in
    the call is committed or none is. A call may carry at most
    ``max_batch_size`` operations.
    """

    max_batch_size: int

    def get_item(self, table: str, pk: str, sk: str) -> dict[str, Any] | None: ...

    def put_item(self, table: str, item: dict[str, Any]) -> None: ...

    def update_item(self, table: str, pk: str, sk: str, fields: dict[str, Any]) -> None: ...

    def delete_item(self, table: str, pk: str, sk: str) -> None: ...

    def query(self, table: str, pk: str, sk_prefix: str | None = None) -> list[dict[str, Any]]: ...

    def put_batch(self, table: str, items: list[dict[str, Any]]) -> None: ...

    def update_batch(
        self, table: str, updates: list[tuple[str, str, dict[str, Any]]]
    ) -> None: ...


# ---------------------------------------------------------------------------
# Persistence: Cache Backend
# ---------------------------------------------------------------------------

@runtime_checkable
class ICacheBackend(Protocol):
    """Redis-compatible cache interface."""

    def get(self, key: str) -> str | None: ...

    def setex(self, key: str, ttl: int, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


# ---------------------------------------------------------------------------
# Persistence: File Store / Fetcher
# ---------------------------------------------------------------------------

@runtime_checkable
class IFileStore(Protocol):
    """S3-compatible file storage interface."""

    def read(self, path: str) -> bytes: ...

    def write(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str: ...


@runtime_checkable
class IFileFetcher(Protocol):
    """Fetch an uploaded file by URL."""

    def fetch(self, url: str) -> bytes: ...


# ---------------------------------------------------------------------------
# Employee Directory
# ---------------------------------------------------------------------------

@runtime_checkable
class IEmployeeDirectory(Protocol):
    """Resolve the owning user of an employee code within a company."""

    def find_user_id(self, company_id: str, employee_code: str) -> str | None: ...

    def register(
        self,
        company_id: str,
        employee_code: str,
        name: str | None = None,
        department_code: str | None = None,
    ) -> str: ...
