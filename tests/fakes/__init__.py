"""Shared test doubles: re-export memory backends plus a dict fetcher and directory."""

from __future__ import annotations

from payslipflow.core.exceptions import FileFetchError
from payslipflow.persistence.memory_backend import (
    MemoryCacheBackend,
    MemoryDocumentStore,
    MemoryFileStore,
)


class MemoryFetcher:
    """IFileFetcher serving bytes registered per URL."""

    def __init__(self, files: dict[str, bytes] | None = None) -> None:
        self.files = dict(files or {})

    def fetch(self, url: str) -> bytes:
        try:
            return self.files[url]
        except KeyError as exc:
            raise FileFetchError(f"404 for {url}") from exc


class MemoryDirectory:
    """IEmployeeDirectory over a plain (company, code) -> user id dict."""

    def __init__(self, users: dict[tuple[str, str], str] | None = None) -> None:
        self.users = dict(users or {})
        self.lookups: list[tuple[str, str]] = []
        self.registered: list[dict] = []

    def find_user_id(self, company_id: str, employee_code: str) -> str | None:
        self.lookups.append((company_id, employee_code))
        return self.users.get((company_id, employee_code))

    def register(self, company_id, employee_code, name=None, department_code=None) -> str:
        user_id = f"new-{employee_code}"
        self.users[(company_id, employee_code)] = user_id
        self.registered.append(
            {"employeeCode": employee_code, "name": name, "departmentCode": department_code}
        )
        return user_id


__all__ = [
    "MemoryCacheBackend",
    "MemoryDirectory",
    "MemoryDocumentStore",
    "MemoryFetcher",
    "MemoryFileStore",
]
