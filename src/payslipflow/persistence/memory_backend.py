"""In-memory backends for unit tests and local runs: dict-backed fakes."""

from __future__ import annotations

import copy
from typing import Any

from payslipflow.core.exceptions import DocumentStoreError, FileFetchError


class MemoryDocumentStore:
    """Dict-backed IDocumentStore. Batches are all-or-nothing like the real store."""

    def __init__(self, max_batch_size: int = 450) -> None:
        self.max_batch_size = max_batch_size
        self._tables: dict[str, dict[tuple[str, str], dict[str, Any]]] = {}
        self.batch_log: list[tuple[str, int]] = []  # (table, size) per committed batch

    def _rows(self, table: str) -> dict[tuple[str, str], dict[str, Any]]:
        return self._tables.setdefault(table, {})

    def get_item(self, table: str, pk: str, sk: str) -> dict[str, Any] | None:
        item = self._rows(table).get((pk, sk))
        return copy.deepcopy(item) if item is not None else None

    def put_item(self, table: str, item: dict[str, Any]) -> None:
        self._rows(table)[(item["PK"], item["SK"])] = copy.deepcopy(item)

    def update_item(self, table: str, pk: str, sk: str, fields: dict[str, Any]) -> None:
        rows = self._rows(table)
        if (pk, sk) not in rows:
            raise DocumentStoreError(f"UpdateItem {table} {pk}/{sk}: item does not exist")
        rows[(pk, sk)].update(copy.deepcopy(fields))

    def delete_item(self, table: str, pk: str, sk: str) -> None:
        self._rows(table).pop((pk, sk), None)

    def query(self, table: str, pk: str, sk_prefix: str | None = None) -> list[dict[str, Any]]:
        return [
            copy.deepcopy(item)
            for (item_pk, item_sk), item in sorted(self._rows(table).items())
            if item_pk == pk and (sk_prefix is None or item_sk.startswith(sk_prefix))
        ]

    def put_batch(self, table: str, items: list[dict[str, Any]]) -> None:
        if not items:
            return
        if len(items) > self.max_batch_size:
            raise DocumentStoreError(f"Batch of {len(items)} exceeds {self.max_batch_size}")
        for item in items:
            self.put_item(table, item)
        self.batch_log.append((table, len(items)))

    def update_batch(self, table: str, updates: list[tuple[str, str, dict[str, Any]]]) -> None:
        if not updates:
            return
        if len(updates) > self.max_batch_size:
            raise DocumentStoreError(f"Batch of {len(updates)} exceeds {self.max_batch_size}")
        rows = self._rows(table)
        missing = [(pk, sk) for pk, sk, _ in updates if (pk, sk) not in rows]
        if missing:
            raise DocumentStoreError(f"UpdateBatch {table}: items do not exist: {missing}")
        for pk, sk, fields in updates:
            rows[(pk, sk)].update(copy.deepcopy(fields))
        self.batch_log.append((table, len(updates)))


class MemoryCacheBackend:
    """Dict-backed ICacheBackend for unit tests."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def setex(self, key: str, ttl: int, value: str) -> None:
        self._store[key] = value

    def delete(self, key: str) -> None:
        self._store.pop(key, None)


class MemoryFileStore:
    """Dict-backed IFileStore for unit tests."""

    def __init__(self) -> None:
        self._files: dict[str, bytes] = {}

    def read(self, path: str) -> bytes:
        try:
            return self._files[path]
        except KeyError as exc:
            raise FileFetchError(f"No file at {path!r}") from exc

    def write(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        self._files[path] = data
        return path
