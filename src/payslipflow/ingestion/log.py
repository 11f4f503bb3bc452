"""Queryable per-upload ingestion log.

Every entry is written to the ``ingestion-logs`` table under the upload's
partition and mirrored to the process logger. Writing the log must never
take the job down with it, so store failures are only reported.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from payslipflow.core.exceptions import DocumentStoreError
from payslipflow.core.protocols import IDocumentStore
from payslipflow.models.job import LogEntry, LogLevel
from payslipflow.persistence import tables

logger = logging.getLogger(__name__)

_PY_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


def safe_serialize(data: Any, limit: int = 1000) -> str | None:
    """JSON-encode context data, truncated to ``limit`` characters."""
    if data is None:
        return None
    try:
        text = json.dumps(data, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        text = repr(data)
    if len(text) > limit:
        return text[:limit] + "...(truncated)"
    return text


class IngestionLog:
    """Append-only structured log keyed by upload id."""

    def __init__(self, store: IDocumentStore, data_limit: int = 1000) -> None:
        self._store = store
        self._data_limit = data_limit
        self._sequences: dict[str, int] = {}

    def _next_sequence(self, upload_id: str) -> int:
        if upload_id not in self._sequences:
            existing = self._safe_query(upload_id)
            self._sequences[upload_id] = max((e.sequence for e in existing), default=0)
        self._sequences[upload_id] += 1
        return self._sequences[upload_id]

    def release(self, upload_id: str) -> None:
        """Forget the cached sequence of a finished upload.

        A later append for the same upload reloads it from the store.
        """
        self._sequences.pop(upload_id, None)

    @property
    def tracked_uploads(self) -> list[str]:
        return list(self._sequences)

    def append(self, upload_id: str, level: LogLevel, message: str, data: Any = None) -> LogEntry:
        entry = LogEntry(
            upload_id=upload_id,
            sequence=self._next_sequence(upload_id),
            level=level,
            message=message,
            data=safe_serialize(data, self._data_limit),
            timestamp=datetime.now(timezone.utc),
        )
        logger.log(_PY_LEVELS[level], f"[{upload_id}] {message}")

        document = entry.to_document()
        document["PK"] = tables.upload_pk(upload_id)
        document["SK"] = tables.log_sk(entry.sequence)
        try:
            self._store.put_item(tables.LOGS, document)
        except DocumentStoreError as exc:
            logger.error(f"[{upload_id}] Could not persist log entry {entry.sequence}: {exc}")
        return entry

    def info(self, upload_id: str, message: str, data: Any = None) -> LogEntry:
        return self.append(upload_id, LogLevel.INFO, message, data)

    def warning(self, upload_id: str, message: str, data: Any = None) -> LogEntry:
        return self.append(upload_id, LogLevel.WARNING, message, data)

    def error(self, upload_id: str, message: str, data: Any = None) -> LogEntry:
        return self.append(upload_id, LogLevel.ERROR, message, data)

    def entries(self, upload_id: str, level: LogLevel | str | None = None) -> list[LogEntry]:
        """Entries of one upload in sequence order, optionally of one level."""
        items = self._store.query(tables.LOGS, tables.upload_pk(upload_id), tables.LOG_PREFIX)
        found = [LogEntry.model_validate(item) for item in items]
        if level is not None:
            found = [entry for entry in found if entry.level == LogLevel(level)]
        return sorted(found, key=lambda entry: entry.sequence)

    def _safe_query(self, upload_id: str) -> list[LogEntry]:
        try:
            return self.entries(upload_id)
        except DocumentStoreError as exc:
            logger.error(f"[{upload_id}] Could not read existing log entries: {exc}")
            return []
