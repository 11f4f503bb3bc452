"""Resolve an upload's file URL to bytes (s3:// via the file store, http(s):// via httpx)."""

from __future__ import annotations

import logging
from urllib.parse import urlparse

import httpx

from payslipflow.core.exceptions import FileFetchError
from payslipflow.core.protocols import IFileStore

logger = logging.getLogger(__name__)


class FileFetcher:
    """IFileFetcher over an optional S3-compatible store and an HTTP client."""

    def __init__(self, file_store: IFileStore | None = None, timeout: float = 60.0,
                 http_client: httpx.Client | None = None) -> None:
        self._file_store = file_store
        self._timeout = timeout
        self._http = http_client

    def fetch(self, url: str) -> bytes:
        parsed = urlparse(url)
        if parsed.scheme == "s3":
            return self._fetch_s3(parsed.netloc, parsed.path.lstrip("/"))
        if parsed.scheme in ("http", "https"):
            return self._fetch_http(url)
        raise FileFetchError(f"Unsupported file URL scheme: {url!r}")

    def _fetch_s3(self, bucket: str, key: str) -> bytes:
        if self._file_store is None:
            raise FileFetchError("No file store configured for s3:// URLs")
        expected = getattr(self._file_store, "bucket", bucket)
        if bucket != expected:
            raise FileFetchError(f"Bucket {bucket!r} is not the upload bucket {expected!r}")
        return self._file_store.read(key)

    def _fetch_http(self, url: str) -> bytes:
        client = self._http or httpx.Client(timeout=self._timeout)
        try:
            response = client.get(url)
            response.raise_for_status()
            return response.content
        except httpx.HTTPError as exc:
            logger.error(f"File download failed for {url}: {exc}")
            raise FileFetchError(f"File download failed: {exc}") from exc
        finally:
            if self._http is None:
                client.close()
