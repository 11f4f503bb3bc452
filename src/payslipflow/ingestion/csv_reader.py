"""Decode an uploaded CSV and stream its rows keyed by header name."""

from __future__ import annotations

import csv
import io
import logging
from typing import Iterator, Sequence

from payslipflow.core.exceptions import IngestionError

logger = logging.getLogger(__name__)


def decode(data: bytes, encodings: Sequence[str] = ("utf-8-sig", "cp932")) -> str:
    """Decode with the first encoding that accepts the bytes."""
    for encoding in encodings:
        try:
            text = data.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            continue
        logger.debug(f"Decoded upload as {encoding}")
        return text.lstrip("\ufeff")
    raise IngestionError(
        "invalid-argument", f"File could not be decoded with any of {list(encodings)}"
    )


def _blank(cells: list[str]) -> bool:
    return not any(cell.strip() for cell in cells)


class CsvTable:
    """Header row plus a lazy iterator over the data rows.

    ``rows()`` yields ``(line_number, {headerName: cell})``. A header that
    occurs twice is read from its first position only. Lines whose cells
    are all empty are skipped. Cells beyond the header width are ignored and
    headers beyond a short row's width are absent from that row.
    """

    def __init__(self, text: str) -> None:
        self._text = text
        header_line = next((line for line in text.splitlines() if line.strip()), None)
        if header_line is None:
            raise IngestionError("invalid-argument", "CSV file is empty")
        self.delimiter = "\t" if "\t" in header_line else ","

        header_cells = next((cells for cells in self._reader() if not _blank(cells)), None)
        if header_cells is None:
            raise IngestionError("invalid-argument", "CSV file has no header row")
        self.headers = [cell.strip() for cell in header_cells]
        self.positions: dict[str, int] = {}
        for index, header in enumerate(self.headers):
            if not header:
                continue
            if header in self.positions:
                logger.warning(
                    f"Duplicate CSV header {header!r} at column {index}; first occurrence wins"
                )
                continue
            self.positions[header] = index

    def _reader(self):
        return csv.reader(io.StringIO(self._text), delimiter=self.delimiter)

    def duplicate_headers(self) -> list[str]:
        seen: set[str] = set()
        duplicates: list[str] = []
        for header in self.headers:
            if header and header in seen and header not in duplicates:
                duplicates.append(header)
            seen.add(header)
        return duplicates

    def rows(self) -> Iterator[tuple[int, dict[str, str]]]:
        reader = self._reader()
        header_seen = False
        for cells in reader:
            if _blank(cells):
                continue
            if not header_seen:
                header_seen = True
                continue
            yield reader.line_num, {
                header: cells[index]
                for header, index in self.positions.items()
                if index < len(cells)
            }

    def has_data_rows(self) -> bool:
        return next(self.rows(), None) is not None
