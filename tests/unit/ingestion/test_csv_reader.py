"""Tests for CSV decoding and header-keyed row iteration."""

from __future__ import annotations

import pytest

from payslipflow.core.exceptions import IngestionError
from payslipflow.ingestion.csv_reader import CsvTable, decode


class TestDecode:
    def test_strips_utf8_bom(self):
        assert decode("\ufeffKY03,KY11".encode("utf-8")) == "KY03,KY11"

    def test_falls_back_to_cp932(self):
        assert decode("社員番号,基本給".encode("cp932")) == "社員番号,基本給"

    def test_no_encoding_fits(self):
        with pytest.raises(IngestionError) as info:
            decode(b"\xff\xfe", encodings=["ascii"])
        assert info.value.kind == "invalid-argument"


class TestCsvTable:
    def test_comma_rows_keyed_by_header(self):
        table = CsvTable("KY03,KY11\nE001,1000\nE002,2000\n")
        assert table.delimiter == ","
        assert list(table.rows()) == [
            (2, {"KY03": "E001", "KY11": "1000"}),
            (3, {"KY03": "E002", "KY11": "2000"}),
        ]

    def test_tab_delimiter_detected_from_header(self):
        table = CsvTable("KY03\tKY11\nE001\t1,000\n")
        assert table.delimiter == "\t"
        assert next(table.rows())[1] == {"KY03": "E001", "KY11": "1,000"}

    def test_blank_lines_skipped(self):
        table = CsvTable("\nKY03,KY11\n\nE001,1\n,\n\nE002,2\n")
        assert [row["KY03"] for _, row in table.rows()] == ["E001", "E002"]

    def test_quoted_cells(self):
        table = CsvTable('KY03,KY11\nE001,"1,200"\n')
        assert next(table.rows())[1]["KY11"] == "1,200"

    def test_duplicate_header_first_wins(self):
        table = CsvTable("KY03,KY11,KY11\nE001,1,2\n")
        assert table.duplicate_headers() == ["KY11"]
        assert next(table.rows())[1]["KY11"] == "1"

    def test_short_row_omits_missing_headers(self):
        table = CsvTable("KY11,KY03\n500\n")
        assert next(table.rows())[1] == {"KY11": "500"}

    def test_header_only_has_no_data_rows(self):
        assert CsvTable("KY03,KY11\n").has_data_rows() is False

    def test_empty_file_raises(self):
        with pytest.raises(IngestionError):
            CsvTable("\n\n")

    @pytest.mark.parametrize("text", [",,,\n,,,\n", ",\n\n,\n", " , \n"])
    def test_delimiters_only_raises(self, text):
        with pytest.raises(IngestionError) as exc_info:
            CsvTable(text)
        assert exc_info.value.kind == "invalid-argument"
        assert "no header row" in exc_info.value.message
