"""
Row readers for bulk transaction import.

Each reader yields one dict per data row, keyed by the header row, for
TransactionImporter.import_rows().  File I/O only; no database or kernel
imports.

Cell values are normalized to stripped strings: spreadsheet dates become
ISO dates (YYYY-MM-DD), whole-number floats lose their ``.0`` and blank
cells become "".
"""

from __future__ import annotations

import csv
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterator


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float):
        if value == int(value):
            return str(int(value))
        return repr(value)
    return str(value).strip()


class CsvRowReader:
    """Read a CSV file with a header row.  Streams; BOM is stripped for UTF-8."""

    def __init__(self, delimiter: str = ",", encoding: str = "utf-8"):
        self.delimiter = delimiter
        self.encoding = "utf-8-sig" if encoding.lower() == "utf-8" else encoding

    def read(self, source_path: Path) -> Iterator[dict[str, str]]:
        with Path(source_path).open("r", encoding=self.encoding, newline="") as f:
            reader = csv.DictReader(f, delimiter=self.delimiter)
            for row in reader:
                values = {key: _cell_text(value) for key, value in row.items() if key is not None}
                if any(values.values()):
                    yield values


class XlsxRowReader:
    """
    Read one worksheet of an .xlsx workbook.  The first non-empty row is the
    header.

    Args:
        sheet: 0-based sheet index or sheet name; None for the active sheet.
    """

    def __init__(self, sheet: int | str | None = None):
        self.sheet = sheet

    def read(self, source_path: Path) -> Iterator[dict[str, str]]:
        import openpyxl

        wb = openpyxl.load_workbook(source_path, read_only=True, data_only=True)
        try:
            if self.sheet is None:
                sheet = wb.active
            elif isinstance(self.sheet, int):
                sheet = wb.worksheets[self.sheet]
            else:
                sheet = wb[self.sheet]

            headers: list[str] | None = None
            for row in sheet.iter_rows(values_only=True):
                values = [_cell_text(v) for v in row]
                if not any(values):
                    continue
                if headers is None:
                    headers = [v or f"column_{i + 1}" for i, v in enumerate(values)]
                    continue
                yield dict(zip(headers, values))
        finally:
            wb.close()


def reader_for(source_path: Path) -> CsvRowReader | XlsxRowReader:
    """Pick a reader from the file extension."""
    suffix = Path(source_path).suffix.lower()
    if suffix in (".xlsx", ".xlsm"):
        return XlsxRowReader()
    if suffix in (".csv", ".txt"):
        return CsvRowReader()
    raise ValueError(f"Unsupported import file type: {suffix or source_path}")
