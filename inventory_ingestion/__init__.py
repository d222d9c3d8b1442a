"""Row readers for bulk transaction import (CSV, XLSX)."""

from inventory_ingestion.readers import CsvRowReader, XlsxRowReader, reader_for

__all__ = ["CsvRowReader", "XlsxRowReader", "reader_for"]
