"""
Order File Reader
Turns uploaded CSV/XLSX bytes into rows of header -> value
"""
from __future__ import annotations

import csv
import io
import logging
from typing import Any, Dict, List

import openpyxl

from .errors import UnsupportedFileError
from .field_reader import is_blank_row

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = (".csv", ".txt")
XLSX_EXTENSIONS = (".xlsx", ".xlsm")
SNIFF_SAMPLE_BYTES = 4096


def _decode(content: bytes) -> str:
    # utf-8-sig drops a leading BOM written by spreadsheet exports
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")


def _trim_trailing_blank(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # Interior blank rows stay so row indices match the sheet's data lines
    while rows and is_blank_row(rows[-1]):
        rows.pop()
    return rows


def read_csv_rows(content: bytes) -> List[Dict[str, Any]]:
    text = _decode(content)
    if not text.strip():
        return []
    try:
        dialect = csv.Sniffer().sniff(text[:SNIFF_SAMPLE_BYTES], delimiters=",;\t|")
    except csv.Error:
        dialect = csv.excel
    reader = csv.reader(io.StringIO(text), dialect=dialect)
    header_row = next(reader, None)
    if header_row is None:
        return []
    headers = [(name or "").strip() for name in header_row]

    rows = []
    for cells in reader:
        # Cells beyond the header row are dropped; empty lines become blank rows
        rows.append({header: value for header, value in zip(headers, cells) if header})
    return _trim_trailing_blank(rows)


def read_xlsx_rows(content: bytes) -> List[Dict[str, Any]]:
    wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    try:
        sheet = wb.worksheets[0]
        values = sheet.iter_rows(values_only=True)
        header_row = next(values, None)
        if header_row is None:
            return []
        headers = [str(h).strip() if h is not None else "" for h in header_row]

        rows = []
        for cells in values:
            rows.append({header: value for header, value in zip(headers, cells) if header})
        return _trim_trailing_blank(rows)
    finally:
        wb.close()


def read_rows(content: bytes, filename: str) -> List[Dict[str, Any]]:
    """Parse an uploaded order sheet by file extension."""
    name = (filename or "").lower()
    if name.endswith(CSV_EXTENSIONS):
        rows = read_csv_rows(content)
    elif name.endswith(XLSX_EXTENSIONS):
        rows = read_xlsx_rows(content)
    else:
        raise UnsupportedFileError(f"Unsupported file type: {filename!r}; expected .csv or .xlsx")
    logger.info(f"Read {len(rows)} rows from {filename}")
    return rows
