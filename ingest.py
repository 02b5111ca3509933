"""
ingest.py - Turns an uploaded spreadsheet into booking records.

CSV files go through the csv module, everything else is read as an Excel
workbook with openpyxl. Columns are found by header name, so the sheet
layout does not matter as long as the headers are recognisable.
"""

import csv
import io
import logging
import re
from collections import Counter
from typing import Optional
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

import state_store
from errors import BadRequest
from phones import normalize_phone

logger = logging.getLogger(__name__)

# Each column is tried against its patterns in order; the first header to
# match the most specific pattern wins.
HEADER_PATTERNS = {
    "phone": [r"phone|tel"],
    "id": [r"booking\s*id", r"id"],
    "name": [r"customer\s*name", r"name"],
    "details": [r"booking\s*details", r"details"],
}


def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _read_csv(content: bytes) -> list:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        text = content.decode("latin-1")
    reader = csv.DictReader(io.StringIO(text))
    rows = []
    for row in reader:
        cleaned = {(k or "").strip(): _cell_text(v) for k, v in row.items() if k is not None}
        if any(cleaned.values()):
            rows.append(cleaned)
    return rows


def _read_xlsx(content: bytes) -> list:
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (BadZipFile, InvalidFileException, KeyError, OSError, ValueError) as e:
        raise BadRequest(f"Failed to parse spreadsheet: {e}") from e

    try:
        sheet = workbook.worksheets[0]
        rows_iter = sheet.iter_rows(values_only=True)
        header_row = next(rows_iter, None)
        if header_row is None:
            return []
        headers = [_cell_text(h) for h in header_row]
        rows = []
        for values in rows_iter:
            row = {}
            for header, value in zip(headers, values):
                if header:
                    row[header] = _cell_text(value)
            if any(row.values()):
                rows.append(row)
        return rows
    finally:
        workbook.close()


def read_rows(filename: str, content: bytes) -> list:
    if not content:
        raise BadRequest("Spreadsheet is empty or unparseable")
    if (filename or "").lower().endswith(".csv"):
        try:
            return _read_csv(content)
        except csv.Error as e:
            raise BadRequest(f"Failed to parse spreadsheet: {e}") from e
    return _read_xlsx(content)


def find_header(headers: list, patterns: list) -> Optional[str]:
    for pattern in patterns:
        regex = re.compile(pattern, re.IGNORECASE)
        for header in headers:
            if regex.search(header):
                return header
    return None


def detect_columns(headers: list) -> dict:
    return {column: find_header(headers, patterns) for column, patterns in HEADER_PATTERNS.items()}


def normalize_rows(rows: list, today: str) -> list:
    headers = list(rows[0].keys())
    columns = detect_columns(headers)
    logger.info("Detected columns: %s", columns)

    def pick(row, column):
        header = columns[column]
        return row.get(header, "") if header else ""

    records = []
    for idx, row in enumerate(rows):
        booking_id = pick(row, "id") if columns["id"] else str(idx + 1)
        records.append(
            state_store.new_record(
                booking_id=booking_id,
                customer_name=pick(row, "name"),
                phone_number=normalize_phone(pick(row, "phone")),
                booking_details=pick(row, "details"),
                last_attempt_date=today,
            )
        )
    _warn_duplicates(records)
    return records


def _warn_duplicates(records: list):
    phones = Counter(r["phoneNumber"] for r in records if r["phoneNumber"])
    for phone, count in phones.items():
        if count > 1:
            logger.warning(
                "Phone %s appears on %d bookings; call status and VRN updates go to the first one",
                phone, count,
            )
    ids = Counter(r["bookingId"] for r in records)
    for booking_id, count in ids.items():
        if count > 1:
            logger.warning("Booking id %r appears %d times; edits go to the first one", booking_id, count)


def parse_spreadsheet(filename: str, content: bytes, today: str) -> list:
    """Parse an uploaded file into fresh records dated ``today``."""
    rows = read_rows(filename, content)
    if not rows:
        raise BadRequest("Spreadsheet is empty or unparseable")
    return normalize_rows(rows, today)
