"""Phone number helpers shared by ingest, the reconcilers and the HTTP layer."""

import re
from typing import Optional

PHONE_PATTERN = re.compile(r"^\+\d{5,}$")
IDENTITY_PREFIX = "phone:"


def normalize_phone(value) -> str:
    """
    Reduce a raw phone value to "+<digits>", or "" when fewer than 5 digits.

    Spreadsheet cells often arrive as floats ("447700900000.0"), so a
    trailing ".0" is dropped before the digits are collected.

        >>> normalize_phone("+44 7700 900000")
        '+447700900000'
        >>> normalize_phone("1234")
        ''
    """
    if value is None:
        return ""
    raw = str(value).strip()
    if raw.endswith(".0") and raw[:-2].isdigit():
        raw = raw[:-2]
    digits = re.sub(r"\D", "", raw)
    return "+" + digits if len(digits) >= 5 else ""


def is_valid_phone(value: Optional[str]) -> bool:
    return bool(value) and PHONE_PATTERN.match(value) is not None


def phone_from_identity(header: Optional[str]) -> str:
    """Extract the number from an identity header such as "phone:+447700900000"."""
    header = (header or "").strip()
    if not header.startswith(IDENTITY_PREFIX):
        return ""
    return header[len(IDENTITY_PREFIX):].strip()
