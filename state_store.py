"""
state_store.py - Persists booking records in a single JSON document.

The scheduler, the Twilio status callback and the voice assistant's tools all
read-modify-write the same file, so every change goes through ``transaction()``,
which holds one lock across the load, the mutation and the save.
"""

import copy
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

import config
from errors import StoreIOFailure

logger = logging.getLogger(__name__)

STATE_FILE = config.DATA_FILE

# Key order doubles as the CSV header order.
RECORD_DEFAULTS = {
    "bookingId": "",
    "customerName": "",
    "phoneNumber": "",
    "bookingDetails": "",
    "vRegCaptured": "",
    "attemptCountToday": 0,
    "lastAttemptDate": "",
    "lastCallTime": "",
    "lastCallStatus": "",
}

_lock = threading.RLock()


def _coerce(raw: dict) -> dict:
    record = {key: raw.get(key, default) for key, default in RECORD_DEFAULTS.items()}
    for key, value in record.items():
        if key == "attemptCountToday":
            try:
                record[key] = max(0, int(value or 0))
            except (TypeError, ValueError):
                record[key] = 0
        else:
            record[key] = "" if value is None else str(value)
    return record


def _load() -> list:
    if not os.path.exists(STATE_FILE):
        return []
    try:
        with open(STATE_FILE, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.error("Failed to read %s, treating store as empty: %s", STATE_FILE, e)
        return []
    if not isinstance(data, list):
        logger.error("%s does not hold a list of records, treating store as empty", STATE_FILE)
        return []
    return [_coerce(item) for item in data if isinstance(item, dict)]


def _save(data: list):
    directory = os.path.dirname(os.path.abspath(STATE_FILE))
    try:
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".records-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, STATE_FILE)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
    except OSError as e:
        raise StoreIOFailure(f"Failed to write {STATE_FILE}: {e}") from e


@contextmanager
def transaction() -> Iterator[list]:
    """
    Yield the full record list for mutation and save it on a clean exit.

    If the block raises, nothing is written, so callers never leave a
    half-applied update behind. A block that changes nothing writes nothing,
    which also leaves an unreadable file in place for inspection.
    """
    with _lock:
        records = _load()
        before = copy.deepcopy(records)
        yield records
        if records != before:
            _save(records)


def new_record(
    booking_id: str,
    customer_name: str = "",
    phone_number: str = "",
    booking_details: str = "",
    last_attempt_date: str = "",
) -> dict:
    """Build a fresh record with empty call bookkeeping."""
    record = dict(RECORD_DEFAULTS)
    record.update(
        bookingId=booking_id,
        customerName=customer_name,
        phoneNumber=phone_number,
        bookingDetails=booking_details,
        lastAttemptDate=last_attempt_date,
    )
    return record


def all_records() -> list:
    with _lock:
        return _load()


def replace_all(records: list):
    """Drop every existing record and store ``records`` in their place."""
    with _lock:
        _save([_coerce(r) for r in records])


def find_by_phone(records: list, phone: str) -> Optional[dict]:
    """First record with this phone number; numbers are not guaranteed unique."""
    if not phone:
        return None
    return next((r for r in records if r["phoneNumber"] == phone), None)


def find_by_id(records: list, booking_id: str) -> Optional[dict]:
    return next((r for r in records if r["bookingId"] == str(booking_id)), None)
