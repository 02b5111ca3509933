"""
reconciler.py - Applies out-of-band updates to booking records.

Three writers land here at arbitrary times: Twilio status callbacks (keyed by
phone), the voice assistant's VRN capture tool (keyed by phone) and manual
edits from the operator table (keyed by booking id). Each runs as one store
transaction; the most recent write wins.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import state_store
from eligibility import format_timestamp
from errors import BadRequest, NotFound
from phones import normalize_phone

logger = logging.getLogger(__name__)

# Fields the operator table may change. Identifiers and attempt
# bookkeeping are owned by ingest and the scheduler.
EDITABLE_FIELDS = ("customerName", "phoneNumber", "bookingDetails", "vRegCaptured")


def apply_status_update(phone_number: str, status: str, now: Optional[datetime] = None) -> bool:
    """Record a call status against the first booking with this phone; unknown phones are dropped."""
    now = now or datetime.now(timezone.utc)
    phone = normalize_phone(phone_number)

    with state_store.transaction() as records:
        record = state_store.find_by_phone(records, phone)
        if record is None:
            logger.debug("Ignoring status %r for unknown phone %s", status, phone_number)
            return False
        record["lastCallStatus"] = status or ""
        record["lastCallTime"] = format_timestamp(now)

    logger.info("Booking %s call status -> %s", record["bookingId"], status)
    return True


def find_booking(phone_number: str) -> dict:
    """What the voice assistant needs to greet the customer about their booking."""
    phone = normalize_phone(phone_number)
    if not phone:
        raise BadRequest("Missing phone (query or x-identity header).")

    record = state_store.find_by_phone(state_store.all_records(), phone)
    if record is None:
        raise NotFound("not found")
    return {
        "customerName": record["customerName"],
        "bookingDetails": record["bookingDetails"],
    }


def save_vreg(phone_number: str, vreg: str) -> dict:
    phone = normalize_phone(phone_number)
    vreg = (vreg or "").strip()
    if not phone or not vreg:
        raise BadRequest("missing phone or vReg")

    with state_store.transaction() as records:
        record = state_store.find_by_phone(records, phone)
        if record is None:
            raise NotFound("not found")
        record["vRegCaptured"] = vreg

    logger.info("Captured VRN %s for booking %s", vreg, record["bookingId"])
    return record


def update_record(booking_id: str, updates: dict) -> dict:
    """
    Apply operator edits to one booking.

    Keys outside EDITABLE_FIELDS are ignored rather than rejected, since the
    table posts whole rows back.
    """
    if not isinstance(updates, dict):
        raise BadRequest("Updates must be a JSON object")

    with state_store.transaction() as records:
        record = state_store.find_by_id(records, booking_id)
        if record is None:
            raise NotFound("Record not found")

        ignored = []
        for key, value in updates.items():
            if key not in EDITABLE_FIELDS:
                ignored.append(key)
                continue
            value = "" if value is None else str(value)
            if key == "phoneNumber":
                value = normalize_phone(value)
            record[key] = value

    if ignored:
        logger.debug("Booking %s: ignored non-editable fields %s", booking_id, ignored)
    return record
