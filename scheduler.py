"""
scheduler.py - One scheduling pass over every booking.

For each record that passes the eligibility policy a call is requested and the
attempt is booked against the record whether or not Twilio accepted it, so a
failing provider cannot cause a retry storm. The whole pass runs inside one
store transaction and is written back once at the end.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

import config
import state_store
from dispatcher import place_call
from eligibility import (
    check_eligibility,
    format_timestamp,
    is_within_calling_window,
    local_today,
)

logger = logging.getLogger(__name__)

QUEUED = "queued"


@dataclass
class PassResult:
    calls_queued: int = 0
    calls_attempted: int = 0
    calls_failed: int = 0
    skipped: dict = field(default_factory=dict)
    message: Optional[str] = None

    @property
    def ran(self) -> bool:
        return self.message is None

    def to_response(self) -> dict:
        if not self.ran:
            return {"success": False, "callsQueued": 0, "message": self.message}
        return {
            "success": True,
            "callsQueued": self.calls_queued,
            "callsAttempted": self.calls_attempted,
            "callsFailed": self.calls_failed,
            "skipped": self.skipped,
        }


def build_greeting(customer_name: str) -> str:
    name = (customer_name or "").strip() or "there"
    return f"Hi {name}, I'm calling about your booking. I just need your car registration number."


def mark_attempt(record: dict, now: datetime):
    record["attemptCountToday"] = int(record.get("attemptCountToday") or 0) + 1
    record["lastAttemptDate"] = local_today(now)
    record["lastCallTime"] = format_timestamp(now)
    record["lastCallStatus"] = QUEUED


def run_scheduling_pass(
    now: Optional[datetime] = None,
    dispatch: Callable[[str, str], dict] = place_call,
) -> PassResult:
    """Evaluate every record at ``now`` and request calls for the eligible ones."""
    now = now or datetime.now(timezone.utc)

    if not is_within_calling_window(now):
        message = f"Outside calling hours ({config.calling_hours_label()})."
        logger.info("Scheduling pass skipped: %s", message)
        return PassResult(message=message)

    result = PassResult()
    skipped = Counter()

    with state_store.transaction() as records:
        for record in records:
            decision = check_eligibility(record, now)
            if not decision.eligible:
                skipped[decision.reason] += 1
                continue

            result.calls_attempted += 1
            try:
                dispatch(record["phoneNumber"], build_greeting(record["customerName"]))
            except Exception as e:
                result.calls_failed += 1
                logger.warning(
                    "Failed to queue call to %s (booking %s): %s",
                    record["phoneNumber"], record["bookingId"], e,
                )
            else:
                result.calls_queued += 1

            mark_attempt(record, now)

    result.skipped = dict(skipped)
    logger.info(
        "Scheduling pass: %d queued, %d failed, skipped %s",
        result.calls_queued, result.calls_failed, result.skipped,
    )
    return result
