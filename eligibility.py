"""
eligibility.py - Decides whether a booking may be called right now.

Rules are checked in order and the first failure wins:

    1. no VRN captured yet
    2. inside the calling window (local time in CALL_TIMEZONE)
    3. day rollover: a record last attempted on an earlier day gets its
       attempt counter reset (this is written to the record even if a
       later rule fails)
    4. fewer than MAX_ATTEMPTS_PER_DAY attempts today
    5. at least RETRY_BACKOFF_SECONDS since the last call activity
    6. a dialable phone number
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import config
from phones import is_valid_phone

VREG_CAPTURED = "vreg_captured"
OUTSIDE_CALLING_WINDOW = "outside_calling_window"
DAILY_LIMIT_REACHED = "daily_limit_reached"
BACKOFF = "backoff"
INVALID_PHONE = "invalid_phone"


@dataclass(frozen=True)
class Decision:
    eligible: bool
    reason: Optional[str] = None


ELIGIBLE = Decision(eligible=True)


def _as_utc(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def to_local(now: datetime) -> datetime:
    return _as_utc(now).astimezone(config.CALL_TZ)


def local_today(now: datetime) -> str:
    """Calendar date of ``now`` in the scheduling timezone, as YYYY-MM-DD."""
    return to_local(now).date().isoformat()


def is_within_calling_window(now: datetime) -> bool:
    hour = to_local(now).hour
    return config.CALL_WINDOW_START_HOUR <= hour < config.CALL_WINDOW_END_HOUR


def format_timestamp(now: datetime) -> str:
    """
    UTC ISO-8601 with millisecond precision and a Z suffix.

    Sub-millisecond parts round up, so a stored call time is never earlier
    than the real one and the backoff can only err on the long side.
    """
    now = _as_utc(now)
    now += timedelta(microseconds=-now.microsecond % 1000)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value) -> Optional[datetime]:
    if not isinstance(value, str) or not value.strip():
        return None
    txt = value.strip()
    if txt.endswith("Z"):
        txt = txt[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(txt)
    except ValueError:
        return None
    return _as_utc(dt)


def roll_over_day(record: dict, today: str) -> bool:
    """Reset the daily attempt counter when ``today`` differs from the last attempt date."""
    if record.get("lastAttemptDate") == today:
        return False
    record["attemptCountToday"] = 0
    record["lastAttemptDate"] = today
    return True


def backoff_elapsed(record: dict, now: datetime) -> bool:
    last = parse_timestamp(record.get("lastCallTime"))
    if last is None:
        return True
    return _as_utc(now) - last >= timedelta(seconds=config.RETRY_BACKOFF_SECONDS)


def check_eligibility(record: dict, now: datetime) -> Decision:
    """
    Evaluate ``record`` at instant ``now``.

    The only side effect is the day rollover on ``record`` (rule 3); the
    caller is responsible for persisting it.
    """
    if (record.get("vRegCaptured") or "").strip():
        return Decision(False, VREG_CAPTURED)

    if not is_within_calling_window(now):
        return Decision(False, OUTSIDE_CALLING_WINDOW)

    roll_over_day(record, local_today(now))

    if int(record.get("attemptCountToday") or 0) >= config.MAX_ATTEMPTS_PER_DAY:
        return Decision(False, DAILY_LIMIT_REACHED)

    if not backoff_elapsed(record, now):
        return Decision(False, BACKOFF)

    if not is_valid_phone(record.get("phoneNumber")):
        return Decision(False, INVALID_PHONE)

    return ELIGIBLE
