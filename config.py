"""
config.py - Environment-driven settings for the VRN recovery caller.

Values come from the process environment (or a local .env file). Twilio
credentials are only needed when calls are actually placed.
"""

import logging
import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

load_dotenv()

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def _safe_int(env_var: str, default: str) -> int:
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(f"Invalid integer for {env_var}: {raw!r}") from None


# ── Twilio ────────────────────────────────────────────────────────────────────

TWILIO_ACCOUNT_SID   = os.getenv("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN    = os.getenv("TWILIO_AUTH_TOKEN", "")
TWILIO_FROM_NUMBER   = os.getenv("TWILIO_FROM_NUMBER", "")
TWILIO_ASSISTANT_SID = os.getenv("TWILIO_ASSISTANT_SID", "")
TWILIO_VOICE         = os.getenv("TWILIO_VOICE", "en-GB-KateNeural")
TWILIO_API_URL       = os.getenv("TWILIO_API_URL", "https://api.twilio.com")

# Public base URL Twilio can reach for status callbacks (ngrok in development).
SERVER_BASE_URL = (
    os.getenv("SERVER_BASE_URL") or os.getenv("NGROK_URL") or "http://localhost:4000"
).rstrip("/")

DISPATCH_TIMEOUT_SECONDS = _safe_int("DISPATCH_TIMEOUT_SECONDS", "15")

# ── Storage / serving ─────────────────────────────────────────────────────────

DATA_FILE  = os.getenv("DATA_FILE", "data.json")
STATIC_DIR = os.getenv("STATIC_DIR", os.path.join("frontend", "build"))
PORT       = _safe_int("PORT", "4000")

# ── Calling policy ────────────────────────────────────────────────────────────

CALL_TIMEZONE          = os.getenv("CALL_TIMEZONE", "Europe/London")
CALL_WINDOW_START_HOUR = _safe_int("CALL_WINDOW_START_HOUR", "8")
CALL_WINDOW_END_HOUR   = _safe_int("CALL_WINDOW_END_HOUR", "18")
MAX_ATTEMPTS_PER_DAY   = _safe_int("MAX_ATTEMPTS_PER_DAY", "3")
RETRY_BACKOFF_SECONDS  = _safe_int("RETRY_BACKOFF_SECONDS", "60")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def _validate() -> None:
    if not 0 <= CALL_WINDOW_START_HOUR < CALL_WINDOW_END_HOUR <= 24:
        raise ValueError(
            "Calling window must satisfy 0 <= CALL_WINDOW_START_HOUR < CALL_WINDOW_END_HOUR <= 24, "
            f"got {CALL_WINDOW_START_HOUR}-{CALL_WINDOW_END_HOUR}"
        )
    if MAX_ATTEMPTS_PER_DAY < 1:
        raise ValueError(f"MAX_ATTEMPTS_PER_DAY must be >= 1, got {MAX_ATTEMPTS_PER_DAY}")
    if RETRY_BACKOFF_SECONDS < 0:
        raise ValueError(f"RETRY_BACKOFF_SECONDS must be >= 0, got {RETRY_BACKOFF_SECONDS}")
    try:
        ZoneInfo(CALL_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown CALL_TIMEZONE: {CALL_TIMEZONE!r}") from None


_validate()

CALL_TZ = ZoneInfo(CALL_TIMEZONE)


def calling_hours_label() -> str:
    return f"{CALL_WINDOW_START_HOUR:02d}:00-{CALL_WINDOW_END_HOUR:02d}:00 {CALL_TIMEZONE}"


def setup_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
