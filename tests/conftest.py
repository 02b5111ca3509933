"""Shared test fixtures and helpers."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

import config
import state_store
from errors import DispatchFailure

# 10:00 in London (GMT in January, so UTC and local time agree).
MORNING = datetime(2026, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def calling_policy(monkeypatch):
    """Pin the calling policy so tests do not depend on the local .env."""
    monkeypatch.setattr(config, "CALL_TIMEZONE", "Europe/London")
    monkeypatch.setattr(config, "CALL_TZ", ZoneInfo("Europe/London"))
    monkeypatch.setattr(config, "CALL_WINDOW_START_HOUR", 8)
    monkeypatch.setattr(config, "CALL_WINDOW_END_HOUR", 18)
    monkeypatch.setattr(config, "MAX_ATTEMPTS_PER_DAY", 3)
    monkeypatch.setattr(config, "RETRY_BACKOFF_SECONDS", 60)


@pytest.fixture(autouse=True)
def data_file(tmp_path, monkeypatch):
    path = tmp_path / "data.json"
    monkeypatch.setattr(state_store, "STATE_FILE", str(path))
    return path


class FakeDispatcher:
    """Records requested calls; numbers in ``fail_for`` raise instead."""

    def __init__(self, fail_for=()):
        self.calls = []
        self.fail_for = set(fail_for)

    def __call__(self, to_number, greeting):
        self.calls.append((to_number, greeting))
        if to_number in self.fail_for:
            raise DispatchFailure(f"refused {to_number}")
        return {"sid": f"CA{len(self.calls):04d}", "status": "queued"}


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


def make_record(**overrides) -> dict:
    record = state_store.new_record(
        booking_id=overrides.pop("bookingId", "1"),
        customer_name=overrides.pop("customerName", "Alice"),
        phone_number=overrides.pop("phoneNumber", "+447700900000"),
        booking_details=overrides.pop("bookingDetails", "MOT, 20 Jan"),
        last_attempt_date=overrides.pop("lastAttemptDate", "2026-01-15"),
    )
    record.update(overrides)
    return record


def seed(*records):
    state_store.replace_all(list(records))
