"""Tests for the scheduling pass."""

from datetime import timedelta

import state_store
from eligibility import format_timestamp
from scheduler import build_greeting, run_scheduling_pass
from tests.conftest import MORNING, FakeDispatcher, make_record, seed


class TestRunSchedulingPass:
    def test_eligible_record_is_called_and_booked(self, dispatcher):
        seed(make_record())

        result = run_scheduling_pass(MORNING, dispatch=dispatcher)

        assert result.calls_queued == 1
        assert dispatcher.calls == [("+447700900000", build_greeting("Alice"))]
        record = state_store.all_records()[0]
        assert record["attemptCountToday"] == 1
        assert record["lastCallStatus"] == "queued"
        assert record["lastAttemptDate"] == "2026-01-15"
        assert record["lastCallTime"] == format_timestamp(MORNING)

    def test_second_pass_within_backoff_skips(self, dispatcher):
        seed(make_record())
        run_scheduling_pass(MORNING, dispatch=dispatcher)

        result = run_scheduling_pass(MORNING + timedelta(seconds=30), dispatch=dispatcher)

        assert result.calls_queued == 0
        assert result.skipped == {"backoff": 1}
        assert len(dispatcher.calls) == 1
        assert state_store.all_records()[0]["attemptCountToday"] == 1

    def test_never_more_than_three_attempts_a_day(self, dispatcher):
        seed(make_record())
        for minute in range(0, 10):
            run_scheduling_pass(MORNING + timedelta(minutes=minute), dispatch=dispatcher)

        assert len(dispatcher.calls) == 3
        assert state_store.all_records()[0]["attemptCountToday"] == 3

    def test_next_day_allows_new_attempts(self, dispatcher):
        seed(make_record(attemptCountToday=3, lastCallTime=format_timestamp(MORNING)))

        result = run_scheduling_pass(MORNING + timedelta(days=1), dispatch=dispatcher)

        assert result.calls_queued == 1
        record = state_store.all_records()[0]
        assert record["attemptCountToday"] == 1
        assert record["lastAttemptDate"] == "2026-01-16"

    def test_outside_hours_short_circuits(self, dispatcher, data_file):
        seed(make_record())
        before = data_file.read_text()

        result = run_scheduling_pass(MORNING.replace(hour=20), dispatch=dispatcher)

        assert result.calls_queued == 0
        assert not result.ran
        assert "Outside calling hours" in result.message
        assert dispatcher.calls == []
        assert data_file.read_text() == before

    def test_dispatch_failure_still_consumes_attempt(self):
        dispatcher = FakeDispatcher(fail_for={"+447700900000"})
        seed(make_record(), make_record(bookingId="2", phoneNumber="+447700900001"))

        result = run_scheduling_pass(MORNING, dispatch=dispatcher)

        assert result.calls_attempted == 2
        assert result.calls_queued == 1
        assert result.calls_failed == 1
        failed, ok = state_store.all_records()
        assert failed["attemptCountToday"] == 1
        assert failed["lastCallStatus"] == "queued"
        assert ok["attemptCountToday"] == 1

    def test_unexpected_dispatch_error_does_not_abort_pass(self):
        def broken(to_number, greeting):
            raise RuntimeError("socket closed")

        seed(make_record(), make_record(bookingId="2", phoneNumber="+447700900001"))

        result = run_scheduling_pass(MORNING, dispatch=broken)

        assert result.calls_failed == 2
        assert [r["attemptCountToday"] for r in state_store.all_records()] == [1, 1]

    def test_skips_captured_and_invalid_records(self, dispatcher):
        seed(
            make_record(bookingId="1", vRegCaptured="AB12CDE"),
            make_record(bookingId="2", phoneNumber=""),
            make_record(bookingId="3", phoneNumber="+447700900003"),
        )

        result = run_scheduling_pass(MORNING, dispatch=dispatcher)

        assert result.calls_queued == 1
        assert result.skipped == {"vreg_captured": 1, "invalid_phone": 1}
        assert dispatcher.calls[0][0] == "+447700900003"

    def test_rollover_is_persisted_for_skipped_records(self, dispatcher):
        seed(make_record(attemptCountToday=2, lastAttemptDate="2026-01-14", phoneNumber=""))

        run_scheduling_pass(MORNING, dispatch=dispatcher)

        record = state_store.all_records()[0]
        assert record["attemptCountToday"] == 0
        assert record["lastAttemptDate"] == "2026-01-15"

    def test_calls_in_store_order(self, dispatcher):
        seed(
            make_record(bookingId="b", phoneNumber="+447700900002"),
            make_record(bookingId="a", phoneNumber="+447700900001"),
        )

        run_scheduling_pass(MORNING, dispatch=dispatcher)

        assert [c[0] for c in dispatcher.calls] == ["+447700900002", "+447700900001"]

    def test_empty_store(self, dispatcher):
        result = run_scheduling_pass(MORNING, dispatch=dispatcher)
        assert result.calls_queued == 0
        assert result.to_response()["success"] is True


class TestGreeting:
    def test_uses_name(self):
        assert build_greeting("Bob").startswith("Hi Bob, ")

    def test_falls_back_without_name(self):
        assert build_greeting("  ").startswith("Hi there, ")
