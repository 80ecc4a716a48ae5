"""
Tests for slot conflict detection and the day scan.

2025-03-10 is a Monday; the shop is open 09:00-18:00 on weekdays,
10:00-16:00 on Saturday and closed on Sunday.
"""

import pendulum
import pytest

from barberslots.domain.availability import (
    DEFAULT_BUFFER_MINUTES,
    DEFAULT_SLOT_GRANULARITY_MINUTES,
    candidate_start_times,
    evaluate_slot,
    has_available_slot_on_day,
    is_slot_available,
    list_day_slots,
)
from barberslots.domain.models import Booking, BusinessHours, DayHours, SlotReason

MONDAY = "2025-03-10"
TUESDAY = "2025-03-11"
FRIDAY = "2025-03-14"
SUNDAY = "2025-03-16"

# A clock well before every date used below
EARLIER = pendulum.datetime(2025, 1, 1, 8, 0)

WEEKDAY = DayHours(enabled=True, open="09:00", close="18:00")


def _booking(time, duration, day=MONDAY, status="confirmed", booking_id=None):
    return Booking(date=day, time=time, duration=duration, status=status, id=booking_id)


class TestDefaults:
    """Shared constants."""

    def test_buffer_and_granularity(self):
        assert DEFAULT_BUFFER_MINUTES == 15
        assert DEFAULT_SLOT_GRANULARITY_MINUTES == 30


class TestIsSlotAvailable:
    """Tests for the single-slot conflict check."""

    def test_no_bookings_is_available(self):
        assert is_slot_available(MONDAY, "10:00", 30, [])

    def test_buffer_trails_existing_booking(self):
        """10:00-10:30 plus a 15 minute buffer blocks starts before 10:45."""
        bookings = [_booking("10:00", 30)]

        assert not is_slot_available(MONDAY, "10:30", 30, bookings)
        assert not is_slot_available(MONDAY, "10:44", 30, bookings)
        assert is_slot_available(MONDAY, "10:45", 30, bookings)

    def test_may_end_exactly_when_next_booking_starts(self):
        bookings = [_booking("10:00", 30)]

        assert is_slot_available(MONDAY, "09:30", 30, bookings)
        assert not is_slot_available(MONDAY, "09:31", 30, bookings)

    def test_overlapping_start(self):
        bookings = [_booking("10:00", 60)]

        assert not is_slot_available(MONDAY, "09:45", 30, bookings)
        assert not is_slot_available(MONDAY, "10:15", 15, bookings)

    def test_candidate_enclosing_booking(self):
        bookings = [_booking("10:00", 15)]
        assert not is_slot_available(MONDAY, "09:30", 90, bookings)

    def test_cancelled_bookings_are_ignored(self):
        bookings = [_booking("10:00", 30, status="cancelled")]
        assert is_slot_available(MONDAY, "10:00", 30, bookings)

    def test_pending_bookings_are_ignored(self):
        bookings = [_booking("10:00", 30, status="pending")]
        assert is_slot_available(MONDAY, "10:00", 30, bookings)

    def test_other_dates_are_ignored(self):
        bookings = [_booking("10:00", 30, day=TUESDAY)]
        assert is_slot_available(MONDAY, "10:00", 30, bookings)

    def test_custom_buffer(self):
        bookings = [_booking("10:00", 30)]

        assert is_slot_available(MONDAY, "10:30", 30, bookings, buffer_minutes=0)
        assert not is_slot_available(MONDAY, "10:45", 30, bookings, buffer_minutes=20)

    def test_excluded_booking_is_ignored(self):
        """Rescheduling a booking must not conflict with itself."""
        bookings = [_booking("10:00", 30, booking_id=4)]

        assert not is_slot_available(MONDAY, "10:15", 30, bookings)
        assert is_slot_available(MONDAY, "10:15", 30, bookings, exclude_booking_id=4)

    def test_accepts_records_and_minutes(self):
        bookings = [{"date": "2025-03-10T00:00:00.000Z", "time": "10:00:00", "duration": 30}]

        assert not is_slot_available(MONDAY, 630, 30, bookings)
        assert is_slot_available(pendulum.date(2025, 3, 10), 645, 30, bookings)

    def test_result_does_not_depend_on_booking_order(self):
        bookings = [_booking("12:00", 30), _booking("10:00", 30), _booking("14:00", 45)]

        for start in ("09:00", "10:30", "11:30", "12:45", "14:30", "15:00"):
            assert is_slot_available(MONDAY, start, 30, bookings) == is_slot_available(
                MONDAY, start, 30, list(reversed(bookings))
            )


class TestCandidateStartTimes:
    """Tests for candidate enumeration."""

    def test_steps_from_opening(self):
        times = candidate_start_times(DayHours(enabled=True, open="09:00", close="11:00"))
        assert times == ["09:00", "09:30", "10:00", "10:30"]

    def test_unaligned_opening(self):
        times = candidate_start_times(DayHours(enabled=True, open="09:15", close="10:30"), 30)
        assert times == ["09:15", "09:45", "10:15"]

    def test_custom_granularity(self):
        times = candidate_start_times(DayHours(enabled=True, open="09:00", close="10:00"), 15)
        assert times == ["09:00", "09:15", "09:30", "09:45"]


class TestEvaluateSlot:
    """Tests for the reasoned slot check."""

    def test_available(self):
        option = evaluate_slot(MONDAY, "10:00", 30, BusinessHours.default(), [], now=EARLIER)

        assert option.reason == SlotReason.AVAILABLE
        assert option.time == "10:00"
        assert option.end_time == "10:30"

    def test_closed_day(self):
        option = evaluate_slot(SUNDAY, "12:00", 30, BusinessHours.default(), [], now=EARLIER)
        assert option.reason == SlotReason.CLOSED

    def test_missing_hours_is_closed(self):
        option = evaluate_slot(MONDAY, "12:00", 30, None, [], now=EARLIER)
        assert option.reason == SlotReason.CLOSED

    def test_before_opening(self):
        option = evaluate_slot(MONDAY, "08:30", 30, BusinessHours.default(), [], now=EARLIER)
        assert option.reason == SlotReason.BEFORE_OPENING

    def test_after_closing(self):
        option = evaluate_slot(MONDAY, "17:30", 45, BusinessHours.default(), [], now=EARLIER)
        assert option.reason == SlotReason.AFTER_CLOSING

    def test_ending_exactly_at_close(self):
        option = evaluate_slot(MONDAY, "17:30", 30, BusinessHours.default(), [], now=EARLIER)
        assert option.available

    def test_overtime_extends_closing(self):
        hours = {"friday": {"enabled": True, "open": "09:00", "close": "18:00", "overtime_buffer_minutes": 20}}

        assert evaluate_slot(FRIDAY, "17:30", 45, hours, [], now=EARLIER).available
        assert evaluate_slot(FRIDAY, "17:30", 60, hours, [], now=EARLIER).reason == SlotReason.AFTER_CLOSING

    def test_conflict(self):
        option = evaluate_slot(MONDAY, "10:30", 30, BusinessHours.default(), [_booking("10:00", 30)], now=EARLIER)
        assert option.reason == SlotReason.CONFLICT

    def test_past_slot_today(self):
        now = pendulum.datetime(2025, 3, 10, 12, 10)
        hours = BusinessHours.default()

        assert evaluate_slot(MONDAY, "12:00", 30, hours, [], now=now).reason == SlotReason.PAST
        assert evaluate_slot(MONDAY, "12:10", 30, hours, [], now=now).reason == SlotReason.PAST
        assert evaluate_slot(MONDAY, "12:30", 30, hours, [], now=now).available

    def test_other_days_are_not_past(self):
        """Only today's slots are compared with the current time."""
        now = pendulum.datetime(2025, 3, 11, 17, 0)
        assert evaluate_slot(MONDAY, "10:00", 30, BusinessHours.default(), [], now=now).available


class TestListDaySlots:
    """Tests for the time picker listing."""

    def test_lists_every_candidate_with_reason(self):
        slots = list_day_slots(MONDAY, 60, WEEKDAY, [_booking("10:00", 30)], now=EARLIER)

        assert len(slots) == 18
        by_time = {slot.time: slot.reason for slot in slots}
        assert by_time["09:00"] == SlotReason.AVAILABLE
        assert by_time["09:30"] == SlotReason.CONFLICT
        assert by_time["10:30"] == SlotReason.CONFLICT
        assert by_time["11:00"] == SlotReason.AVAILABLE
        assert by_time["17:00"] == SlotReason.AVAILABLE
        assert by_time["17:30"] == SlotReason.AFTER_CLOSING

    def test_closed_day_has_no_slots(self):
        assert list_day_slots(SUNDAY, 30, BusinessHours.default(), [], now=EARLIER) == []

    def test_exclude_booking_id(self):
        bookings = [_booking("10:00", 30, booking_id=9)]
        slots = list_day_slots(MONDAY, 30, WEEKDAY, bookings, now=EARLIER, exclude_booking_id=9)

        assert all(slot.available for slot in slots)


class TestHasAvailableSlotOnDay:
    """Tests for the day scan."""

    def test_empty_open_day(self):
        assert has_available_slot_on_day(MONDAY, 30, BusinessHours.default(), [], now=EARLIER)

    @pytest.mark.parametrize("duration", [0, -15])
    def test_non_positive_duration_is_always_available(self, duration):
        """No service selected yet: even closed days are not reported full."""
        assert has_available_slot_on_day(SUNDAY, duration, BusinessHours.default(), [], now=EARLIER)
        assert has_available_slot_on_day(MONDAY, duration, None, [], now=EARLIER)

    def test_closed_weekday(self):
        assert not has_available_slot_on_day(SUNDAY, 30, BusinessHours.default(), [], now=EARLIER)

    def test_missing_weekday(self):
        hours = BusinessHours(days={"tuesday": WEEKDAY})
        assert not has_available_slot_on_day(MONDAY, 30, hours, [], now=EARLIER)

    def test_duration_longer_than_day(self):
        """A 600 minute appointment never fits into a 540 minute day."""
        assert not has_available_slot_on_day(MONDAY, 600, BusinessHours.default(), [], now=EARLIER)

    def test_full_day(self):
        bookings = [_booking("09:00", 540)]
        assert not has_available_slot_on_day(MONDAY, 30, BusinessHours.default(), bookings, now=EARLIER)

    def test_only_gap_is_found(self):
        """09:00-12:00 and 13:00-18:00 booked leave 12:15-13:00; the 12:30 candidate fits 30 minutes."""
        bookings = [_booking("09:00", 180), _booking("13:00", 300)]

        assert has_available_slot_on_day(MONDAY, 30, BusinessHours.default(), bookings, now=EARLIER)
        assert not has_available_slot_on_day(MONDAY, 45, BusinessHours.default(), bookings, now=EARLIER)

    def test_cancelled_bookings_free_the_day(self):
        bookings = [_booking("09:00", 540, status="cancelled")]
        assert has_available_slot_on_day(MONDAY, 30, BusinessHours.default(), bookings, now=EARLIER)

    def test_late_in_the_day(self):
        """At 17:10 only the 17:30 candidate remains."""
        now = pendulum.datetime(2025, 3, 10, 17, 10)
        hours = BusinessHours.default()

        assert has_available_slot_on_day(MONDAY, 30, hours, [], now=now)
        assert not has_available_slot_on_day(MONDAY, 45, hours, [], now=now)

    def test_after_last_candidate(self):
        now = pendulum.datetime(2025, 3, 10, 17, 30)
        assert not has_available_slot_on_day(MONDAY, 15, BusinessHours.default(), [], now=now)

    def test_overtime_lets_last_candidate_fit(self):
        hours = BusinessHours(days={
            "friday": DayHours(enabled=True, open="09:00", close="18:00", overtime_buffer_minutes=30),
        })
        now = pendulum.datetime(2025, 3, 14, 17, 10)

        assert has_available_slot_on_day(FRIDAY, 60, hours, [], now=now)

    def test_agrees_with_slot_check(self):
        """The day scan accepts a slot only where the single-slot check does."""
        bookings = [_booking("09:00", 60), _booking("11:00", 90), _booking("15:30", 60)]
        hours = BusinessHours.default()

        found = any(
            is_slot_available(MONDAY, start, 60, bookings)
            and start_minutes + 60 <= WEEKDAY.effective_close_minutes
            for start_minutes, start in (
                (m, f"{m // 60:02d}:{m % 60:02d}") for m in range(540, 1080, 30)
            )
        )
        assert has_available_slot_on_day(MONDAY, 60, hours, bookings, now=EARLIER) == found

    def test_monday_walkthrough(self):
        """One booking at 10:00 for 30 minutes on an otherwise empty Monday."""
        bookings = [_booking("10:00", 30)]
        hours = BusinessHours.default()

        assert not is_slot_available(MONDAY, "10:30", 30, bookings)
        assert is_slot_available(MONDAY, "10:45", 30, bookings)
        assert has_available_slot_on_day(MONDAY, 30, hours, bookings, now=EARLIER)
        assert not has_available_slot_on_day(MONDAY, 600, hours, bookings, now=EARLIER)


class TestConflictProperties:
    """Properties every booking flow relies on."""

    def test_same_slot_twice_is_rejected(self):
        for time, duration in (("09:00", 30), ("12:15", 45), ("17:00", 60)):
            assert not is_slot_available(MONDAY, time, duration, [_booking(time, duration)])

    def test_buffer_after_booking(self):
        bookings = [_booking("09:00", 45)]

        assert not is_slot_available(MONDAY, "09:45", 30, bookings)
        assert is_slot_available(MONDAY, "10:00", 30, bookings)

    def test_no_buffer_before_booking(self):
        bookings = [_booking("09:00", 45)]
        assert is_slot_available(MONDAY, "08:15", 45, bookings)

    def test_closing_time_clipping(self):
        closing = {"monday": {"enabled": True, "open": "17:30", "close": "18:00"}}
        overtime = {"monday": {"enabled": True, "open": "17:30", "close": "18:00", "overtime_buffer_minutes": 20}}

        assert not has_available_slot_on_day(MONDAY, 45, closing, [], now=EARLIER)
        assert has_available_slot_on_day(MONDAY, 45, overtime, [], now=EARLIER)

    def test_disabled_day(self):
        hours = {"monday": {"enabled": False, "open": "09:00", "close": "18:00"}}
        assert not has_available_slot_on_day(MONDAY, 30, hours, [], now=EARLIER)
