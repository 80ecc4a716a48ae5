"""
Slot conflict detection and day availability.

This is the heart of the application: one shared implementation used by
booking creation, the public availability view and the calendar pickers.
Everything here is pure - bookings and business hours are explicit inputs,
nothing is cached and nothing is written.

Conflict rule: a candidate ``[start, end)`` conflicts with a confirmed
booking ``[b_start, b_end)`` on the same date when

    start < b_end + buffer  and  end > b_start

The buffer only trails the existing booking. Every booking therefore gets
cleanup time after it, but a candidate may end exactly when another
booking starts.
"""

from collections import defaultdict
from datetime import date, datetime
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union

import pendulum

from .models import (
    Booking,
    BusinessHours,
    CalendarDay,
    DayHours,
    DayStatus,
    SlotOption,
    SlotReason,
    as_date,
)
from .time_utils import minutes_to_time, time_to_minutes

DEFAULT_BUFFER_MINUTES = 15
DEFAULT_SLOT_GRANULARITY_MINUTES = 30

BookingLike = Union[Booking, Mapping[str, Any]]
HoursLike = Union[BusinessHours, DayHours, Mapping[str, Any]]


def _as_booking(item: BookingLike) -> Booking:
    if isinstance(item, Booking):
        return item
    return Booking.from_record(item)


def _to_minutes(value: Union[str, int]) -> int:
    if isinstance(value, int):
        return value
    return time_to_minutes(value)


def _hours_for(business_hours: Optional[HoursLike], day: date) -> Optional[DayHours]:
    """Resolve the opening hours that apply to ``day``."""
    if business_hours is None:
        return None
    if isinstance(business_hours, DayHours):
        return business_hours
    if not isinstance(business_hours, BusinessHours):
        business_hours = BusinessHours.from_mapping(business_hours)
    return business_hours.for_date(day)


def _is_past(day: date, start_minutes: int, now: datetime) -> bool:
    """Slots on today's date at or before the current minute are gone."""
    return day == as_date(now) and start_minutes <= now.hour * 60 + now.minute


def is_slot_available(
    day: Union[date, str],
    start_time: Union[str, int],
    duration: int,
    bookings: Iterable[BookingLike],
    buffer_minutes: int = DEFAULT_BUFFER_MINUTES,
    exclude_booking_id: Optional[int] = None,
) -> bool:
    """
    Check one candidate against the confirmed bookings of its date.

    Args:
        day: Calendar date of the candidate
        start_time: ``"HH:MM"`` or minutes since midnight
        duration: Appointment length in minutes
        bookings: Existing bookings (any date, any status)
        buffer_minutes: Cleanup time required after each existing booking
        exclude_booking_id: Booking to ignore, e.g. the one being rescheduled

    Returns:
        False on the first conflicting booking, True otherwise
    """
    day = as_date(day)
    new_start = _to_minutes(start_time)
    new_end = new_start + duration

    for booking in map(_as_booking, bookings):
        if not booking.is_confirmed or booking.date != day:
            continue
        if exclude_booking_id is not None and booking.id == exclude_booking_id:
            continue

        buffered_end = booking.end_minutes + buffer_minutes
        if new_start < buffered_end and new_end > booking.start_minutes:
            return False

    return True


def candidate_start_times(
    hours: DayHours,
    slot_granularity_minutes: int = DEFAULT_SLOT_GRANULARITY_MINUTES,
) -> List[str]:
    """
    Start times offered for a day, from opening up to (excluding) closing.

    Candidates that would run past closing are still listed; the closing
    check happens when each one is evaluated.
    """
    return [
        minutes_to_time(minute)
        for minute in range(hours.open_minutes, hours.close_minutes, slot_granularity_minutes)
    ]


def evaluate_slot(
    day: Union[date, str],
    start_time: Union[str, int],
    duration: int,
    business_hours: Optional[HoursLike],
    bookings: Iterable[BookingLike],
    buffer_minutes: int = DEFAULT_BUFFER_MINUTES,
    now: Optional[datetime] = None,
    exclude_booking_id: Optional[int] = None,
) -> SlotOption:
    """
    Decide whether one candidate can be booked and why not.

    Checks run in order: closed day, before opening, already passed,
    ends after closing (overtime included), conflicts with a booking.
    """
    day = as_date(day)
    start = _to_minutes(start_time)
    now = now or pendulum.now()

    def option(reason: SlotReason) -> SlotOption:
        return SlotOption(date=day, time=minutes_to_time(start), duration=duration, reason=reason)

    hours = _hours_for(business_hours, day)
    if hours is None or not hours.enabled:
        return option(SlotReason.CLOSED)
    if start < hours.open_minutes:
        return option(SlotReason.BEFORE_OPENING)
    if _is_past(day, start, now):
        return option(SlotReason.PAST)
    if start + duration > hours.effective_close_minutes:
        return option(SlotReason.AFTER_CLOSING)
    if not is_slot_available(day, start, duration, bookings, buffer_minutes, exclude_booking_id):
        return option(SlotReason.CONFLICT)
    return option(SlotReason.AVAILABLE)


def _iter_day_slots(
    day: date,
    duration: int,
    business_hours: Optional[HoursLike],
    bookings: List[Booking],
    slot_granularity_minutes: int,
    now: datetime,
    buffer_minutes: int,
    exclude_booking_id: Optional[int],
) -> Iterator[SlotOption]:
    hours = _hours_for(business_hours, day)
    if hours is None or not hours.enabled:
        return

    for start in candidate_start_times(hours, slot_granularity_minutes):
        yield evaluate_slot(
            day,
            start,
            duration,
            hours,
            bookings,
            buffer_minutes=buffer_minutes,
            now=now,
            exclude_booking_id=exclude_booking_id,
        )


def list_day_slots(
    day: Union[date, str],
    duration: int,
    business_hours: Optional[HoursLike],
    bookings: Iterable[BookingLike],
    slot_granularity_minutes: int = DEFAULT_SLOT_GRANULARITY_MINUTES,
    now: Optional[datetime] = None,
    buffer_minutes: int = DEFAULT_BUFFER_MINUTES,
    exclude_booking_id: Optional[int] = None,
) -> List[SlotOption]:
    """Every candidate start of a day with its availability, for time pickers."""
    day = as_date(day)
    return list(_iter_day_slots(
        day,
        duration,
        business_hours,
        [_as_booking(b) for b in bookings],
        slot_granularity_minutes,
        now or pendulum.now(),
        buffer_minutes,
        exclude_booking_id,
    ))


def has_available_slot_on_day(
    day: Union[date, str],
    duration: int,
    business_hours: Optional[HoursLike],
    bookings: Iterable[BookingLike],
    slot_granularity_minutes: int = DEFAULT_SLOT_GRANULARITY_MINUTES,
    now: Optional[datetime] = None,
    buffer_minutes: int = DEFAULT_BUFFER_MINUTES,
) -> bool:
    """
    Report whether any slot of ``duration`` minutes is still open on ``day``.

    A non-positive duration means nothing has been selected yet, so the day
    cannot be full. A missing or disabled weekday is never available.
    """
    if duration <= 0:
        return True

    day = as_date(day)
    slots = _iter_day_slots(
        day,
        duration,
        business_hours,
        [_as_booking(b) for b in bookings],
        slot_granularity_minutes,
        now or pendulum.now(),
        buffer_minutes,
        None,
    )
    return any(slot.available for slot in slots)


class AvailabilityEngine:
    """
    Availability rules bound to one shop configuration.

    Holds the weekly business hours, the post-booking buffer and the slot
    granularity so callers only pass the bookings they just read. Instances
    are immutable and share no state between calls.
    """

    def __init__(
        self,
        business_hours: BusinessHours,
        buffer_minutes: int = DEFAULT_BUFFER_MINUTES,
        slot_granularity_minutes: int = DEFAULT_SLOT_GRANULARITY_MINUTES,
        timezone: Optional[str] = None,
    ):
        if slot_granularity_minutes <= 0:
            raise ValueError("slot_granularity_minutes must be greater than zero")
        if buffer_minutes < 0:
            raise ValueError("buffer_minutes cannot be negative")

        self.business_hours = business_hours
        self.buffer_minutes = buffer_minutes
        self.slot_granularity_minutes = slot_granularity_minutes
        self.timezone = timezone

    def now(self) -> pendulum.DateTime:
        """Current wall-clock time in the shop's timezone."""
        if self.timezone:
            return pendulum.now(self.timezone)
        return pendulum.now()

    def is_slot_available(
        self,
        day: Union[date, str],
        start_time: Union[str, int],
        duration: int,
        bookings: Iterable[BookingLike],
        exclude_booking_id: Optional[int] = None,
    ) -> bool:
        return is_slot_available(
            day,
            start_time,
            duration,
            bookings,
            buffer_minutes=self.buffer_minutes,
            exclude_booking_id=exclude_booking_id,
        )

    def evaluate_slot(
        self,
        day: Union[date, str],
        start_time: Union[str, int],
        duration: int,
        bookings: Iterable[BookingLike],
        now: Optional[datetime] = None,
        exclude_booking_id: Optional[int] = None,
    ) -> SlotOption:
        return evaluate_slot(
            day,
            start_time,
            duration,
            self.business_hours,
            bookings,
            buffer_minutes=self.buffer_minutes,
            now=now or self.now(),
            exclude_booking_id=exclude_booking_id,
        )

    def has_available_slot_on_day(
        self,
        day: Union[date, str],
        duration: int,
        bookings: Iterable[BookingLike],
        now: Optional[datetime] = None,
    ) -> bool:
        return has_available_slot_on_day(
            day,
            duration,
            self.business_hours,
            bookings,
            slot_granularity_minutes=self.slot_granularity_minutes,
            now=now or self.now(),
            buffer_minutes=self.buffer_minutes,
        )

    def day_slots(
        self,
        day: Union[date, str],
        duration: int,
        bookings: Iterable[BookingLike],
        now: Optional[datetime] = None,
        exclude_booking_id: Optional[int] = None,
    ) -> List[SlotOption]:
        return list_day_slots(
            day,
            duration,
            self.business_hours,
            bookings,
            slot_granularity_minutes=self.slot_granularity_minutes,
            now=now or self.now(),
            buffer_minutes=self.buffer_minutes,
            exclude_booking_id=exclude_booking_id,
        )

    def month_calendar(
        self,
        year: int,
        month: int,
        duration: int,
        bookings: Iterable[BookingLike],
        now: Optional[datetime] = None,
    ) -> List[CalendarDay]:
        """
        Style every day of a month for the date picker.

        Past days are disabled, closed weekdays closed, and open days are
        available or full depending on the day scan for ``duration``.
        """
        now = now or self.now()
        today = as_date(now)

        by_date: Dict[date, List[Booking]] = defaultdict(list)
        for booking in map(_as_booking, bookings):
            if booking.is_confirmed:
                by_date[booking.date].append(booking)

        first = pendulum.date(year, month, 1)
        days: List[CalendarDay] = []

        for offset in range(first.days_in_month):
            day = first.add(days=offset)

            if day < today:
                status = DayStatus.DISABLED
            elif not self.business_hours.is_open_on(day):
                status = DayStatus.CLOSED
            elif self.has_available_slot_on_day(day, duration, by_date.get(day, []), now=now):
                status = DayStatus.AVAILABLE
            else:
                status = DayStatus.FULL

            days.append(CalendarDay(date=day, status=status))

        return days
