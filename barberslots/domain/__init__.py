"""
Domain layer - Pure availability logic without I/O.
"""

from .availability import (
    DEFAULT_BUFFER_MINUTES,
    DEFAULT_SLOT_GRANULARITY_MINUTES,
    AvailabilityEngine,
    candidate_start_times,
    evaluate_slot,
    has_available_slot_on_day,
    is_slot_available,
    list_day_slots,
)
from .models import (
    Booking,
    BookingStatus,
    BusinessHours,
    CalendarDay,
    DayHours,
    DayStatus,
    SlotOption,
    SlotReason,
)
from .time_utils import add_minutes, minutes_to_time, parse_time, time_to_minutes

__all__ = [
    "DEFAULT_BUFFER_MINUTES",
    "DEFAULT_SLOT_GRANULARITY_MINUTES",
    "AvailabilityEngine",
    "Booking",
    "BookingStatus",
    "BusinessHours",
    "CalendarDay",
    "DayHours",
    "DayStatus",
    "SlotOption",
    "SlotReason",
    "add_minutes",
    "candidate_start_times",
    "evaluate_slot",
    "has_available_slot_on_day",
    "is_slot_available",
    "list_day_slots",
    "minutes_to_time",
    "parse_time",
    "time_to_minutes",
]
