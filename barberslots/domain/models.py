"""
Domain models for bookings, business hours and slot results.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

import pendulum
from pendulum import Date

from .exceptions import BookingDataError, InvalidTimeError
from .time_utils import add_minutes, parse_time, time_to_minutes

# Index matches date.weekday(): 0=Monday, 6=Sunday
WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


def as_date(value: Any) -> Date:
    """
    Normalise a calendar date to a pendulum ``Date``.

    Strings may carry a time part as returned by the database
    (``"2025-09-15T00:00:00.000Z"``); only the ``YYYY-MM-DD`` prefix is used.
    """
    if isinstance(value, datetime):
        return pendulum.date(value.year, value.month, value.day)
    if isinstance(value, date):
        if isinstance(value, Date):
            return value
        return pendulum.date(value.year, value.month, value.day)
    if isinstance(value, str):
        return pendulum.from_format(value.split("T")[0].strip(), "YYYY-MM-DD").date()
    raise TypeError(f"Cannot interpret {value!r} as a date")


def weekday_name(day: date) -> str:
    """Return the lowercase English weekday name for ``day``."""
    return WEEKDAY_NAMES[day.weekday()]


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    PENDING = "pending"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Booking:
    """
    An appointment as seen by the availability engine.

    Only ``date``, ``time``, ``duration`` and ``status`` take part in
    conflict checks; the remaining fields travel with the booking workflow.
    """
    date: Date
    time: str
    duration: int
    status: BookingStatus = BookingStatus.CONFIRMED
    id: Optional[int] = None
    customer: str = ""
    phone: str = ""
    email: str = ""
    services: Tuple[str, ...] = ()
    price: int = 0
    notes: str = ""

    def __post_init__(self):
        # Accept ISO strings and plain status values from callers
        object.__setattr__(self, "date", as_date(self.date))
        object.__setattr__(self, "status", BookingStatus(self.status))

    @property
    def is_confirmed(self) -> bool:
        return self.status == BookingStatus.CONFIRMED

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.time)

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + self.duration

    def with_status(self, status: BookingStatus) -> "Booking":
        return replace(self, status=status)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Booking":
        """
        Build a booking from a storage or API row.

        Raises:
            BookingDataError: If a required field is missing or malformed
        """
        try:
            day = as_date(record["date"])
            start = parse_time(str(record["time"]))
            duration = int(record["duration"])
            status = BookingStatus(str(record.get("status") or "confirmed").lower())
            booking_id = int(record["id"]) if record.get("id") is not None else None
            price = int(record.get("price") or 0)
        except KeyError as exc:
            raise BookingDataError(f"Booking record is missing field {exc}") from exc
        except (InvalidTimeError, TypeError, ValueError) as exc:
            raise BookingDataError(f"Invalid booking record {dict(record)!r}: {exc}") from exc

        if duration <= 0:
            raise BookingDataError(f"Booking duration must be positive, got {duration}")

        services = record.get("services") or ()
        if isinstance(services, str):
            services = (services,)

        return cls(
            date=day,
            time=start,
            duration=duration,
            status=status,
            id=booking_id,
            customer=record.get("customer") or "",
            phone=record.get("phone") or "",
            email=record.get("email") or "",
            services=tuple(services),
            price=price,
            notes=record.get("notes") or "",
        )

    def to_record(self) -> Dict[str, Any]:
        """Serialise to the JSON shape accepted by ``from_record``."""
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "time": self.time,
            "duration": self.duration,
            "status": self.status.value,
            "customer": self.customer,
            "phone": self.phone,
            "email": self.email,
            "services": list(self.services),
            "price": self.price,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class DayHours:
    """Opening hours for one weekday."""
    enabled: bool
    open: str
    close: str
    overtime_buffer_minutes: int = 0

    @property
    def open_minutes(self) -> int:
        return time_to_minutes(self.open)

    @property
    def close_minutes(self) -> int:
        return time_to_minutes(self.close)

    @property
    def effective_close_minutes(self) -> int:
        """Latest minute an appointment may end, overtime included."""
        return self.close_minutes + self.overtime_buffer_minutes


@dataclass(frozen=True)
class BusinessHours:
    """
    Weekly schedule keyed by lowercase weekday name.

    Weekdays without an entry are treated as closed.
    """
    days: Mapping[str, DayHours] = field(default_factory=dict)

    def for_date(self, day: date) -> Optional[DayHours]:
        return self.days.get(weekday_name(day))

    def is_open_on(self, day: date) -> bool:
        hours = self.for_date(day)
        return hours is not None and hours.enabled

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BusinessHours":
        """
        Build from ``{"monday": {"enabled": ..., "open": ..., ...}}``.

        Accepts both ``overtime_buffer_minutes`` and ``overtimeBufferMinutes``.
        """
        days: Dict[str, DayHours] = {}
        for name, entry in data.items():
            if isinstance(entry, DayHours):
                days[name.lower()] = entry
                continue
            overtime = entry.get("overtime_buffer_minutes", entry.get("overtimeBufferMinutes", 0))
            days[name.lower()] = DayHours(
                enabled=bool(entry.get("enabled", False)),
                open=parse_time(entry["open"]),
                close=parse_time(entry["close"]),
                overtime_buffer_minutes=int(overtime or 0),
            )
        return cls(days=days)

    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, Any]]) -> "BusinessHours":
        """Build from ``business_hours`` table rows (``day_name``, ``open_time``, ...)."""
        return cls.from_mapping({
            row["day_name"]: {
                "enabled": row.get("enabled", False),
                "open": row["open_time"],
                "close": row["close_time"],
                "overtime_buffer_minutes": row.get("overtime_buffer_minutes") or 0,
            }
            for row in rows
        })

    @classmethod
    def default(cls) -> "BusinessHours":
        weekday = DayHours(enabled=True, open="09:00", close="18:00")
        return cls(days={
            "monday": weekday,
            "tuesday": weekday,
            "wednesday": weekday,
            "thursday": weekday,
            "friday": weekday,
            "saturday": DayHours(enabled=True, open="10:00", close="16:00"),
            "sunday": DayHours(enabled=False, open="11:00", close="15:00"),
        })


class SlotReason(str, Enum):
    AVAILABLE = "available"
    CLOSED = "closed"
    BEFORE_OPENING = "before_opening"
    PAST = "past"
    AFTER_CLOSING = "after_closing"
    CONFLICT = "conflict"


SLOT_REASON_MESSAGES = {
    SlotReason.AVAILABLE: "Available",
    SlotReason.CLOSED: "Closed on this day",
    SlotReason.BEFORE_OPENING: "Service would start before opening time",
    SlotReason.PAST: "This time has already passed",
    SlotReason.AFTER_CLOSING: "Service would end after closing time",
    SlotReason.CONFLICT: "This time slot conflicts with an existing booking",
}


@dataclass(frozen=True)
class SlotOption:
    """A candidate start time and whether it can be booked."""
    date: Date
    time: str
    duration: int
    reason: SlotReason

    @property
    def available(self) -> bool:
        return self.reason == SlotReason.AVAILABLE

    @property
    def end_time(self) -> str:
        return add_minutes(self.time, self.duration)

    @property
    def message(self) -> str:
        return SLOT_REASON_MESSAGES[self.reason]


class DayStatus(str, Enum):
    AVAILABLE = "available"
    FULL = "full"
    CLOSED = "closed"
    DISABLED = "disabled"


@dataclass(frozen=True)
class CalendarDay:
    """One day of a month calendar, styled for the booking picker."""
    date: Date
    status: DayStatus

    @property
    def selectable(self) -> bool:
        return self.status == DayStatus.AVAILABLE
