"""
Application services for querying availability and committing bookings.

The service reads fresh bookings from a store adapter and delegates every
availability decision to the domain-level ``AvailabilityEngine``. Writes go
through ``store.transaction()`` so the final conflict check and the insert
happen as one unit; the engine itself never locks anything.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, List, Optional, Protocol, Sequence

from pydantic import BaseModel, Field, field_validator, model_validator

from ..config import ServiceConfig
from ..domain.availability import AvailabilityEngine
from ..domain.exceptions import (
    BookingNotFoundError,
    BookingStateError,
    SlotConflictError,
)
from ..domain.models import (
    Booking,
    BookingStatus,
    CalendarDay,
    SlotOption,
    SlotReason,
    as_date,
)
from ..domain.time_utils import parse_time

logger = logging.getLogger(__name__)


class BookingStoreProtocol(Protocol):
    """Protocol describing the booking storage needed by the service."""

    def list_bookings(self, day: Optional[date] = None) -> List[Booking]:
        """Return all bookings, or only those on ``day``."""

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        """Return one booking or None."""

    def add_booking(self, booking: Booking) -> Booking:
        """Persist a new booking and return it with its id assigned."""

    def update_booking(self, booking: Booking) -> Booking:
        """Replace an existing booking with the same id."""

    def transaction(self) -> AbstractContextManager:
        """Serialise a read-check-write sequence against other writers."""


class BookingRequest(BaseModel):
    """Validated input for a new booking."""
    date: str
    time: str
    duration: int = Field(gt=0)
    customer: str = ""
    phone: str = ""
    email: str = ""
    services: List[str] = Field(default_factory=list)
    price: int = Field(default=0, ge=0)
    notes: str = ""

    @field_validator("date", mode="before")
    @classmethod
    def validate_date(cls, value) -> str:
        """Accept dates or ISO strings; store as YYYY-MM-DD."""
        return as_date(value).isoformat()

    @field_validator("time", mode="before")
    @classmethod
    def validate_time(cls, value: str) -> str:
        return parse_time(value)

    @classmethod
    def from_services(
        cls,
        *,
        date: str,
        time: str,
        services: Sequence[ServiceConfig],
        **details,
    ) -> "BookingRequest":
        """Build a request whose duration and price are summed from the chosen services."""
        return cls(
            date=date,
            time=time,
            duration=sum(service.duration for service in services),
            price=sum(service.price for service in services),
            services=[service.name for service in services],
            **details,
        )

    @model_validator(mode="after")
    def strip_text(self) -> "BookingRequest":
        self.customer = self.customer.strip()
        self.phone = self.phone.strip()
        self.email = self.email.strip()
        self.notes = self.notes.strip()
        return self

    def to_booking(self) -> Booking:
        return Booking(
            date=as_date(self.date),
            time=self.time,
            duration=self.duration,
            status=BookingStatus.CONFIRMED,
            customer=self.customer,
            phone=self.phone,
            email=self.email,
            services=tuple(self.services),
            price=self.price,
            notes=self.notes,
        )


class BookingService:
    """
    Orchestrates booking retrieval, availability queries and writes.

    ``clock`` returns the current wall-clock time; tests pass a fixed one.
    """

    def __init__(
        self,
        store: BookingStoreProtocol,
        engine: AvailabilityEngine,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._engine = engine
        self._clock = clock or engine.now

    @property
    def engine(self) -> AvailabilityEngine:
        return self._engine

    def check_slot(
        self,
        day: date | str,
        time: str,
        duration: int,
        exclude_booking_id: Optional[int] = None,
    ) -> SlotOption:
        """Evaluate one candidate against the bookings currently stored."""
        day = as_date(day)
        return self._engine.evaluate_slot(
            day,
            parse_time(time),
            duration,
            self._store.list_bookings(day),
            now=self._clock(),
            exclude_booking_id=exclude_booking_id,
        )

    def day_slots(self, day: date | str, duration: int) -> List[SlotOption]:
        """Time picker options for ``day``."""
        day = as_date(day)
        return self._engine.day_slots(day, duration, self._store.list_bookings(day), now=self._clock())

    def has_availability(self, day: date | str, duration: int) -> bool:
        day = as_date(day)
        return self._engine.has_available_slot_on_day(
            day, duration, self._store.list_bookings(day), now=self._clock()
        )

    def month_calendar(self, year: int, month: int, duration: int) -> List[CalendarDay]:
        """Per-day availability for a month, styled for the date picker."""
        return self._engine.month_calendar(
            year, month, duration, self._store.list_bookings(), now=self._clock()
        )

    def create_booking(self, request: BookingRequest) -> Booking:
        """
        Run the final conflict check against fresh data and persist the booking.

        Raises:
            SlotConflictError: If the slot is no longer bookable
        """
        booking = request.to_booking()

        with self._store.transaction():
            self._ensure_bookable(booking)
            saved = self._store.add_booking(booking)

        logger.info(
            "Created booking %s on %s at %s (%s min)",
            saved.id, saved.date.isoformat(), saved.time, saved.duration,
        )
        return saved

    def reschedule_booking(
        self,
        booking_id: int,
        day: date | str,
        time: str,
        duration: Optional[int] = None,
    ) -> Booking:
        """
        Move a confirmed booking, checking the new slot without the booking itself.

        Raises:
            BookingNotFoundError: If the booking does not exist
            BookingStateError: If the booking was cancelled
            SlotConflictError: If the new slot is not bookable
        """
        with self._store.transaction():
            existing = self._require_booking(booking_id)
            if not existing.is_confirmed:
                raise BookingStateError(f"Booking {booking_id} is {existing.status.value} and cannot be moved")

            moved = replace(
                existing,
                date=as_date(day),
                time=parse_time(time),
                duration=duration or existing.duration,
            )
            self._ensure_bookable(moved, exclude_booking_id=booking_id)
            saved = self._store.update_booking(moved)

        logger.info("Rescheduled booking %s to %s at %s", booking_id, saved.date.isoformat(), saved.time)
        return saved

    def cancel_booking(self, booking_id: int) -> Booking:
        """
        Cancel a confirmed booking, freeing its slot.

        Raises:
            BookingNotFoundError: If the booking does not exist
            BookingStateError: If it is already cancelled
        """
        with self._store.transaction():
            existing = self._require_booking(booking_id)
            if existing.status == BookingStatus.CANCELLED:
                raise BookingStateError(f"Booking {booking_id} is already cancelled")
            saved = self._store.update_booking(existing.with_status(BookingStatus.CANCELLED))

        logger.info("Cancelled booking %s", booking_id)
        return saved

    def _require_booking(self, booking_id: int) -> Booking:
        booking = self._store.get_booking(booking_id)
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        return booking

    def _ensure_bookable(self, booking: Booking, exclude_booking_id: Optional[int] = None) -> None:
        now = self._clock()
        if booking.date < as_date(now):
            option = SlotOption(
                date=booking.date, time=booking.time, duration=booking.duration, reason=SlotReason.PAST
            )
        else:
            option = self._engine.evaluate_slot(
                booking.date,
                booking.time,
                booking.duration,
                self._store.list_bookings(booking.date),
                now=now,
                exclude_booking_id=exclude_booking_id,
            )

        if not option.available:
            logger.warning(
                "Rejected booking on %s at %s (%s min): %s",
                booking.date.isoformat(), booking.time, booking.duration, option.reason.value,
            )
            raise SlotConflictError(option.message, reason=option.reason)
