"""
In-memory booking store.
"""

import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from typing import Iterable, Iterator, List, Optional

from ..domain.exceptions import BookingNotFoundError
from ..domain.models import Booking, as_date


class InMemoryBookingStore:
    """
    Keeps bookings in a list guarded by a re-entrant lock.

    ``transaction()`` holds the lock for the whole read-check-write
    sequence, so two overlapping submissions cannot both pass the final
    conflict check before either one is stored. The list is only replaced
    once a write has been persisted.
    """

    def __init__(self, bookings: Optional[Iterable[Booking]] = None):
        self._bookings: List[Booking] = list(bookings or [])
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            yield

    def list_bookings(self, day: Optional[date] = None) -> List[Booking]:
        with self.transaction():
            if day is None:
                return list(self._bookings)
            day = as_date(day)
            return [b for b in self._bookings if b.date == day]

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        with self.transaction():
            for booking in self._bookings:
                if booking.id == booking_id:
                    return booking
            return None

    def add_booking(self, booking: Booking) -> Booking:
        with self.transaction():
            # Ids continue from the highest one in use
            next_id = max(self._used_ids(), default=0) + 1
            stored = replace(booking, id=next_id)
            self._commit(self._bookings + [stored])
            return stored

    def update_booking(self, booking: Booking) -> Booking:
        with self.transaction():
            for index, existing in enumerate(self._bookings):
                if existing.id == booking.id:
                    updated = list(self._bookings)
                    updated[index] = booking
                    self._commit(updated)
                    return booking
            raise BookingNotFoundError(f"Booking {booking.id} not found")

    def _used_ids(self) -> Iterator[int]:
        return (b.id for b in self._bookings if b.id is not None)

    def _commit(self, bookings: List[Booking]) -> None:
        self._persist(bookings)
        self._bookings = bookings

    def _persist(self, bookings: List[Booking]) -> None:
        """Hook for subclasses that save the list; raising leaves the store unchanged."""
