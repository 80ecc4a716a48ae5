"""
Domain-specific exception hierarchy for the booking engine.
"""


class BarberSlotsError(Exception):
    """Base class for all application-level errors."""


class InvalidTimeError(BarberSlotsError, ValueError):
    """Raised when a wall-clock time string is not valid ``HH:MM``."""


class BookingDataError(BarberSlotsError):
    """Raised when a booking record from storage cannot be interpreted."""


class DataSourceError(BarberSlotsError):
    """Raised when bookings or business hours cannot be fetched or saved."""


class SlotConflictError(BarberSlotsError):
    """
    Raised when a requested slot cannot be booked.

    ``reason`` is the ``SlotReason`` reported by the engine.
    """

    def __init__(self, message: str, reason=None):
        super().__init__(message)
        self.reason = reason


class BookingNotFoundError(BarberSlotsError):
    """Raised when a booking id does not exist in the store."""


class BookingStateError(BarberSlotsError):
    """Raised when a booking is not in a state that allows the operation."""
