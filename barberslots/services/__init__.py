"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_service import BookingRequest, BookingService, BookingStoreProtocol

__all__ = ["BookingRequest", "BookingService", "BookingStoreProtocol"]
