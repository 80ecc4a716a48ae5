"""
Adapters layer - Booking storage and the barbershop site API.
"""

from .api_client import ApiBookingSource, BarbershopApiClient
from .json_store import JsonBookingStore
from .memory_store import InMemoryBookingStore

__all__ = ["ApiBookingSource", "BarbershopApiClient", "JsonBookingStore", "InMemoryBookingStore"]
