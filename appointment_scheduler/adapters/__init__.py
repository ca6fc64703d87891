"""
Adapters layer - Booking persistence.
"""

from .booking_store import InMemoryBookingStore, JsonFileBookingStore, create_store

__all__ = ["InMemoryBookingStore", "JsonFileBookingStore", "create_store"]
