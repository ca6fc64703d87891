"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .scheduling import BookingStoreProtocol, SchedulingService

__all__ = ["BookingStoreProtocol", "SchedulingService"]
