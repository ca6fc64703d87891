"""
Domain layer - Pure business logic without external dependencies.
"""

from .conflict_checker import ConflictChecker, overlaps
from .exceptions import (
    ConfigurationError,
    InvalidInput,
    OutsideWorkingHours,
    SchedulingError,
    SlotUnavailable,
    StoreUnavailable,
)
from .models import (
    Accepted,
    Booking,
    BookingDecision,
    BookingRequest,
    Rejected,
    Slot,
    TimeRange,
    WorkingHoursConfig,
)
from .slot_generator import SlotGenerator

__all__ = [
    "Accepted",
    "Booking",
    "BookingDecision",
    "BookingRequest",
    "ConfigurationError",
    "ConflictChecker",
    "InvalidInput",
    "OutsideWorkingHours",
    "Rejected",
    "SchedulingError",
    "Slot",
    "SlotGenerator",
    "SlotUnavailable",
    "StoreUnavailable",
    "TimeRange",
    "WorkingHoursConfig",
    "overlaps",
]
