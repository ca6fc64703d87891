"""
Domain-specific exception hierarchy for the appointment scheduler.
"""

from typing import Any, Dict


class SchedulingError(Exception):
    """Base class for all application-level errors."""

    code = "scheduling_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the error together with its context for API responses."""
        return {"error": self.code, "message": self.message, **self.context}


class InvalidInput(SchedulingError):
    """Raised for a missing or malformed date, timezone or duration."""

    code = "invalid_input"


class OutsideWorkingHours(SchedulingError):
    """Raised when a booking does not fit inside one working-hours window."""

    code = "outside_working_hours"


class SlotUnavailable(SchedulingError):
    """Raised when a booking overlaps an existing one."""

    code = "slot_unavailable"


class StoreUnavailable(SchedulingError):
    """Raised when the booking store cannot be read or written."""

    code = "store_unavailable"


class ConfigurationError(SchedulingError):
    """Raised at startup when the working-hours configuration is invalid."""

    code = "configuration_error"
