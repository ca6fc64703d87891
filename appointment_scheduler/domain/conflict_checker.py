"""
Overlap detection between candidate slots, booking requests and existing bookings.

This is the heart of the application - pure domain logic without any
external dependencies. Every comparison is made on absolute instants;
formatted timestamps are never compared.
"""

import logging
from typing import Iterable, List, Sequence

from .exceptions import OutsideWorkingHours, SlotUnavailable
from .models import (
    UTC,
    Accepted,
    Booking,
    BookingDecision,
    BookingRequest,
    Rejected,
    Slot,
    TimeRange,
    WorkingHoursConfig,
)

logger = logging.getLogger(__name__)


def overlaps(first: TimeRange, second: TimeRange) -> bool:
    """
    Half-open overlap test shared by every check in this module.

    Example:
    [09:00, 09:30) and [09:30, 10:00) do not overlap
    """
    return first.overlaps(second)


class ConflictChecker:
    """
    Decides which slots are free and whether a booking request may be accepted.

    The checker only decides; persisting an accepted booking is the caller's job.
    """

    def __init__(self, working_hours: WorkingHoursConfig):
        self.working_hours = working_hours

    @staticmethod
    def conflicts(interval: TimeRange, bookings: Iterable[Booking]) -> List[Booking]:
        """Return the bookings whose interval overlaps ``interval``."""
        return [booking for booking in bookings if overlaps(interval, booking.interval)]

    def filter_available(
        self,
        slots: Sequence[Slot],
        existing_bookings: Sequence[Booking],
    ) -> List[Slot]:
        """
        Keep the slots that overlap no existing booking.

        Input order is preserved and no slot is added or duplicated.
        """
        busy = [booking.interval for booking in existing_bookings]

        return [
            slot for slot in slots
            if not any(overlaps(slot, interval) for interval in busy)
        ]

    def is_within_working_hours(self, interval: TimeRange) -> bool:
        """
        Check that an interval fits entirely inside one working day's window.

        Both ends are converted to the resource timezone and must land on the
        same local date, with start_hour <= start < end <= end_hour.
        """
        timezone = self.working_hours.resource_timezone
        start_local = interval.start.in_timezone(timezone)
        end_local = interval.end.in_timezone(timezone)

        if start_local.date() != end_local.date():
            return False

        return (
            self.working_hours.start_hour
            <= start_local.time()
            < end_local.time()
            <= self.working_hours.end_hour
        )

    def try_book(
        self,
        request: BookingRequest,
        existing_bookings: Sequence[Booking],
    ) -> BookingDecision:
        """
        Validate a booking request against working hours and existing bookings.

        Args:
            request: The parsed booking request
            existing_bookings: Bookings around the requested interval

        Returns:
            Accepted with the new Booking, or Rejected with the reason
        """
        interval = request.interval
        timezone = self.working_hours.resource_timezone

        if not self.is_within_working_hours(interval):
            logger.info(
                "Rejecting %s: outside working hours %s",
                interval,
                self.working_hours.describe(),
            )
            return Rejected(
                OutsideWorkingHours(
                    f"Event must be between {self.working_hours.start_hour.strftime('%H:%M')} "
                    f"and {self.working_hours.end_hour.strftime('%H:%M')} in {timezone}.",
                    start=interval.start.in_timezone(timezone).isoformat(),
                    end=interval.end.in_timezone(timezone).isoformat(),
                    timezone=timezone,
                )
            )

        clashing = self.conflicts(interval, existing_bookings)
        if clashing:
            logger.info("Rejecting %s: overlaps %d existing booking(s)", interval, len(clashing))
            requester_tz = request.requester_timezone
            return Rejected(
                SlotUnavailable(
                    "Slot is already booked or overlaps with another booking.",
                    start=interval.start.in_timezone(requester_tz).isoformat(),
                    end=interval.end.in_timezone(requester_tz).isoformat(),
                    timezone=requester_tz,
                    conflicts=[booking.to_dict(requester_tz) for booking in clashing],
                )
            )

        return Accepted(
            Booking(
                date_time=request.start_instant.in_timezone(UTC),
                duration_minutes=request.duration_minutes,
            )
        )
