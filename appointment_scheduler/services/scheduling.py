"""
Application services for listing free slots and booking appointments.

The service coordinates reading and writing bookings via a store adapter and
delegates slot generation and the accept-or-reject decision to the domain
``SlotGenerator`` and ``ConflictChecker``. This keeps the HTTP and CLI
layers thin and allows the store to be swapped via a simple protocol.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import timedelta
from typing import List, Optional, Protocol

import pendulum
from pendulum import DateTime

from ..config import Settings
from ..domain.conflict_checker import ConflictChecker
from ..domain.exceptions import InvalidInput, SlotUnavailable, StoreUnavailable
from ..domain.models import (
    Booking,
    BookingRequest,
    DateLike,
    Rejected,
    Slot,
    WorkingHoursConfig,
    calendar_date_in,
    parse_calendar_date,
    resolve_timezone,
)
from ..domain.slot_generator import SlotGenerator

logger = logging.getLogger(__name__)


class BookingStoreProtocol(Protocol):
    """Protocol describing the booking store behaviour needed by the service."""

    async def add(self, booking: Booking) -> Booking:
        """Persist a booking, raising ``SlotUnavailable`` if it overlaps a stored one."""

    async def query_by_absolute_range(self, start: DateTime, end: DateTime) -> List[Booking]:
        """Return bookings overlapping ``[start, end)`` ordered by start."""


class SchedulingService:
    """
    Orchestrates booking retrieval, slot calculation and booking creation.

    Creating a booking reads the overlapping bookings and writes the new one
    while holding a lock scoped to the resource-local date, so two concurrent
    requests for the same interval cannot both be accepted. The lock only
    covers this process; across processes the store's conditional ``add``
    is the final guard.
    """

    def __init__(
        self,
        store: BookingStoreProtocol,
        working_hours: WorkingHoursConfig,
        *,
        default_timezone: str,
        max_booking_minutes: int = 240,
    ) -> None:
        self._store = store
        self._working_hours = working_hours
        self._slot_generator = SlotGenerator(working_hours)
        self._conflict_checker = ConflictChecker(working_hours)
        self._default_timezone = default_timezone
        self._max_booking_minutes = max_booking_minutes
        # Entries vanish once no request holds or waits for the lock
        self._date_locks: weakref.WeakValueDictionary[pendulum.Date, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @classmethod
    def from_settings(cls, settings: Settings, store: BookingStoreProtocol) -> "SchedulingService":
        return cls(
            store,
            settings.working_hours(),
            default_timezone=settings.client_timezone,
            max_booking_minutes=settings.max_booking_minutes,
        )

    @property
    def working_hours(self) -> WorkingHoursConfig:
        return self._working_hours

    @property
    def default_timezone(self) -> str:
        return self._default_timezone

    async def free_slots(self, day: DateLike | None, timezone: Optional[str] = None) -> List[Slot]:
        """
        Compute the free slots of a calendar date.

        Args:
            day: Calendar date in the resource timezone
            timezone: Requester timezone for the returned slots

        Returns:
            Free slots expressed in the requester timezone
        """
        requester_tz = self._requester_timezone(timezone)
        calendar_date = parse_calendar_date(day)

        slots = self._slot_generator.generate(calendar_date)
        if not slots:
            return []

        logger.info(
            "Generating slots between %s for %s, reported in %s",
            self._working_hours.describe(),
            calendar_date,
            requester_tz,
        )

        existing = await self._query(
            slots[0].start - self._query_margin(),
            slots[-1].end,
        )
        available = self._conflict_checker.filter_available(slots, existing)

        logger.info(
            "%d of %d slot(s) free on %s (%d existing booking(s))",
            len(available),
            len(slots),
            calendar_date,
            len(existing),
        )
        return [slot.in_timezone(requester_tz) for slot in available]

    async def create_event(
        self,
        date_time: Optional[str],
        duration: int | str | None,
        timezone: Optional[str] = None,
    ) -> Booking:
        """
        Validate a booking request and persist it when accepted.

        Raises:
            InvalidInput: Malformed request
            OutsideWorkingHours: Request does not fit into the working window
            SlotUnavailable: Request overlaps an existing booking
            StoreUnavailable: The store could not be read or written
        """
        request = BookingRequest.parse(date_time, duration, self._requester_timezone(timezone))

        if request.duration_minutes > self._max_booking_minutes:
            raise InvalidInput(
                f"duration must not exceed {self._max_booking_minutes} minutes.",
                duration=request.duration_minutes,
            )

        logger.info(
            "Attempting to create an event at %s for %d minutes",
            request.start_instant.isoformat(),
            request.duration_minutes,
        )

        local_date = request.start_instant.in_timezone(self._working_hours.resource_timezone).date()

        async with self._date_lock(local_date):
            existing = await self._query(
                request.start_instant - self._query_margin(request.duration_minutes),
                request.end_instant,
            )
            decision = self._conflict_checker.try_book(request, existing)

            if isinstance(decision, Rejected):
                logger.warning("Booking rejected: %s", decision.reason)
                raise decision.reason

            booking = await self._add(decision.booking)

        logger.info(
            "Event created at %s for %d minutes",
            booking.date_time.isoformat(),
            booking.duration_minutes,
        )
        return booking

    async def list_events(
        self,
        start_date: DateLike | None,
        end_date: DateLike | None,
        timezone: Optional[str] = None,
    ) -> List[Booking]:
        """
        List bookings between two calendar dates (both inclusive).

        The dates are interpreted in ``timezone``. Full ISO-8601 timestamps
        are accepted too and contribute their calendar date in ``timezone``.
        """
        tz = self._requester_timezone(timezone)

        if not start_date or not end_date:
            raise InvalidInput("startDate and endDate are required.")

        first_day = calendar_date_in(start_date, tz)
        last_day = calendar_date_in(end_date, tz)

        if first_day > last_day:
            raise InvalidInput(
                "startDate must be before endDate.",
                startDate=str(first_day),
                endDate=str(last_day),
            )

        range_start = pendulum.datetime(first_day.year, first_day.month, first_day.day, tz=tz)
        after_last = last_day.add(days=1)
        range_end = pendulum.datetime(after_last.year, after_last.month, after_last.day, tz=tz)

        logger.info("Fetching events between %s and %s", range_start.isoformat(), range_end.isoformat())

        bookings = await self._query(range_start, range_end)

        logger.info("Fetched %d event(s)", len(bookings))
        return bookings

    def _requester_timezone(self, timezone: Optional[str]) -> str:
        if not timezone:
            logger.warning("Timezone not provided, using default timezone (%s)", self._default_timezone)
            return self._default_timezone
        return resolve_timezone(timezone)

    def _date_lock(self, day: pendulum.Date) -> asyncio.Lock:
        lock = self._date_locks.get(day)
        if lock is None:
            lock = asyncio.Lock()
            self._date_locks[day] = lock
        return lock

    def _query_margin(self, duration_minutes: int = 0) -> timedelta:
        """
        Look-back added before a queried window.

        Covers bookings that start before the window but run into it, even
        for stores that only index bookings by start instant.
        """
        return timedelta(minutes=max(duration_minutes, self._max_booking_minutes))

    async def _query(self, start: DateTime, end: DateTime) -> List[Booking]:
        try:
            return await self._store.query_by_absolute_range(start, end)
        except StoreUnavailable:
            logger.exception("Booking store query failed for %s - %s", start, end)
            raise
        except Exception as exc:
            logger.exception("Booking store query failed for %s - %s", start, end)
            raise StoreUnavailable("Booking store is unavailable.") from exc

    async def _add(self, booking: Booking) -> Booking:
        try:
            return await self._store.add(booking)
        except SlotUnavailable:
            logger.warning("Booking store rejected %s as overlapping", booking.interval)
            raise
        except StoreUnavailable:
            logger.exception("Booking store write failed for %s", booking.interval)
            raise
        except Exception as exc:
            logger.exception("Booking store write failed for %s", booking.interval)
            raise StoreUnavailable("Booking store is unavailable.") from exc
