"""
Domain models for time ranges, working hours and bookings.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Dict, Union

import pendulum
from pendulum import DateTime
from pendulum.tz.exceptions import InvalidTimezone

from .exceptions import InvalidInput, OutsideWorkingHours, SlotUnavailable

UTC = "UTC"

DateLike = Union[str, date]


def resolve_timezone(name: str | None) -> str:
    """
    Validate an IANA timezone name.

    Returns:
        The name unchanged, so it can be passed straight to pendulum

    Raises:
        InvalidInput: If the name is empty or unknown
    """
    if not name:
        raise InvalidInput("Timezone is required.", timezone=name)

    try:
        pendulum.timezone(name)
    except (InvalidTimezone, ValueError) as exc:
        raise InvalidInput(f"Unknown timezone: {name}", timezone=name) from exc

    return name


def parse_calendar_date(value: DateLike | None) -> pendulum.Date:
    """
    Turn a ``YYYY-MM-DD`` string or a date/datetime into a calendar date.

    Datetimes contribute their own wall-clock date; no timezone conversion
    happens here.
    """
    if value is None or value == "":
        raise InvalidInput("Date is required.", date=value)

    if isinstance(value, date):
        return pendulum.date(value.year, value.month, value.day)

    try:
        parsed = pendulum.from_format(str(value).strip(), "YYYY-MM-DD")
    except ValueError as exc:
        raise InvalidInput(f"Invalid date '{value}', expected YYYY-MM-DD.", date=value) from exc

    return parsed.date()


def calendar_date_in(value: DateLike | None, timezone: str) -> pendulum.Date:
    """
    Like ``parse_calendar_date``, but a full ISO-8601 timestamp is accepted
    as well and yields its calendar date in ``timezone``.
    """
    text = value.strip() if isinstance(value, str) else None
    if not text or len(text) <= len("YYYY-MM-DD"):
        return parse_calendar_date(value)

    message = f"Invalid date '{value}', expected YYYY-MM-DD or an ISO-8601 timestamp."
    try:
        instant = pendulum.parse(text, tz=timezone)
    except ValueError as exc:
        raise InvalidInput(message, date=value) from exc

    if not isinstance(instant, DateTime):
        raise InvalidInput(message, date=value)

    return instant.in_timezone(timezone).date()


def at_wall_clock(day: pendulum.Date, wall_clock: time, timezone: str) -> DateTime:
    """Resolve a local wall-clock time on a calendar date to an aware DateTime."""
    return pendulum.datetime(
        day.year,
        day.month,
        day.day,
        wall_clock.hour,
        wall_clock.minute,
        wall_clock.second,
        tz=timezone,
    )


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end. Both ends are timezone-aware, so
    comparisons always happen on the absolute instant.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Half-open overlap: ranges that only touch at an endpoint do not overlap."""
        return self.start < other.end and other.start < self.end

    def in_timezone(self, timezone: str) -> "TimeRange":
        """Return the same range expressed in another timezone."""
        return type(self)(
            start=self.start.in_timezone(timezone),
            end=self.end.in_timezone(timezone),
        )

    def __str__(self) -> str:
        return f"{self.start.isoformat()} - {self.end.isoformat()}"


@dataclass(frozen=True)
class Slot(TimeRange):
    """
    A candidate bookable interval produced for a single calendar date.
    """

    def format_start(self, timezone: str) -> str:
        """ISO-8601 start instant rendered in the given timezone."""
        return self.start.in_timezone(timezone).isoformat()

    def to_dict(self, timezone: str) -> Dict[str, str]:
        return {
            "start": self.start.in_timezone(timezone).isoformat(),
            "end": self.end.in_timezone(timezone).isoformat(),
        }


@dataclass(frozen=True)
class WorkingHoursConfig:
    """
    Daily working-hours window of the resource.

    ``start_hour``/``end_hour`` are wall-clock times in ``resource_timezone``.
    """
    start_hour: time
    end_hour: time
    slot_duration_minutes: int
    resource_timezone: str

    def __post_init__(self):
        if self.slot_duration_minutes <= 0:
            raise ValueError("slot_duration_minutes must be greater than zero")

    def window_for(self, day: pendulum.Date) -> tuple[DateTime, DateTime]:
        """Absolute start and end of the working window on a calendar date."""
        return (
            at_wall_clock(day, self.start_hour, self.resource_timezone),
            at_wall_clock(day, self.end_hour, self.resource_timezone),
        )

    def describe(self) -> str:
        return (
            f"{self.start_hour.strftime('%H:%M')} - {self.end_hour.strftime('%H:%M')} "
            f"in {self.resource_timezone}"
        )


@dataclass(frozen=True)
class Booking:
    """
    A persisted reservation. ``date_time`` is kept in UTC.
    """
    date_time: DateTime
    duration_minutes: int

    def __post_init__(self):
        if self.duration_minutes <= 0:
            raise ValueError("duration_minutes must be greater than zero")

    @property
    def end(self) -> DateTime:
        return self.date_time.add(minutes=self.duration_minutes)

    @property
    def interval(self) -> TimeRange:
        return TimeRange(start=self.date_time, end=self.end)

    def to_dict(self, timezone: str = UTC) -> Dict[str, Any]:
        return {
            "dateTime": self.date_time.in_timezone(timezone).isoformat(),
            "duration": self.duration_minutes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Booking":
        """Build a booking from its stored ``{"dateTime", "duration"}`` form."""
        start = pendulum.parse(data["dateTime"], tz=UTC)
        if not isinstance(start, DateTime):
            raise ValueError(f"Could not parse datetime: {data['dateTime']}")
        return cls(date_time=start.in_timezone(UTC), duration_minutes=int(data["duration"]))


@dataclass(frozen=True)
class BookingRequest:
    """
    An incoming request to book the resource.
    """
    start_instant: DateTime
    duration_minutes: int
    requester_timezone: str

    @property
    def end_instant(self) -> DateTime:
        return self.start_instant.add(minutes=self.duration_minutes)

    @property
    def interval(self) -> TimeRange:
        return TimeRange(start=self.start_instant, end=self.end_instant)

    @classmethod
    def parse(
        cls,
        date_time: str | datetime | None,
        duration: int | str | None,
        timezone: str | None,
    ) -> "BookingRequest":
        """
        Validate raw request values.

        A timestamp carrying its own UTC offset keeps it; a naive timestamp
        is read as wall-clock time in ``timezone``.

        Raises:
            InvalidInput: If any value is missing or malformed
        """
        timezone = resolve_timezone(timezone)

        if date_time is None or date_time == "":
            raise InvalidInput("dateTime is required.", timezone=timezone)

        if isinstance(date_time, datetime):
            # Aware datetimes keep their own tzinfo
            start = pendulum.instance(date_time, tz=timezone)
        else:
            try:
                start = pendulum.parse(str(date_time), tz=timezone)
            except ValueError as exc:
                raise InvalidInput(
                    f"Invalid dateTime '{date_time}'.", dateTime=date_time, timezone=timezone
                ) from exc
            if not isinstance(start, DateTime):
                raise InvalidInput(
                    f"Invalid dateTime '{date_time}'.", dateTime=date_time, timezone=timezone
                )

        if isinstance(duration, bool):
            raise InvalidInput("duration must be a whole number of minutes.", duration=duration)
        try:
            minutes = int(duration)  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise InvalidInput(
                "duration must be a whole number of minutes.", duration=duration
            ) from exc
        if minutes <= 0:
            raise InvalidInput("duration must be greater than zero.", duration=duration)

        return cls(start_instant=start, duration_minutes=minutes, requester_timezone=timezone)


@dataclass(frozen=True)
class Accepted:
    """Decision: the request may be persisted as ``booking``."""
    booking: Booking

    @property
    def accepted(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    """Decision: the request was refused for ``reason``."""
    reason: Union[OutsideWorkingHours, SlotUnavailable]

    @property
    def accepted(self) -> bool:
        return False


BookingDecision = Union[Accepted, Rejected]
