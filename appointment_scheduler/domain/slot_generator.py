"""
Generation of candidate appointment slots for one calendar date.

Pure domain logic: no store access and no I/O.
"""

import logging
from datetime import timedelta
from typing import List

from .models import UTC, DateLike, Slot, WorkingHoursConfig, parse_calendar_date

logger = logging.getLogger(__name__)


class SlotGenerator:
    """
    Splits the working-hours window of a day into equal slots.

    Algorithm:
    1. Resolve the local start/end wall-clock times of the date to absolute
       instants using the zone's offset on that date (DST aware)
    2. Step through the window in UTC, one slot duration at a time
    3. Stop before a slot would run past the window end (no partial slots)
    """

    def __init__(self, working_hours: WorkingHoursConfig):
        self.working_hours = working_hours

    def generate(self, day: DateLike) -> List[Slot]:
        """
        Generate the ordered slots for a calendar date.

        Args:
            day: Calendar date (``YYYY-MM-DD`` string or date object)

        Returns:
            Contiguous slots covering the working window, earliest first.
            Empty when the window is empty or inverted.

        Raises:
            InvalidInput: If the date cannot be parsed
        """
        calendar_date = parse_calendar_date(day)
        window_start, window_end = self.working_hours.window_for(calendar_date)

        if window_start >= window_end:
            logger.warning(
                "Empty working window on %s (%s); no slots generated",
                calendar_date,
                self.working_hours.describe(),
            )
            return []

        # UTC arithmetic keeps every slot exactly one duration long across DST jumps
        step = timedelta(minutes=self.working_hours.slot_duration_minutes)
        current = window_start.in_timezone(UTC)
        end = window_end.in_timezone(UTC)

        slots: List[Slot] = []
        while current + step <= end:
            slots.append(Slot(start=current, end=current + step))
            current = current + step

        logger.debug(
            "Generated %d slot(s) for %s between %s and %s",
            len(slots),
            calendar_date,
            window_start.isoformat(),
            window_end.isoformat(),
        )
        return slots
