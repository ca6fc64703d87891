"""
Booking store adapters: an in-memory store and a JSON-file backed store.

Both stores insert conditionally: ``add`` rejects a booking that overlaps
one already stored, checked against the current contents while holding the
store's lock.
"""

import asyncio
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable, List

from filelock import FileLock, Timeout
from pendulum import DateTime

from ..domain.exceptions import SlotUnavailable, StoreUnavailable
from ..domain.models import UTC, Booking, TimeRange

logger = logging.getLogger(__name__)


class InMemoryBookingStore:
    """
    Keeps bookings in a process-local list.

    Range queries return every booking whose interval overlaps the queried
    window, not only the ones starting inside it.
    """

    def __init__(self, bookings: List[Booking] | None = None):
        self._lock = threading.Lock()
        self._bookings: List[Booking] = [self._normalize(b) for b in (bookings or [])]

    @staticmethod
    def _normalize(booking: Booking) -> Booking:
        return Booking(
            date_time=booking.date_time.in_timezone(UTC),
            duration_minutes=booking.duration_minutes,
        )

    async def add(self, booking: Booking) -> Booking:
        """
        Persist a booking and return the stored (UTC-normalised) value.

        Raises:
            SlotUnavailable: The booking overlaps a stored one
        """
        stored = self._normalize(booking)
        await self._run(self._insert, stored)
        logger.debug("Stored booking %s", stored.interval)
        return stored

    async def query_by_absolute_range(self, start: DateTime, end: DateTime) -> List[Booking]:
        """
        Get bookings overlapping ``[start, end)``, ordered by start instant.
        """
        window = TimeRange(start=start, end=end)
        return await self._run(self._select, window)

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        return func(*args)

    def _insert(self, stored: Booking) -> None:
        with self._locked():
            current = self._current()
            clashing = [b for b in current if b.interval.overlaps(stored.interval)]
            if clashing:
                raise SlotUnavailable(
                    "Slot is already booked or overlaps with another booking.",
                    start=stored.interval.start.isoformat(),
                    end=stored.interval.end.isoformat(),
                    timezone=UTC,
                    conflicts=[b.to_dict(UTC) for b in clashing],
                )
            updated = current + [stored]
            self._persist(updated)
            self._bookings = updated

    def _select(self, window: TimeRange) -> List[Booking]:
        with self._locked():
            self._bookings = self._current()
            matches = [b for b in self._bookings if b.interval.overlaps(window)]
        return sorted(matches, key=lambda b: b.date_time)

    def _locked(self):
        return self._lock

    def _current(self) -> List[Booking]:
        """Bookings as currently stored."""
        return list(self._bookings)

    def _persist(self, bookings: List[Booking]) -> None:
        """Hook for durable subclasses; the in-memory store keeps nothing else."""


class _StoreLock:
    """Thread lock plus inter-process file lock, acquired in that order."""

    def __init__(self, thread_lock: threading.Lock, file_lock: FileLock, path: Path):
        self._thread_lock = thread_lock
        self._file_lock = file_lock
        self._path = path

    def __enter__(self):
        self._thread_lock.acquire()
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._file_lock.acquire()
        except (OSError, Timeout) as exc:
            self._thread_lock.release()
            raise StoreUnavailable(
                f"Could not lock booking store {self._path}: {exc}", path=str(self._path)
            ) from exc
        return self

    def __exit__(self, *exc_info):
        try:
            self._file_lock.release()
        finally:
            self._thread_lock.release()


class JsonFileBookingStore(InMemoryBookingStore):
    """
    Booking store persisted to a JSON file.

    File format:
    [
        {"dateTime": "2024-06-10T13:00:00+00:00", "duration": 30}
    ]

    Several processes may share one file (e.g. the server and the CLI).
    Every query and add re-reads the file under a ``<file>.lock`` lock, and
    adds rewrite the whole file atomically before releasing it. File access
    runs in a worker thread so the event loop is not blocked.
    """

    def __init__(self, path: Path, lock_timeout: float = 10.0):
        self.path = Path(path)
        self._file_lock = FileLock(f"{self.path}.lock", timeout=lock_timeout)
        super().__init__(self._load())
        logger.info("Loaded %d booking(s) from %s", len(self._bookings), self.path)

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        return await asyncio.to_thread(func, *args)

    def _locked(self):
        return _StoreLock(self._lock, self._file_lock, self.path)

    def _current(self) -> List[Booking]:
        return self._load()

    def _load(self) -> List[Booking]:
        """Load bookings from the JSON file, if it exists."""
        if not self.path.exists():
            return []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreUnavailable(
                f"Could not read booking store {self.path}: {exc}", path=str(self.path)
            ) from exc

        if not isinstance(raw, list):
            raise StoreUnavailable(
                f"Booking store {self.path} must contain a JSON list.", path=str(self.path)
            )

        bookings: List[Booking] = []
        for entry in raw:
            try:
                bookings.append(self._normalize(Booking.from_dict(entry)))
            except (KeyError, TypeError, ValueError) as exc:
                # Skip invalid entries
                logger.warning("Skipping malformed booking %r in %s: %s", entry, self.path, exc)

        logger.debug("Read %d booking(s) from %s", len(bookings), self.path)
        return bookings

    def _persist(self, bookings: List[Booking]) -> None:
        payload = [booking.to_dict(UTC) for booking in bookings]

        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
        except OSError as exc:
            raise StoreUnavailable(
                f"Could not write booking store {self.path}: {exc}", path=str(self.path)
            ) from exc

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise StoreUnavailable(
                f"Could not write booking store {self.path}: {exc}", path=str(self.path)
            ) from exc


def create_store(path: Path | None) -> InMemoryBookingStore:
    """Pick the JSON file store when a path is configured, else keep bookings in memory."""
    if path is None:
        logger.info("Using in-memory booking store")
        return InMemoryBookingStore()

    logger.info("Using JSON booking store at %s", path)
    return JsonFileBookingStore(path)
