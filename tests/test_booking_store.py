"""
Tests for the booking store adapters.
"""

import asyncio
import json
import os

import pendulum
import pytest

from appointment_scheduler.adapters.booking_store import (
    InMemoryBookingStore,
    JsonFileBookingStore,
    create_store,
)
from appointment_scheduler.domain.exceptions import SlotUnavailable, StoreUnavailable
from appointment_scheduler.domain.models import Booking

DAY_START = pendulum.parse("2024-06-10T00:00:00+00:00")
DAY_END = pendulum.parse("2024-06-11T00:00:00+00:00")


def _booking(start: str, minutes: int = 30) -> Booking:
    return Booking(date_time=pendulum.parse(start), duration_minutes=minutes)


class TestInMemoryBookingStore:
    """Tests for InMemoryBookingStore."""

    def test_add_normalises_to_utc(self):
        store = InMemoryBookingStore()

        stored = asyncio.run(store.add(_booking("2024-06-10T09:00:00-04:00")))

        assert stored.date_time.timezone_name == "UTC"
        assert stored.date_time.hour == 13

    def test_query_returns_overlapping_bookings_in_order(self):
        """Bookings starting before the window but running into it are included."""
        store = InMemoryBookingStore([
            _booking("2024-06-10T15:00:00+00:00"),
            _booking("2024-06-10T12:30:00+00:00", 60),  # runs into the window
            _booking("2024-06-10T11:00:00+00:00"),      # ends before the window
            _booking("2024-06-10T16:00:00+00:00"),      # starts at the window end
        ])

        result = asyncio.run(store.query_by_absolute_range(
            pendulum.parse("2024-06-10T13:00:00+00:00"),
            pendulum.parse("2024-06-10T16:00:00+00:00"),
        ))

        assert [b.date_time.hour for b in result] == [12, 15]

    def test_query_accepts_any_timezone(self):
        store = InMemoryBookingStore([_booking("2024-06-10T13:00:00+00:00")])

        result = asyncio.run(store.query_by_absolute_range(
            pendulum.parse("2024-06-10 18:00", tz="Asia/Kolkata"),
            pendulum.parse("2024-06-10 19:00", tz="Asia/Kolkata"),
        ))

        assert len(result) == 1

    def test_overlapping_add_is_rejected(self):
        store = InMemoryBookingStore([_booking("2024-06-10T13:00:00+00:00")])

        with pytest.raises(SlotUnavailable):
            asyncio.run(store.add(_booking("2024-06-10T13:29:00+00:00")))

        # Touching intervals do not overlap
        asyncio.run(store.add(_booking("2024-06-10T13:30:00+00:00")))


class TestJsonFileBookingStore:
    """Tests for JsonFileBookingStore."""

    def test_missing_file_starts_empty(self, tmp_path):
        store = JsonFileBookingStore(tmp_path / "bookings.json")

        result = asyncio.run(store.query_by_absolute_range(
            pendulum.parse("2024-06-10T00:00:00+00:00"),
            pendulum.parse("2024-06-11T00:00:00+00:00"),
        ))

        assert result == []

    def test_add_persists_between_instances(self, tmp_path):
        path = tmp_path / "data" / "bookings.json"
        store = JsonFileBookingStore(path)

        asyncio.run(store.add(_booking("2024-06-10T09:00:00-04:00", 45)))

        assert json.loads(path.read_text(encoding="utf-8")) == [
            {"dateTime": "2024-06-10T13:00:00+00:00", "duration": 45}
        ]

        reloaded = JsonFileBookingStore(path)
        result = asyncio.run(reloaded.query_by_absolute_range(
            pendulum.parse("2024-06-10T00:00:00+00:00"),
            pendulum.parse("2024-06-11T00:00:00+00:00"),
        ))
        assert result == [_booking("2024-06-10T13:00:00+00:00", 45)]

    def test_malformed_entries_are_skipped(self, tmp_path):
        path = tmp_path / "bookings.json"
        path.write_text(json.dumps([
            {"dateTime": "2024-06-10T13:00:00+00:00", "duration": 30},
            {"dateTime": "not a date", "duration": 30},
            {"duration": 30},
        ]), encoding="utf-8")

        store = JsonFileBookingStore(path)
        result = asyncio.run(store.query_by_absolute_range(
            pendulum.parse("2024-06-10T00:00:00+00:00"),
            pendulum.parse("2024-06-11T00:00:00+00:00"),
        ))

        assert len(result) == 1

    @pytest.mark.parametrize("content", ["{not json", '{"dateTime": "2024-06-10"}'])
    def test_unreadable_file_raises_store_unavailable(self, tmp_path, content):
        path = tmp_path / "bookings.json"
        path.write_text(content, encoding="utf-8")

        with pytest.raises(StoreUnavailable):
            JsonFileBookingStore(path)

    def test_unusable_directory_raises_store_unavailable(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = JsonFileBookingStore(blocker / "bookings.json")

        with pytest.raises(StoreUnavailable):
            asyncio.run(store.add(_booking("2024-06-10T13:00:00+00:00")))

    def test_failed_write_leaves_no_temp_file(self, tmp_path, monkeypatch):
        """A booking that cannot be written is neither stored nor left behind half-written."""
        path = tmp_path / "bookings.json"
        store = JsonFileBookingStore(path)
        asyncio.run(store.add(_booking("2024-06-10T13:00:00+00:00")))

        def fail_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", fail_replace)

        with pytest.raises(StoreUnavailable):
            asyncio.run(store.add(_booking("2024-06-10T15:00:00+00:00")))

        monkeypatch.undo()
        assert [p.name for p in tmp_path.iterdir() if p.suffix == ".tmp"] == []
        assert json.loads(path.read_text(encoding="utf-8")) == [
            {"dateTime": "2024-06-10T13:00:00+00:00", "duration": 30}
        ]
        assert len(asyncio.run(store.query_by_absolute_range(DAY_START, DAY_END))) == 1

    def test_overlapping_add_is_rejected(self, tmp_path):
        store = JsonFileBookingStore(tmp_path / "bookings.json")
        asyncio.run(store.add(_booking("2024-06-10T13:00:00+00:00", 60)))

        with pytest.raises(SlotUnavailable) as exc_info:
            asyncio.run(store.add(_booking("2024-06-10T13:30:00+00:00")))

        assert exc_info.value.context["conflicts"] == [
            {"dateTime": "2024-06-10T13:00:00+00:00", "duration": 60}
        ]


class TestSharedJsonFile:
    """Two stores on one file, as when the server and the CLI run side by side."""

    def test_bookings_from_other_store_are_visible(self, tmp_path):
        path = tmp_path / "bookings.json"
        cli_store = JsonFileBookingStore(path)
        server_store = JsonFileBookingStore(path)

        asyncio.run(cli_store.add(_booking("2024-06-10T13:00:00+00:00")))

        seen = asyncio.run(server_store.query_by_absolute_range(DAY_START, DAY_END))
        assert seen == [_booking("2024-06-10T13:00:00+00:00")]

    def test_writes_do_not_drop_other_store_bookings(self, tmp_path):
        path = tmp_path / "bookings.json"
        cli_store = JsonFileBookingStore(path)
        server_store = JsonFileBookingStore(path)

        asyncio.run(cli_store.add(_booking("2024-06-10T13:00:00+00:00")))
        asyncio.run(server_store.add(_booking("2024-06-10T15:00:00+00:00")))

        assert json.loads(path.read_text(encoding="utf-8")) == [
            {"dateTime": "2024-06-10T13:00:00+00:00", "duration": 30},
            {"dateTime": "2024-06-10T15:00:00+00:00", "duration": 30},
        ]

    def test_overlap_with_other_store_booking_is_rejected(self, tmp_path):
        """The second store never queried, yet its add still sees the first booking."""
        path = tmp_path / "bookings.json"
        cli_store = JsonFileBookingStore(path)
        server_store = JsonFileBookingStore(path)

        asyncio.run(cli_store.add(_booking("2024-06-10T13:00:00+00:00")))

        with pytest.raises(SlotUnavailable):
            asyncio.run(server_store.add(_booking("2024-06-10T13:15:00+00:00")))

        assert len(json.loads(path.read_text(encoding="utf-8"))) == 1


def test_create_store(tmp_path):
    assert type(create_store(None)) is InMemoryBookingStore
    assert isinstance(create_store(tmp_path / "bookings.json"), JsonFileBookingStore)
