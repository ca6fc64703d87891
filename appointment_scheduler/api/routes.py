"""
HTTP routes for free slots and events.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from ..services.scheduling import SchedulingService

router = APIRouter()


class EventCreate(BaseModel):
    """Body of ``POST /events``; missing values are reported as invalid input."""

    model_config = ConfigDict(populate_by_name=True)

    date_time: Optional[str] = Field(default=None, alias="dateTime")
    duration: Optional[int] = None
    timezone: Optional[str] = None


def get_service(request: Request) -> SchedulingService:
    return request.app.state.scheduling_service


@router.get("/free-slots")
async def get_free_slots(
    date: Optional[str] = None,
    timezone: Optional[str] = None,
    service: SchedulingService = Depends(get_service),
) -> List[str]:
    """Free slot start instants of ``date``, formatted in ``timezone``."""
    slots = await service.free_slots(date, timezone)
    return [slot.start.isoformat() for slot in slots]


@router.post("/events")
async def create_event(
    body: EventCreate,
    service: SchedulingService = Depends(get_service),
) -> Dict[str, Any]:
    booking = await service.create_event(body.date_time, body.duration, body.timezone)
    return {
        "message": "Event created successfully.",
        "event": booking.to_dict(body.timezone or service.default_timezone),
    }


@router.get("/events")
async def get_events(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    timezone: Optional[str] = None,
    service: SchedulingService = Depends(get_service),
) -> List[Dict[str, Any]]:
    """Bookings between two calendar dates, formatted in ``timezone``."""
    bookings = await service.list_events(start_date, end_date, timezone)
    tz = timezone or service.default_timezone
    return [booking.to_dict(tz) for booking in bookings]
