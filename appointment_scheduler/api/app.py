"""
FastAPI application factory.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .. import __version__
from ..adapters.booking_store import create_store
from ..config import Settings, load_settings
from ..domain.exceptions import (
    InvalidInput,
    OutsideWorkingHours,
    SchedulingError,
    SlotUnavailable,
)
from ..services.scheduling import BookingStoreProtocol, SchedulingService
from .routes import router

logger = logging.getLogger(__name__)

# Anything not listed maps to an opaque 500
STATUS_CODES = {
    InvalidInput: 400,
    OutsideWorkingHours: 400,
    SlotUnavailable: 422,
}


def status_code_for(exc: SchedulingError) -> int:
    for error_type, status_code in STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    status_code = status_code_for(exc)

    if status_code >= 500:
        # Details were logged where the failure happened
        return JSONResponse(
            status_code=status_code,
            content={"error": "internal_error", "message": "Internal Server Error"},
        )

    return JSONResponse(status_code=status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "error": InvalidInput.code,
            "message": "Invalid request.",
            "details": [str(error.get("msg")) for error in exc.errors()],
        },
    )


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "message": "Internal Server Error"},
    )


async def health_check():
    return {"status": True, "message": "Server is healthy"}


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[BookingStoreProtocol] = None,
) -> FastAPI:
    """
    Build the HTTP application.

    Args:
        settings: Validated settings; loaded from the environment when omitted
        store: Booking store; built from ``settings.store_path`` when omitted

    Raises:
        ConfigurationError: If settings have to be loaded and are invalid
    """
    settings = settings or load_settings()
    if store is None:
        store = create_store(settings.store_path)

    app = FastAPI(
        title="Appointment Scheduler",
        version=__version__,
    )
    app.state.settings = settings
    app.state.scheduling_service = SchedulingService.from_settings(settings, store)

    app.include_router(router, prefix="/api")
    app.add_api_route("/health", health_check, methods=["GET", "HEAD"], include_in_schema=False)

    app.add_exception_handler(SchedulingError, scheduling_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    logger.info(
        "Serving working hours %s, %d-minute slots",
        settings.working_hours().describe(),
        settings.slot_duration,
    )
    return app
