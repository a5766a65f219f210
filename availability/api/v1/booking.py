from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException

from availability.api.v1.schemas import (
    BookableDaySchema,
    BookingRequestResponseSchema,
    CancelRequestSchema,
    CancelResponseSchema,
    ConfirmResponseSchema,
    DaysResponseSchema,
    HoldRequestSchema,
    HoldResponseSchema,
)
from availability.application.exceptions import (
    BookingError,
    ConflictError,
    ExpiryRaceError,
    NotFoundError,
    ValidationError,
)
from availability.application.use_cases.availability_listing import ListBookableDaysUseCase
from availability.application.use_cases.holds import HoldLifecycleUseCase
from availability.core.config import BookingConfig
from availability.domain.entities.booking import BookingDetails
from availability.wiring.dependencies import (
    get_booking_config,
    get_hold_use_case,
    get_list_days_use_case,
    get_now,
)

router = APIRouter()
logger = logging.getLogger(__name__)

STATUS_BY_ERROR = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (ExpiryRaceError, 409),
)


def to_http_error(error: BookingError) -> HTTPException:
    """Coarse reason for the caller; the full detail only goes to the log."""
    status_code = next((code for cls, code in STATUS_BY_ERROR if isinstance(error, cls)), 500)
    logger.info("Booking request failed", extra={"reason": error.reason, "error": str(error)})
    return HTTPException(status_code=status_code, detail=error.reason)


def _details(req: HoldRequestSchema) -> BookingDetails:
    return BookingDetails(
        meeting_type=req.details.meeting_type,
        address=req.details.address.strip() if req.details.address else None,
        phone=req.details.phone.strip() if req.details.phone else None,
        notes=req.details.notes.strip() if req.details.notes else None,
    )


@router.get("/days", response_model=DaysResponseSchema)
def list_days(
    uc: ListBookableDaysUseCase = Depends(get_list_days_use_case),
    config: BookingConfig = Depends(get_booking_config),
    now: datetime = Depends(get_now),
):
    days = uc.execute(now)
    return DaysResponseSchema(
        days=[BookableDaySchema(**asdict(day)) for day in days],
        time_zone=config.time_zone,
    )


@router.post("/holds", response_model=HoldResponseSchema, status_code=201)
def create_hold(
    req: HoldRequestSchema,
    uc: HoldLifecycleUseCase = Depends(get_hold_use_case),
    now: datetime = Depends(get_now),
):
    try:
        booking = uc.hold_selection(
            name=req.name,
            email=req.email,
            date_key=req.date_key,
            time_of_day=req.time_of_day,
            duration=req.duration.value,
            now=now,
            details=_details(req),
        )
    except BookingError as e:
        raise to_http_error(e)

    return HoldResponseSchema(
        hold_id=booking.id,
        cancel_token=booking.cancel_token,
        status=booking.status.value,
        start_utc=booking.start_utc,
        end_utc=booking.end_utc,
        hold_expires_utc=booking.hold_expires_utc,
    )


@router.post("/holds/{hold_id}/confirm", response_model=ConfirmResponseSchema)
def confirm_hold(
    hold_id: str,
    uc: HoldLifecycleUseCase = Depends(get_hold_use_case),
    now: datetime = Depends(get_now),
):
    try:
        result = uc.mirror_and_confirm(hold_id, now)
    except BookingError as e:
        raise to_http_error(e)

    return ConfirmResponseSchema(
        booking_id=result.booking.id,
        status=result.booking.status.value,
        external_event_id=result.booking.external_event_id,
        calendar_error=result.calendar_error,
    )


@router.post("/request", response_model=BookingRequestResponseSchema, status_code=201)
def request_booking(
    req: HoldRequestSchema,
    uc: HoldLifecycleUseCase = Depends(get_hold_use_case),
    now: datetime = Depends(get_now),
):
    """Hold and confirm in one call."""
    try:
        hold = uc.hold_selection(
            name=req.name,
            email=req.email,
            date_key=req.date_key,
            time_of_day=req.time_of_day,
            duration=req.duration.value,
            now=now,
            details=_details(req),
        )
        result = uc.mirror_and_confirm(hold.id, now)
    except BookingError as e:
        raise to_http_error(e)

    return BookingRequestResponseSchema(
        booking_id=result.booking.id,
        cancel_token=result.booking.cancel_token,
        status=result.booking.status.value,
        start_utc=result.booking.start_utc,
        end_utc=result.booking.end_utc,
        calendar_error=result.calendar_error,
    )


@router.post("/cancel", response_model=CancelResponseSchema)
def cancel_booking(
    req: CancelRequestSchema,
    uc: HoldLifecycleUseCase = Depends(get_hold_use_case),
    now: datetime = Depends(get_now),
):
    try:
        result = uc.cancel(req.cancel_token, now)
    except BookingError as e:
        raise to_http_error(e)

    return CancelResponseSchema(already_cancelled=result.already_cancelled)
