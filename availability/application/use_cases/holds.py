from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from availability.application.exceptions import (
    ConflictError,
    DuplicateTokenError,
    ExpiryRaceError,
    ExternalIntegrationError,
    NotFoundError,
)
from availability.application.ports.booking_store import BookingStorePort
from availability.application.ports.calendar import CalendarPort
from availability.application.ports.event_cache import EventCachePort
from availability.application.use_cases.slot_generator import validate_selection
from availability.application.utils.conflicts import is_free
from availability.core.config import BookingConfig
from availability.domain.entities.booking import Booking, BookingDetails, BookingStatus, MeetingType

TOKEN_ATTEMPTS = 3
CANCEL_ATTEMPTS = 3


@dataclass(frozen=True)
class HoldRequest:
    name: str
    email: str
    start_utc: datetime
    end_utc: datetime
    buffer_before_min: int = 0
    buffer_after_min: int = 0
    details: BookingDetails = field(default_factory=BookingDetails)


@dataclass(frozen=True)
class ConfirmResult:
    booking: Booking
    calendar_error: str | None = None  # soft error: confirmed without a calendar mirror


@dataclass(frozen=True)
class CancelResult:
    booking: Booking
    already_cancelled: bool = False


@dataclass(frozen=True)
class SweepResult:
    released_ids: list[str]

    @property
    def released_count(self) -> int:
        return len(self.released_ids)


class HoldLifecycleUseCase:
    """
    Held -> confirmed -> cancelled state machine.

    Every status change goes through the store's compare-and-swap, so the expiry
    sweep, confirmations and cancellations can interleave freely: whichever write
    lands first wins and the other side becomes a no-op.
    """

    def __init__(
        self,
        store: BookingStorePort,
        cache: EventCachePort,
        calendar: CalendarPort | None,
        config: BookingConfig,
    ) -> None:
        self._store = store
        self._cache = cache
        self._calendar = calendar
        self._config = config
        self._logger = logging.getLogger(__name__)

    def hold_selection(
        self,
        name: str,
        email: str,
        date_key: str,
        time_of_day: str,
        duration: str,
        now: datetime,
        details: BookingDetails | None = None,
    ) -> Booking:
        """Validate a (date, window, duration) selection, then create a hold for it."""
        start, end = validate_selection(date_key, time_of_day, duration, now, self._config)
        base = details or BookingDetails()
        request = HoldRequest(
            name=name,
            email=email,
            start_utc=start,
            end_utc=end,
            buffer_before_min=self._config.buffer_min,
            buffer_after_min=self._config.buffer_min,
            details=BookingDetails(
                meeting_type=base.meeting_type,
                address=base.address,
                phone=base.phone,
                notes=base.notes,
                time_of_day=time_of_day,
                duration=duration,
            ),
        )
        return self.create_hold(request, now)

    def create_hold(self, request: HoldRequest, now: datetime) -> Booking:
        # Lapsed holds must not block the slot while waiting for the scheduled sweep.
        self.sweep(now)

        padding = timedelta(minutes=self._config.buffer_min)
        events = self._cache.list_cached_events(request.start_utc - padding, request.end_utc + padding)
        buffered_start = request.start_utc - timedelta(minutes=request.buffer_before_min)
        buffered_end = request.end_utc + timedelta(minutes=request.buffer_after_min)

        def candidate_is_free(active: list[Booking]) -> bool:
            # Buffered against buffered keeps held/confirmed bookings pairwise disjoint.
            return is_free(buffered_start, buffered_end, active, [], 0) and is_free(
                request.start_utc, request.end_utc, [], events, self._config.buffer_min
            )

        for _ in range(TOKEN_ATTEMPTS):
            booking = Booking(
                id=str(uuid.uuid4()),
                name=request.name.strip(),
                email=request.email.strip().lower(),
                start_utc=request.start_utc,
                end_utc=request.end_utc,
                status=BookingStatus.held,
                cancel_token=secrets.token_urlsafe(32),
                buffer_before_min=request.buffer_before_min,
                buffer_after_min=request.buffer_after_min,
                hold_expires_utc=now + timedelta(minutes=self._config.hold_ttl_minutes),
                created_at=now,
                updated_at=now,
                details=request.details,
            )
            try:
                inserted = self._store.insert_if_free(booking, candidate_is_free)
            except DuplicateTokenError:
                self._logger.warning("Cancel token collision, retrying", extra={"booking_id": booking.id})
                continue

            if not inserted:
                self._logger.info(
                    "Hold rejected",
                    extra={"reason": "conflict", "start": request.start_utc.isoformat()},
                )
                raise ConflictError(f"{request.start_utc.isoformat()} - {request.end_utc.isoformat()} is taken")

            self._logger.info("Hold created", extra={"booking_id": booking.id})
            return booking

        raise ConflictError("Could not allocate a unique cancel token")

    def confirm_hold(self, hold_id: str, external_event_id: str | None, now: datetime) -> Booking:
        confirmed = self._store.transition(
            hold_id,
            BookingStatus.held,
            status=BookingStatus.confirmed,
            hold_expires_utc=None,
            external_event_id=external_event_id,
            updated_at=now,
        )
        if confirmed is not None:
            self._logger.info("Hold confirmed", extra={"booking_id": hold_id, "event_id": external_event_id})
            return confirmed

        if self._store.get(hold_id) is None:
            raise NotFoundError(f"Unknown hold {hold_id}")
        raise ExpiryRaceError(f"Hold {hold_id} is no longer held")

    def mirror_and_confirm(self, hold_id: str, now: datetime) -> ConfirmResult:
        """
        Mirror the hold to the external calendar, then confirm it.

        A calendar failure does not undo the reservation: the booking is confirmed
        without an event id and the failure is returned as `calendar_error`.
        """
        booking = self._store.get(hold_id)
        if booking is None:
            raise NotFoundError(f"Unknown hold {hold_id}")
        if booking.status != BookingStatus.held:
            raise ExpiryRaceError(f"Hold {hold_id} is {booking.status.value}")
        if booking.hold_expires_utc is not None and booking.hold_expires_utc <= now:
            raise ExpiryRaceError(f"Hold {hold_id} expired at {booking.hold_expires_utc.isoformat()}")

        event_id: str | None = None
        calendar_error: str | None = None
        if self._calendar is not None:
            try:
                event_id = self._calendar.create_event(
                    start=booking.start_utc,
                    end=booking.end_utc,
                    attendee_email=booking.email,
                    attendee_name=booking.name,
                    summary=_event_summary(booking),
                    description=_event_description(booking),
                    location=_event_location(booking),
                )
            except ExternalIntegrationError as e:
                calendar_error = e.reason
                self._logger.warning(
                    "Calendar mirror failed, confirming without event",
                    extra={"booking_id": hold_id, "error": str(e)},
                )

        try:
            confirmed = self.confirm_hold(hold_id, event_id, now)
        except ExpiryRaceError:
            if event_id:
                self._delete_event_quietly(event_id, hold_id)
            raise
        return ConfirmResult(booking=confirmed, calendar_error=calendar_error)

    def cancel(self, cancel_token: str, now: datetime) -> CancelResult:
        for _ in range(CANCEL_ATTEMPTS):
            booking = self._store.get_by_cancel_token(cancel_token)
            if booking is None:
                raise NotFoundError("Unknown cancel token")
            if booking.status == BookingStatus.cancelled:
                return CancelResult(booking=booking, already_cancelled=True)

            cancelled = self._store.transition(
                booking.id,
                booking.status,
                status=BookingStatus.cancelled,
                hold_expires_utc=None,
                updated_at=now,
            )
            if cancelled is None:
                # Status moved underneath us (confirmed or swept); re-read and retry.
                continue

            if cancelled.external_event_id:
                self._delete_event_quietly(cancelled.external_event_id, cancelled.id)
            self._logger.info("Booking cancelled", extra={"booking_id": cancelled.id})
            return CancelResult(booking=cancelled)

        raise ExpiryRaceError("Booking kept changing during cancellation")

    def sweep(self, now: datetime) -> SweepResult:
        released: list[str] = []
        for booking in self._store.list_expired_holds(now):
            swept = self._store.transition(
                booking.id,
                BookingStatus.held,
                status=BookingStatus.cancelled,
                hold_expires_utc=None,
                updated_at=now,
            )
            if swept is not None:
                released.append(booking.id)

        if released:
            self._logger.info("Expired holds released", extra={"count": len(released)})
        return SweepResult(released_ids=released)

    def pending_hold_count(self) -> int:
        return self._store.count_by_status(BookingStatus.held)

    def _delete_event_quietly(self, event_id: str, booking_id: str) -> None:
        if self._calendar is None:
            return
        try:
            self._calendar.delete_event(event_id)
        except ExternalIntegrationError as e:
            self._logger.warning(
                "Calendar delete failed",
                extra={"booking_id": booking_id, "event_id": event_id, "error": str(e)},
            )


def _event_summary(booking: Booking) -> str:
    if booking.details.duration == "long":
        return f"Booking: {booking.name} (extended)"
    return f"Booking: {booking.name}"


def _event_description(booking: Booking) -> str:
    details = booking.details
    lines = [f"Client: {booking.name}", f"Email: {booking.email}"]
    if details.time_of_day:
        lines.append(f"Time: {details.time_of_day}")
    lines.append("Meeting type: " + ("In-person" if details.meeting_type == MeetingType.in_person else "Remote"))
    if details.phone:
        lines.append(f"Phone: {details.phone}")
    if details.notes:
        lines.append("")
        lines.append(details.notes)
    return "\n".join(lines)


def _event_location(booking: Booking) -> str | None:
    if booking.details.meeting_type == MeetingType.in_person:
        return booking.details.address
    return None
