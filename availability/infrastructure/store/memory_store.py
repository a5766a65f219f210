from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable

from availability.application.exceptions import DuplicateTokenError
from availability.application.ports.booking_store import BookingStorePort
from availability.application.ports.event_cache import EventCachePort
from availability.domain.entities.booking import Booking, BookingStatus
from availability.domain.entities.cached_event import CachedExternalEvent


class MemoryStore(BookingStorePort, EventCachePort):
    def __init__(self) -> None:
        self._bookings: dict[str, Booking] = {}
        self._token_index: dict[str, str] = {}
        self._events: dict[tuple[str, str], CachedExternalEvent] = {}
        self._lock = threading.Lock()

    def insert_if_free(self, booking: Booking, is_free: Callable[[list[Booking]], bool]) -> bool:
        with self._lock:
            if booking.cancel_token in self._token_index:
                raise DuplicateTokenError(f"Cancel token already used by {self._token_index[booking.cancel_token]}")
            active = [b for b in self._bookings.values() if b.is_active]
            if not is_free(active):
                return False
            self._bookings[booking.id] = booking
            self._token_index[booking.cancel_token] = booking.id
            return True

    def get(self, booking_id: str) -> Booking | None:
        return self._bookings.get(booking_id)

    def get_by_cancel_token(self, cancel_token: str) -> Booking | None:
        booking_id = self._token_index.get(cancel_token)
        return self._bookings.get(booking_id) if booking_id else None

    def list_active(self, ending_after: datetime | None = None) -> list[Booking]:
        with self._lock:
            bookings = list(self._bookings.values())
        return [
            b for b in bookings
            if b.is_active and (ending_after is None or b.end_utc >= ending_after)
        ]

    def list_expired_holds(self, now: datetime) -> list[Booking]:
        with self._lock:
            bookings = list(self._bookings.values())
        return [
            b for b in bookings
            if b.status == BookingStatus.held and b.hold_expires_utc is not None and b.hold_expires_utc <= now
        ]

    def count_by_status(self, status: BookingStatus) -> int:
        with self._lock:
            return sum(1 for b in self._bookings.values() if b.status == status)

    def transition(self, booking_id: str, expected: BookingStatus, **changes: Any) -> Booking | None:
        with self._lock:
            current = self._bookings.get(booking_id)
            if current is None or current.status != expected:
                return None
            updated = replace(current, **changes)
            self._bookings[booking_id] = updated
            return updated

    def list_cached_events(self, range_start: datetime, range_end: datetime) -> list[CachedExternalEvent]:
        with self._lock:
            events = list(self._events.values())
        return [e for e in events if e.start_utc < range_end and e.end_utc > range_start]

    def upsert_cached_events(self, events: list[CachedExternalEvent]) -> None:
        with self._lock:
            for event in events:
                self._events[event.key] = event

    def purge_expired(self, now: datetime, calendar_ids: list[str] | None = None) -> int:
        with self._lock:
            expired = [
                key for key, event in self._events.items()
                if event.expires_at <= now and (calendar_ids is None or event.calendar_id in calendar_ids)
            ]
            for key in expired:
                del self._events[key]
            return len(expired)
