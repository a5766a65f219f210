from __future__ import annotations

import logging
from datetime import datetime, timedelta

from availability.application.ports.booking_store import BookingStorePort
from availability.application.ports.event_cache import EventCachePort
from availability.application.use_cases.slot_generator import build_available_days
from availability.core.config import BookingConfig
from availability.domain.entities.bookable_day import BookableDay
from availability.domain.entities.booking import Booking, BookingStatus


class ListBookableDaysUseCase:
    def __init__(self, store: BookingStorePort, cache: EventCachePort, config: BookingConfig) -> None:
        self._store = store
        self._cache = cache
        self._config = config
        self._logger = logging.getLogger(__name__)

    def execute(self, now: datetime) -> list[BookableDay]:
        # One extra day covers the tail of the last local day and the buffers around it.
        horizon_end = now + timedelta(days=self._config.max_advance_days + 1)
        bookings = [b for b in self._store.list_active(ending_after=now) if not _hold_lapsed(b, now)]
        events = self._cache.list_cached_events(now - timedelta(days=1), horizon_end)
        self._logger.debug(
            "Computing availability",
            extra={"bookings": len(bookings), "count": len(events)},
        )
        return build_available_days(bookings, events, now, self._config)


def _hold_lapsed(booking: Booking, now: datetime) -> bool:
    return (
        booking.status == BookingStatus.held
        and booking.hold_expires_utc is not None
        and booking.hold_expires_utc <= now
    )
