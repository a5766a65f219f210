from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Protocol

from availability.domain.entities.booking import Booking


class TimedEvent(Protocol):
    start_utc: datetime
    end_utc: datetime


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    # Half-open intervals: touching endpoints do not overlap.
    return a_start < b_end and b_start < a_end


def buffered_interval(booking: Booking) -> tuple[datetime, datetime]:
    return (
        booking.start_utc - timedelta(minutes=booking.buffer_before_min),
        booking.end_utc + timedelta(minutes=booking.buffer_after_min),
    )


def is_free(
    candidate_start: datetime,
    candidate_end: datetime,
    bookings: Iterable[Booking],
    external_events: Iterable[TimedEvent],
    buffer_min: int,
) -> bool:
    """
    True if [candidate_start, candidate_end) misses every buffered booking and
    every external event widened by `buffer_min` on both sides.
    """
    for booking in bookings:
        busy_start, busy_end = buffered_interval(booking)
        if intervals_overlap(candidate_start, candidate_end, busy_start, busy_end):
            return False

    padding = timedelta(minutes=buffer_min)
    for event in external_events:
        if intervals_overlap(candidate_start, candidate_end, event.start_utc - padding, event.end_utc + padding):
            return False

    return True
