from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class BookingStatus(str, Enum):
    held = "held"
    confirmed = "confirmed"
    cancelled = "cancelled"


ACTIVE_STATUSES = frozenset({BookingStatus.held, BookingStatus.confirmed})


class MeetingType(str, Enum):
    in_person = "in_person"
    remote = "remote"


@dataclass(frozen=True)
class BookingDetails:
    meeting_type: MeetingType = MeetingType.remote
    address: str | None = None  # required for in_person
    phone: str | None = None
    notes: str | None = None
    time_of_day: str | None = None  # window value, e.g. "10am"
    duration: str | None = None  # "short" | "long"


@dataclass(frozen=True)
class Booking:
    id: str
    name: str
    email: str
    start_utc: datetime
    end_utc: datetime
    status: BookingStatus
    cancel_token: str
    buffer_before_min: int = 0
    buffer_after_min: int = 0
    hold_expires_utc: datetime | None = None  # set iff held
    external_event_id: str | None = None  # set iff confirmed and mirrored
    created_at: datetime | None = None
    updated_at: datetime | None = None
    details: BookingDetails = field(default_factory=BookingDetails)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES
