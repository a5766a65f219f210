from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable

from availability.domain.entities.booking import Booking, BookingStatus


class BookingStorePort(ABC):
    @abstractmethod
    def insert_if_free(self, booking: Booking, is_free: Callable[[list[Booking]], bool]) -> bool:
        """
        Atomically evaluate `is_free` over the current held/confirmed bookings and
        insert `booking` only if it returns True. Returns whether the insert happened.
        Raises DuplicateTokenError if the cancel token is already taken.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, booking_id: str) -> Booking | None:
        raise NotImplementedError

    @abstractmethod
    def get_by_cancel_token(self, cancel_token: str) -> Booking | None:
        raise NotImplementedError

    @abstractmethod
    def list_active(self, ending_after: datetime | None = None) -> list[Booking]:
        """Held and confirmed bookings, optionally only those ending at or after a time."""
        raise NotImplementedError

    @abstractmethod
    def list_expired_holds(self, now: datetime) -> list[Booking]:
        """Held bookings whose hold_expires_utc <= now."""
        raise NotImplementedError

    @abstractmethod
    def count_by_status(self, status: BookingStatus) -> int:
        raise NotImplementedError

    @abstractmethod
    def transition(self, booking_id: str, expected: BookingStatus, **changes: Any) -> Booking | None:
        """
        Compare-and-swap on status: apply `changes` only if the stored status still
        equals `expected`. Returns the updated booking, or None if the swap failed.
        """
        raise NotImplementedError
