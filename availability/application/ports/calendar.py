from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from availability.domain.entities.cached_event import BusyInterval


class CalendarPort(ABC):
    @property
    @abstractmethod
    def calendar_ids(self) -> list[str]:
        """Calendars consulted for busy time, booking calendar first."""
        raise NotImplementedError

    @abstractmethod
    def create_event(
        self,
        start: datetime,
        end: datetime,
        attendee_email: str,
        attendee_name: str,
        summary: str,
        description: str | None = None,
        location: str | None = None,
    ) -> str:
        """Create an event on the booking calendar. Returns event_id."""
        raise NotImplementedError

    @abstractmethod
    def delete_event(self, event_id: str) -> None:
        """Delete an event from the booking calendar."""
        raise NotImplementedError

    @abstractmethod
    def list_events(self, calendar_id: str, start: datetime, end: datetime) -> list[BusyInterval]:
        """Busy intervals on one calendar between start and end."""
        raise NotImplementedError
