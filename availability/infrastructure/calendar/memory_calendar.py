from __future__ import annotations

import logging
from datetime import datetime

from availability.application.exceptions import ExternalIntegrationError
from availability.application.ports.calendar import CalendarPort
from availability.domain.entities.cached_event import BusyInterval


class MemoryCalendar(CalendarPort):
    """In-process calendar for local runs and tests. Set `failing` to simulate an outage."""

    def __init__(self, calendar_ids: list[str] | None = None) -> None:
        self._calendar_ids = list(calendar_ids or ["primary"])
        self._events: dict[str, BusyInterval] = {}
        self._counter = 0
        self.failing: set[str] = set()  # operation names or calendar ids that raise
        self.deleted: list[str] = []
        self._logger = logging.getLogger(__name__)

    @property
    def calendar_ids(self) -> list[str]:
        return list(self._calendar_ids)

    def add_busy(self, calendar_id: str, start: datetime, end: datetime, event_id: str | None = None) -> str:
        self._counter += 1
        event_id = event_id or f"mock_event_{self._counter}"
        self._events[event_id] = BusyInterval(event_id=event_id, calendar_id=calendar_id, start_utc=start, end_utc=end)
        return event_id

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
        if "create" in self.failing:
            raise ExternalIntegrationError("Mock calendar create failure")
        event_id = self.add_busy(self._calendar_ids[0], start, end)
        self._logger.info("Mock calendar event created", extra={"event_id": event_id})
        return event_id

    def delete_event(self, event_id: str) -> None:
        if "delete" in self.failing:
            raise ExternalIntegrationError("Mock calendar delete failure")
        self.deleted.append(event_id)
        if self._events.pop(event_id, None) is not None:
            self._logger.info("Mock calendar event deleted", extra={"event_id": event_id})

    def list_events(self, calendar_id: str, start: datetime, end: datetime) -> list[BusyInterval]:
        if "list" in self.failing or calendar_id in self.failing:
            raise ExternalIntegrationError(f"Mock calendar list failure for {calendar_id}")
        return [
            e for e in self._events.values()
            if e.calendar_id == calendar_id and e.start_utc < end and e.end_utc > start
        ]
