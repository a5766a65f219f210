from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class BusyInterval:
    event_id: str
    calendar_id: str
    start_utc: datetime
    end_utc: datetime


@dataclass(frozen=True)
class CachedExternalEvent:
    external_event_id: str
    calendar_id: str
    start_utc: datetime
    end_utc: datetime
    fetched_at: datetime
    expires_at: datetime

    @property
    def key(self) -> tuple[str, str]:
        return (self.external_event_id, self.calendar_id)
