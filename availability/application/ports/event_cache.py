from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from availability.domain.entities.cached_event import CachedExternalEvent


class EventCachePort(ABC):
    @abstractmethod
    def list_cached_events(self, range_start: datetime, range_end: datetime) -> list[CachedExternalEvent]:
        """Cached events overlapping the range. Expired entries are included."""
        raise NotImplementedError

    @abstractmethod
    def upsert_cached_events(self, events: list[CachedExternalEvent]) -> None:
        raise NotImplementedError

    @abstractmethod
    def purge_expired(self, now: datetime, calendar_ids: list[str] | None = None) -> int:
        """Delete entries with expires_at <= now, limited to `calendar_ids` when given."""
        raise NotImplementedError
