from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from availability.application.exceptions import ExternalIntegrationError
from availability.application.ports.calendar import CalendarPort
from availability.application.ports.event_cache import EventCachePort
from availability.core.config import BookingConfig
from availability.domain.entities.cached_event import CachedExternalEvent


@dataclass(frozen=True)
class RefreshResult:
    cached_count: int = 0
    deleted_count: int = 0
    failed_calendars: list[str] = field(default_factory=list)


class CalendarCacheRefresher:
    """
    Pulls busy time from every configured calendar into the local cache.

    Reads never hit the calendar provider; they only see what the last successful
    refresh of each calendar stored. A calendar that fails keeps its previous
    entries, including expired ones, until a later refresh of it succeeds.
    """

    def __init__(
        self,
        cache: EventCachePort,
        calendar: CalendarPort | None,
        config: BookingConfig,
    ) -> None:
        self._cache = cache
        self._calendar = calendar
        self._config = config
        self._logger = logging.getLogger(__name__)

    def refresh(self, now: datetime) -> RefreshResult:
        if self._calendar is None:
            self._logger.info("No calendar configured, skipping cache refresh")
            return RefreshResult()

        horizon_end = now + timedelta(days=self._config.max_advance_days)
        expires_at = now + timedelta(minutes=self._config.cache_ttl_minutes)

        fresh: list[CachedExternalEvent] = []
        refreshed: list[str] = []
        failed: list[str] = []
        for calendar_id in self._calendar.calendar_ids:
            try:
                intervals = self._calendar.list_events(calendar_id, now, horizon_end)
            except ExternalIntegrationError as e:
                failed.append(calendar_id)
                self._logger.warning(
                    "Calendar fetch failed, keeping cached entries",
                    extra={"calendar_id": calendar_id, "error": str(e)},
                )
                continue

            refreshed.append(calendar_id)
            fresh.extend(
                CachedExternalEvent(
                    external_event_id=interval.event_id,
                    calendar_id=calendar_id,
                    start_utc=interval.start_utc,
                    end_utc=interval.end_utc,
                    fetched_at=now,
                    expires_at=expires_at,
                )
                for interval in intervals
            )

        deleted = self._cache.purge_expired(now, refreshed) if refreshed else 0
        self._cache.upsert_cached_events(fresh)

        self._logger.info(
            "Calendar cache refreshed",
            extra={"count": len(fresh), "deleted": deleted, "failed": len(failed)},
        )
        return RefreshResult(cached_count=len(fresh), deleted_count=deleted, failed_calendars=failed)
