from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import lru_cache

from availability.application.ports.calendar import CalendarPort
from availability.application.use_cases.availability_listing import ListBookableDaysUseCase
from availability.application.use_cases.calendar_cache import CalendarCacheRefresher
from availability.application.use_cases.holds import HoldLifecycleUseCase
from availability.core.config import BookingConfig, Settings, configured_calendar_ids, settings
from availability.infrastructure.calendar.google_calendar import GoogleCalendar
from availability.infrastructure.calendar.memory_calendar import MemoryCalendar
from availability.infrastructure.store.json_store import JsonStore
from availability.infrastructure.store.memory_store import MemoryStore

logger = logging.getLogger(__name__)


def get_settings() -> Settings:
    return settings


@lru_cache
def get_booking_config() -> BookingConfig:
    return BookingConfig.from_settings(settings)


@lru_cache
def get_store() -> MemoryStore | JsonStore:
    if settings.STORE_PROVIDER.lower() == "json":
        return JsonStore(data_dir=settings.DATA_DIR)
    return MemoryStore()


def _has_google_credentials(source: Settings) -> bool:
    return all(
        value and value.strip()
        for value in (
            source.GOOGLE_OAUTH_CLIENT_ID,
            source.GOOGLE_OAUTH_CLIENT_SECRET,
            source.GOOGLE_OAUTH_REFRESH_TOKEN,
        )
    )


@lru_cache
def get_calendar() -> CalendarPort | None:
    """
    Resolved once per process. None means no calendar: holds are confirmed without
    a mirror and cache refreshes do nothing.
    """
    calendar_ids = configured_calendar_ids(settings)
    if _has_google_credentials(settings):
        logger.info("Using Google Calendar", extra={"count": len(calendar_ids)})
        return GoogleCalendar(
            client_id=settings.GOOGLE_OAUTH_CLIENT_ID,
            client_secret=settings.GOOGLE_OAUTH_CLIENT_SECRET,
            refresh_token=settings.GOOGLE_OAUTH_REFRESH_TOKEN,
            calendar_ids=calendar_ids,
            time_zone=settings.BUSINESS_TIMEZONE,
            base_url=settings.GOOGLE_CALENDAR_BASE_URL,
            token_url=settings.GOOGLE_TOKEN_URL,
            timeout=settings.CALENDAR_TIMEOUT_SECONDS,
        )
    if settings.ENV.lower() in {"dev", "local"}:
        logger.info("Using MemoryCalendar (no Google credentials, ENV=dev/local)")
        return MemoryCalendar(calendar_ids=calendar_ids)
    logger.warning("No calendar configured; bookings will not be mirrored")
    return None


def get_list_days_use_case() -> ListBookableDaysUseCase:
    store = get_store()
    return ListBookableDaysUseCase(store=store, cache=store, config=get_booking_config())


def get_hold_use_case() -> HoldLifecycleUseCase:
    store = get_store()
    return HoldLifecycleUseCase(
        store=store,
        cache=store,
        calendar=get_calendar(),
        config=get_booking_config(),
    )


def get_cache_refresher() -> CalendarCacheRefresher:
    return CalendarCacheRefresher(cache=get_store(), calendar=get_calendar(), config=get_booking_config())


def get_now() -> datetime:
    return datetime.now(timezone.utc)
