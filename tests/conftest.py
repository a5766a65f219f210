from __future__ import annotations

from datetime import datetime, timezone

import pytest

from availability.application.use_cases.availability_listing import ListBookableDaysUseCase
from availability.application.use_cases.calendar_cache import CalendarCacheRefresher
from availability.application.use_cases.holds import HoldLifecycleUseCase
from availability.core.config import BookingConfig
from availability.infrastructure.calendar.memory_calendar import MemoryCalendar
from availability.infrastructure.store.memory_store import MemoryStore

# Thursday 2026-01-15 10:00 in Auckland (NZDT, UTC+13).
LOCAL_MORNING = datetime(2026, 1, 14, 21, 0, tzinfo=timezone.utc)


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def config() -> BookingConfig:
    return BookingConfig()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def calendar() -> MemoryCalendar:
    return MemoryCalendar(calendar_ids=["work", "personal"])


@pytest.fixture
def holds(store: MemoryStore, calendar: MemoryCalendar, config: BookingConfig) -> HoldLifecycleUseCase:
    return HoldLifecycleUseCase(store=store, cache=store, calendar=calendar, config=config)


@pytest.fixture
def refresher(store: MemoryStore, calendar: MemoryCalendar, config: BookingConfig) -> CalendarCacheRefresher:
    return CalendarCacheRefresher(cache=store, calendar=calendar, config=config)


@pytest.fixture
def list_days(store: MemoryStore, config: BookingConfig) -> ListBookableDaysUseCase:
    return ListBookableDaysUseCase(store=store, cache=store, config=config)
