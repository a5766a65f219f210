"""
Tests for the external calendar cache refresh and stale-but-present reads.
"""

from __future__ import annotations

from datetime import timedelta

from availability.application.use_cases.calendar_cache import CalendarCacheRefresher
from conftest import LOCAL_MORNING, utc

EVERYTHING = (utc(2026, 1, 1), utc(2026, 3, 1))


def _window(day, value):
    return next(w for w in day.time_windows if w.value == value)


def test_refresh_caches_every_calendar(refresher, store, calendar):
    calendar.add_busy("work", utc(2026, 1, 15, 23), utc(2026, 1, 16, 0), event_id="w1")
    calendar.add_busy("personal", utc(2026, 1, 16, 23), utc(2026, 1, 17, 0), event_id="p1")

    result = refresher.refresh(LOCAL_MORNING)

    assert result.cached_count == 2
    assert result.failed_calendars == []
    cached = {e.key: e for e in store.list_cached_events(*EVERYTHING)}
    assert set(cached) == {("w1", "work"), ("p1", "personal")}
    assert cached[("w1", "work")].expires_at == LOCAL_MORNING + timedelta(minutes=15)
    assert cached[("w1", "work")].fetched_at == LOCAL_MORNING


def test_refresh_ignores_events_past_the_horizon(refresher, store, calendar):
    calendar.add_busy("work", utc(2026, 3, 1), utc(2026, 3, 1, 1))

    assert refresher.refresh(LOCAL_MORNING).cached_count == 0
    assert store.list_cached_events(utc(2026, 1, 1), utc(2026, 4, 1)) == []


def test_one_failing_calendar_does_not_block_the_others(refresher, store, calendar):
    calendar.add_busy("work", utc(2026, 1, 15, 23), utc(2026, 1, 16, 0), event_id="w1")
    calendar.add_busy("personal", utc(2026, 1, 16, 23), utc(2026, 1, 17, 0), event_id="p1")
    calendar.failing.add("personal")

    result = refresher.refresh(LOCAL_MORNING)

    assert result.cached_count == 1
    assert result.failed_calendars == ["personal"]
    assert [e.external_event_id for e in store.list_cached_events(*EVERYTHING)] == ["w1"]


def test_refresh_is_idempotent(refresher, store, calendar):
    calendar.add_busy("work", utc(2026, 1, 15, 23), utc(2026, 1, 16, 0), event_id="w1")

    refresher.refresh(LOCAL_MORNING)
    refresher.refresh(LOCAL_MORNING)

    assert len(store.list_cached_events(*EVERYTHING)) == 1


def test_successful_refresh_purges_expired_entries(refresher, store, calendar):
    calendar.add_busy("work", utc(2026, 1, 15, 23), utc(2026, 1, 16, 0), event_id="w1")
    refresher.refresh(LOCAL_MORNING)
    calendar.delete_event("w1")

    result = refresher.refresh(LOCAL_MORNING + timedelta(minutes=30))

    assert result.deleted_count == 1
    assert store.list_cached_events(*EVERYTHING) == []


def test_failed_calendar_keeps_its_expired_entries(refresher, store, calendar):
    calendar.add_busy("work", utc(2026, 1, 15, 23), utc(2026, 1, 16, 0), event_id="w1")
    calendar.add_busy("personal", utc(2026, 1, 16, 23), utc(2026, 1, 17, 0), event_id="p1")
    refresher.refresh(LOCAL_MORNING)
    calendar.delete_event("w1")
    calendar.failing.add("personal")

    result = refresher.refresh(LOCAL_MORNING + timedelta(minutes=30))

    assert result.deleted_count == 1
    assert result.failed_calendars == ["personal"]
    assert [e.key for e in store.list_cached_events(*EVERYTHING)] == [("p1", "personal")]


def test_stale_entries_still_block_availability(refresher, list_days, calendar):
    """Friday 12:00-13:00 local stays blocked after the cache expires and the provider is down."""
    calendar.add_busy("work", utc(2026, 1, 15, 23), utc(2026, 1, 16, 0))
    refresher.refresh(LOCAL_MORNING)
    calendar.failing.add("list")

    later = LOCAL_MORNING + timedelta(minutes=30)
    result = refresher.refresh(later)
    days = list_days.execute(later)

    assert result.failed_calendars == ["work", "personal"]
    assert result.deleted_count == 0
    friday = next(d for d in days if d.date_key == "2026-01-16")
    assert _window(friday, "12pm").available_short is False
    assert _window(friday, "3pm").available_short is True


def test_refresh_without_calendar_is_a_no_op(store, config):
    refresher = CalendarCacheRefresher(cache=store, calendar=None, config=config)

    result = refresher.refresh(LOCAL_MORNING)

    assert (result.cached_count, result.deleted_count, result.failed_calendars) == (0, 0, [])


def test_entries_expiring_at_refresh_time_are_purged(refresher, store, calendar):
    """A refresh on the cron cadence drops events deleted upstream since the last run."""
    calendar.add_busy("work", utc(2026, 1, 15, 23), utc(2026, 1, 16, 0), event_id="w1")
    refresher.refresh(LOCAL_MORNING)
    calendar.delete_event("w1")

    result = refresher.refresh(LOCAL_MORNING + timedelta(minutes=15))

    assert result.deleted_count == 1
    assert store.list_cached_events(*EVERYTHING) == []
