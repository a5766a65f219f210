"""
Tests for the hold -> confirm -> cancel lifecycle and the expiry sweep.
"""

from __future__ import annotations

import random
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from itertools import combinations

import pytest

from availability.application.exceptions import ConflictError, ExpiryRaceError, NotFoundError
from availability.application.use_cases.holds import HoldLifecycleUseCase, HoldRequest
from availability.application.utils.conflicts import buffered_interval, intervals_overlap
from availability.domain.entities.booking import BookingDetails, BookingStatus, MeetingType
from availability.infrastructure.calendar.memory_calendar import MemoryCalendar
from availability.infrastructure.store.memory_store import MemoryStore
from conftest import LOCAL_MORNING, utc


def _hold(holds, date_key="2026-01-16", time_of_day="10am", duration="short", now=LOCAL_MORNING, **kwargs):
    return holds.hold_selection("Ada Lovelace", "Ada@Example.com ", date_key, time_of_day, duration, now, **kwargs)


def test_hold_selection_creates_held_booking(holds, store):
    booking = _hold(holds)

    assert booking.status == BookingStatus.held
    assert booking.start_utc == utc(2026, 1, 15, 21)
    assert booking.end_utc == utc(2026, 1, 15, 22)
    assert booking.email == "ada@example.com"
    assert booking.buffer_before_min == 15 and booking.buffer_after_min == 15
    assert booking.hold_expires_utc == LOCAL_MORNING + timedelta(minutes=15)
    assert booking.details.time_of_day == "10am"
    assert booking.details.duration == "short"
    assert len(booking.cancel_token) >= 32
    assert store.get(booking.id) == booking


def test_hold_for_next_morning_resolves_to_previous_utc_day(holds):
    booking = _hold(holds, date_key="2026-01-15", now=utc(2026, 1, 14, 0, 0))
    assert booking.start_utc == utc(2026, 1, 14, 21)


def test_conflicting_hold_is_rejected_and_not_persisted(holds, store):
    _hold(holds)

    with pytest.raises(ConflictError):
        _hold(holds)
    with pytest.raises(ConflictError):
        _hold(holds, time_of_day="11am")  # inside the 15 minute buffer

    assert store.count_by_status(BookingStatus.held) == 1


def test_hold_rejected_by_cached_external_event(holds, store, calendar, refresher):
    calendar.add_busy("work", utc(2026, 1, 15, 21, 30), utc(2026, 1, 15, 22, 0))
    refresher.refresh(LOCAL_MORNING)

    with pytest.raises(ConflictError):
        _hold(holds)
    assert store.count_by_status(BookingStatus.held) == 0


def test_mirror_and_confirm_creates_calendar_event(holds, calendar):
    booking = _hold(holds, details=BookingDetails(meeting_type=MeetingType.in_person, address="1 Queen St"))

    result = holds.mirror_and_confirm(booking.id, LOCAL_MORNING + timedelta(minutes=1))

    assert result.calendar_error is None
    assert result.booking.status == BookingStatus.confirmed
    assert result.booking.hold_expires_utc is None
    assert result.booking.external_event_id == "mock_event_1"
    assert result.booking.details.address == "1 Queen St"
    assert calendar.list_events("work", utc(2026, 1, 15), utc(2026, 1, 17))[0].event_id == "mock_event_1"


def test_calendar_failure_still_confirms(holds, calendar):
    calendar.failing.add("create")
    booking = _hold(holds)

    result = holds.mirror_and_confirm(booking.id, LOCAL_MORNING)

    assert result.booking.status == BookingStatus.confirmed
    assert result.booking.external_event_id is None
    assert result.calendar_error == "calendar unavailable"


def test_confirm_without_calendar(store, config):
    holds = HoldLifecycleUseCase(store=store, cache=store, calendar=None, config=config)
    booking = _hold(holds)

    result = holds.mirror_and_confirm(booking.id, LOCAL_MORNING)

    assert result.booking.status == BookingStatus.confirmed
    assert result.calendar_error is None


def test_confirm_unknown_hold(holds):
    with pytest.raises(NotFoundError):
        holds.mirror_and_confirm("missing", LOCAL_MORNING)
    with pytest.raises(NotFoundError):
        holds.confirm_hold("missing", None, LOCAL_MORNING)


def test_confirm_after_expiry_is_rejected(holds, calendar):
    booking = _hold(holds)

    with pytest.raises(ExpiryRaceError):
        holds.mirror_and_confirm(booking.id, booking.hold_expires_utc)
    assert calendar.list_events("work", utc(2026, 1, 15), utc(2026, 1, 17)) == []


def test_sweep_boundary(holds, store):
    expiry = utc(2026, 1, 15, 0, 0)
    ttl = timedelta(minutes=15)
    early = _hold(holds, now=expiry - ttl - timedelta(seconds=1))
    late = _hold(holds, time_of_day="3pm", now=expiry - ttl + timedelta(seconds=1))

    assert holds.sweep(expiry - timedelta(seconds=2)).released_count == 0

    result = holds.sweep(expiry)
    assert result.released_ids == [early.id]
    assert store.get(early.id).status == BookingStatus.cancelled
    assert store.get(late.id).status == BookingStatus.held

    assert holds.sweep(expiry + timedelta(seconds=2)).released_ids == [late.id]
    assert holds.pending_hold_count() == 0


def test_swept_hold_frees_the_slot(holds):
    booking = _hold(holds)
    holds.sweep(booking.hold_expires_utc + timedelta(seconds=1))

    again = _hold(holds, now=LOCAL_MORNING + timedelta(minutes=20))
    assert again.start_utc == booking.start_utc


def test_sweep_does_not_touch_confirmed_bookings(holds, store):
    booking = _hold(holds)
    holds.mirror_and_confirm(booking.id, LOCAL_MORNING)

    assert holds.sweep(LOCAL_MORNING + timedelta(hours=1)).released_count == 0
    assert store.get(booking.id).status == BookingStatus.confirmed


class SweepingCalendar(MemoryCalendar):
    """Runs the expiry sweep while the calendar call is in flight."""

    def __init__(self) -> None:
        super().__init__()
        self.holds: HoldLifecycleUseCase | None = None
        self.sweep_at = None

    def create_event(self, *args, **kwargs) -> str:
        event_id = super().create_event(*args, **kwargs)
        self.holds.sweep(self.sweep_at)
        return event_id


def test_sweep_wins_race_with_confirmation(store, config):
    calendar = SweepingCalendar()
    holds = HoldLifecycleUseCase(store=store, cache=store, calendar=calendar, config=config)
    calendar.holds = holds
    booking = _hold(holds)
    calendar.sweep_at = booking.hold_expires_utc

    with pytest.raises(ExpiryRaceError):
        holds.mirror_and_confirm(booking.id, booking.hold_expires_utc - timedelta(seconds=1))

    assert store.get(booking.id).status == BookingStatus.cancelled
    assert calendar.deleted == ["mock_event_1"]


def test_cancel_is_idempotent_and_deletes_event_once(holds, store, calendar):
    booking = _hold(holds)
    holds.mirror_and_confirm(booking.id, LOCAL_MORNING)

    first = holds.cancel(booking.cancel_token, LOCAL_MORNING + timedelta(hours=1))
    second = holds.cancel(booking.cancel_token, LOCAL_MORNING + timedelta(hours=2))

    assert first.already_cancelled is False
    assert first.booking.status == BookingStatus.cancelled
    assert second.already_cancelled is True
    assert calendar.deleted == ["mock_event_1"]
    assert store.get(booking.id).updated_at == LOCAL_MORNING + timedelta(hours=1)


def test_cancel_survives_calendar_delete_failure(holds, store, calendar):
    booking = _hold(holds)
    holds.mirror_and_confirm(booking.id, LOCAL_MORNING)
    calendar.failing.add("delete")

    result = holds.cancel(booking.cancel_token, LOCAL_MORNING)

    assert result.booking.status == BookingStatus.cancelled
    assert store.get(booking.id).status == BookingStatus.cancelled


def test_cancel_unknown_token(holds):
    with pytest.raises(NotFoundError):
        holds.cancel("not-a-token", LOCAL_MORNING)


def test_cancelled_hold_frees_the_slot(holds):
    booking = _hold(holds)
    holds.cancel(booking.cancel_token, LOCAL_MORNING)

    assert _hold(holds).status == BookingStatus.held


def test_random_holds_stay_pairwise_disjoint(store, config):
    holds = HoldLifecycleUseCase(store=store, cache=store, calendar=None, config=config)
    rng = random.Random(20260115)
    base = utc(2026, 1, 16, 0, 0)

    for _ in range(200):
        start = base + timedelta(minutes=5 * rng.randrange(0, 288))
        request = HoldRequest(
            name="Random",
            email="random@example.com",
            start_utc=start,
            end_utc=start + timedelta(minutes=rng.choice([30, 60, 90, 120])),
            buffer_before_min=rng.choice([0, 15]),
            buffer_after_min=rng.choice([0, 15]),
        )
        try:
            holds.create_hold(request, LOCAL_MORNING)
        except ConflictError:
            pass

    active = store.list_active()
    assert active
    for a, b in combinations(active, 2):
        assert not intervals_overlap(*buffered_interval(a), *buffered_interval(b))


def test_concurrent_holds_for_one_slot_admit_exactly_one(config):
    store = MemoryStore()
    holds = HoldLifecycleUseCase(store=store, cache=store, calendar=None, config=config)
    request = HoldRequest(
        name="Racer",
        email="racer@example.com",
        start_utc=utc(2026, 1, 16, 0, 0),
        end_utc=utc(2026, 1, 16, 1, 0),
        buffer_before_min=15,
        buffer_after_min=15,
    )

    def attempt(_):
        try:
            holds.create_hold(request, LOCAL_MORNING)
            return True
        except ConflictError:
            return False

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(attempt, range(32)))

    assert outcomes.count(True) == 1
    assert store.count_by_status(BookingStatus.held) == 1


def test_lapsed_hold_does_not_block_a_new_hold(holds, store):
    """A hold past its expiry frees the slot even before the scheduled sweep runs."""
    first = _hold(holds, time_of_day="2pm")
    later = first.hold_expires_utc + timedelta(minutes=5)

    second = _hold(holds, time_of_day="2pm", now=later)

    assert second.start_utc == first.start_utc
    assert store.get(first.id).status == BookingStatus.cancelled
    assert holds.pending_hold_count() == 1


def test_lapsed_hold_is_not_shown_as_busy(holds, list_days):
    first = _hold(holds, time_of_day="2pm")
    friday = list_days.execute(first.hold_expires_utc)[1]

    two_pm = next(w for w in friday.time_windows if w.value == "2pm")
    assert two_pm.available_short is True
