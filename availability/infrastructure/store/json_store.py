from __future__ import annotations

import json
import logging
import threading
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from availability.application.exceptions import DuplicateTokenError
from availability.application.ports.booking_store import BookingStorePort
from availability.application.ports.event_cache import EventCachePort
from availability.domain.entities.booking import Booking, BookingDetails, BookingStatus, MeetingType
from availability.domain.entities.cached_event import CachedExternalEvent

logger = logging.getLogger(__name__)


class JsonStore(BookingStorePort, EventCachePort):
    """
    File-backed store: one JSON document for bookings, one for the calendar cache.

    Every operation is a locked read-modify-write with an atomic rename, so the
    check inside `insert_if_free` and the compare-and-swap in `transition` cannot
    interleave with other writers in this process.
    """

    def __init__(self, data_dir: str = "./data") -> None:
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._bookings_path = self._data_dir / "bookings.json"
        self._cache_path = self._data_dir / "calendar_cache.json"
        self._lock = threading.RLock()

    def insert_if_free(self, booking: Booking, is_free: Callable[[list[Booking]], bool]) -> bool:
        with self._lock:
            bookings = self._load_bookings()
            if any(b.cancel_token == booking.cancel_token for b in bookings):
                raise DuplicateTokenError("Cancel token already used")
            if not is_free([b for b in bookings if b.is_active]):
                return False
            bookings.append(booking)
            self._save_bookings(bookings)
            return True

    def get(self, booking_id: str) -> Booking | None:
        with self._lock:
            return next((b for b in self._load_bookings() if b.id == booking_id), None)

    def get_by_cancel_token(self, cancel_token: str) -> Booking | None:
        with self._lock:
            return next((b for b in self._load_bookings() if b.cancel_token == cancel_token), None)

    def list_active(self, ending_after: datetime | None = None) -> list[Booking]:
        with self._lock:
            bookings = self._load_bookings()
        return [
            b for b in bookings
            if b.is_active and (ending_after is None or b.end_utc >= ending_after)
        ]

    def list_expired_holds(self, now: datetime) -> list[Booking]:
        with self._lock:
            bookings = self._load_bookings()
        return [
            b for b in bookings
            if b.status == BookingStatus.held and b.hold_expires_utc is not None and b.hold_expires_utc <= now
        ]

    def count_by_status(self, status: BookingStatus) -> int:
        with self._lock:
            return sum(1 for b in self._load_bookings() if b.status == status)

    def transition(self, booking_id: str, expected: BookingStatus, **changes: Any) -> Booking | None:
        with self._lock:
            bookings = self._load_bookings()
            for index, current in enumerate(bookings):
                if current.id != booking_id:
                    continue
                if current.status != expected:
                    return None
                updated = replace(current, **changes)
                bookings[index] = updated
                self._save_bookings(bookings)
                return updated
            return None

    def list_cached_events(self, range_start: datetime, range_end: datetime) -> list[CachedExternalEvent]:
        with self._lock:
            events = self._load_events()
        return [e for e in events if e.start_utc < range_end and e.end_utc > range_start]

    def upsert_cached_events(self, events: list[CachedExternalEvent]) -> None:
        if not events:
            return
        with self._lock:
            by_key = {e.key: e for e in self._load_events()}
            for event in events:
                by_key[event.key] = event
            self._save_events(list(by_key.values()))

    def purge_expired(self, now: datetime, calendar_ids: list[str] | None = None) -> int:
        with self._lock:
            events = self._load_events()
            kept = [
                e for e in events
                if not (e.expires_at <= now and (calendar_ids is None or e.calendar_id in calendar_ids))
            ]
            removed = len(events) - len(kept)
            if removed:
                self._save_events(kept)
            return removed

    def _load_bookings(self) -> list[Booking]:
        data = self._read_document(self._bookings_path)
        return [_deserialize_booking(item) for item in data.get("bookings", [])]

    def _save_bookings(self, bookings: list[Booking]) -> None:
        self._write_document(
            self._bookings_path,
            {"version": 1, "bookings": [_serialize_booking(b) for b in bookings]},
        )

    def _load_events(self) -> list[CachedExternalEvent]:
        data = self._read_document(self._cache_path)
        return [_deserialize_event(item) for item in data.get("events", [])]

    def _save_events(self, events: list[CachedExternalEvent]) -> None:
        self._write_document(
            self._cache_path,
            {"version": 1, "events": [_serialize_event(e) for e in events]},
        )

    def _read_document(self, path: Path) -> dict[str, Any]:
        if not path.exists():
            return {"version": 1}
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write_document(self, path: Path, data: dict[str, Any]) -> None:
        """Write to a temp file, then rename over the target."""
        temp_path = path.with_suffix(".json.tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            temp_path.replace(path)
        except OSError:
            logger.exception("Failed to write store document", extra={"path": str(path)})
            if temp_path.exists():
                temp_path.unlink()
            raise


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _serialize_booking(booking: Booking) -> dict[str, Any]:
    details = booking.details
    return {
        "id": booking.id,
        "name": booking.name,
        "email": booking.email,
        "start_utc": _iso(booking.start_utc),
        "end_utc": _iso(booking.end_utc),
        "status": booking.status.value,
        "cancel_token": booking.cancel_token,
        "buffer_before_min": booking.buffer_before_min,
        "buffer_after_min": booking.buffer_after_min,
        "hold_expires_utc": _iso(booking.hold_expires_utc),
        "external_event_id": booking.external_event_id,
        "created_at": _iso(booking.created_at),
        "updated_at": _iso(booking.updated_at),
        "details": {
            "meeting_type": details.meeting_type.value,
            "address": details.address,
            "phone": details.phone,
            "notes": details.notes,
            "time_of_day": details.time_of_day,
            "duration": details.duration,
        },
    }


def _deserialize_booking(data: dict[str, Any]) -> Booking:
    details = data.get("details") or {}
    return Booking(
        id=data["id"],
        name=data["name"],
        email=data["email"],
        start_utc=_parse(data["start_utc"]),
        end_utc=_parse(data["end_utc"]),
        status=BookingStatus(data["status"]),
        cancel_token=data["cancel_token"],
        buffer_before_min=data.get("buffer_before_min", 0),
        buffer_after_min=data.get("buffer_after_min", 0),
        hold_expires_utc=_parse(data.get("hold_expires_utc")),
        external_event_id=data.get("external_event_id"),
        created_at=_parse(data.get("created_at")),
        updated_at=_parse(data.get("updated_at")),
        details=BookingDetails(
            meeting_type=MeetingType(details.get("meeting_type", MeetingType.remote.value)),
            address=details.get("address"),
            phone=details.get("phone"),
            notes=details.get("notes"),
            time_of_day=details.get("time_of_day"),
            duration=details.get("duration"),
        ),
    )


def _serialize_event(event: CachedExternalEvent) -> dict[str, Any]:
    return {
        "external_event_id": event.external_event_id,
        "calendar_id": event.calendar_id,
        "start_utc": _iso(event.start_utc),
        "end_utc": _iso(event.end_utc),
        "fetched_at": _iso(event.fetched_at),
        "expires_at": _iso(event.expires_at),
    }


def _deserialize_event(data: dict[str, Any]) -> CachedExternalEvent:
    return CachedExternalEvent(
        external_event_id=data["external_event_id"],
        calendar_id=data["calendar_id"],
        start_utc=_parse(data["start_utc"]),
        end_utc=_parse(data["end_utc"]),
        fetched_at=_parse(data["fetched_at"]),
        expires_at=_parse(data["expires_at"]),
    )
