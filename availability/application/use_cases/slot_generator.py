from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable

from availability.application.exceptions import ConflictError, ValidationError
from availability.application.utils.conflicts import TimedEvent, is_free
from availability.application.utils.timezone import local_hour_to_utc, to_local
from availability.core.config import BookingConfig
from availability.domain.entities.bookable_day import (
    BookableDay,
    DurationOption,
    TimeOfDayOption,
    TimeWindow,
)
from availability.domain.entities.booking import Booking

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def hour_label(hour: int) -> str:
    suffix = "am" if hour < 12 else "pm"
    display = hour % 12 or 12
    return f"{display}{suffix}"


def time_of_day_options(config: BookingConfig) -> list[TimeOfDayOption]:
    """Hourly windows from the first to the last configured start hour, inclusive."""
    return [
        TimeOfDayOption(value=hour_label(hour), label=hour_label(hour), start_hour=hour, end_hour=hour + 1)
        for hour in range(config.work_start_hour, config.last_slot_start_hour + 1)
    ]


def duration_options(config: BookingConfig) -> list[DurationOption]:
    return [
        DurationOption(
            value="short",
            label=f"Standard ({_format_duration(config.short_duration_minutes)})",
            duration_minutes=config.short_duration_minutes,
        ),
        DurationOption(
            value="long",
            label=f"Extended ({_format_duration(config.long_duration_minutes)})",
            duration_minutes=config.long_duration_minutes,
        ),
    ]


def _format_duration(minutes: int) -> str:
    if minutes % 60:
        return f"{minutes} min"
    hours = minutes // 60
    return "1 hour" if hours == 1 else f"{hours} hours"


def parse_date_key(date_key: str) -> date:
    try:
        return date.fromisoformat(date_key)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid date key: {date_key!r}", reason="invalid date format") from e


def gate_reason(day_index: int, slot_hour: int, now_local: datetime, config: BookingConfig) -> str | None:
    """Why a window is closed regardless of conflicts, or None if it is open."""
    day = now_local.date() + timedelta(days=day_index)
    slot_start = local_hour_to_utc(day, slot_hour, config.time_zone)
    if slot_start - now_local < timedelta(hours=config.min_hours_notice):
        return "minimum notice"
    if day_index == 0 and now_local.hour >= config.same_day_cutoff_hour:
        return "same-day cutoff"
    if (
        day_index == 1
        and now_local.hour >= config.next_day_morning_cutoff_hour
        and slot_hour < config.morning_end_hour
    ):
        return "next-day morning cutoff"
    return None


def build_day(
    day: date,
    day_index: int,
    bookings: list[Booking],
    external_events: list[TimedEvent],
    now_local: datetime,
    config: BookingConfig,
) -> BookableDay:
    windows: list[TimeWindow] = []
    for option in time_of_day_options(config):
        start = local_hour_to_utc(day, option.start_hour, config.time_zone)
        short_end = start + timedelta(minutes=config.short_duration_minutes)
        long_end = start + timedelta(minutes=config.long_duration_minutes)

        available_short = is_free(start, short_end, bookings, external_events, config.buffer_min)
        # The long interval contains the short one, so it can only be free if the short one is.
        available_long = available_short and is_free(
            start, long_end, bookings, external_events, config.buffer_min
        )

        if gate_reason(day_index, option.start_hour, now_local, config):
            available_short = False
            available_long = False

        windows.append(
            TimeWindow(
                value=option.value,
                label=option.label,
                available_short=available_short,
                available_long=available_long,
            )
        )

    weekday = day.weekday()
    month = MONTH_NAMES[day.month - 1]
    return BookableDay(
        date_key=day.isoformat(),
        day_label=f"{DAY_NAMES[weekday][:3]} {day.day} {month}",
        full_label=f"{DAY_NAMES[weekday]}, {month} {day.day}",
        is_today=day_index == 0,
        is_weekend=weekday >= 5,
        time_windows=windows,
        has_any_slots=any(w.available_short or w.available_long for w in windows),
    )


def build_available_days(
    bookings: Iterable[Booking],
    external_events: Iterable[TimedEvent],
    now: datetime,
    config: BookingConfig,
) -> list[BookableDay]:
    """
    Bookable days for the horizon starting at local today.

    Today is dropped once none of its windows is open; every later day is always
    returned, fully booked or not, so callers can show "no availability".
    """
    bookings = list(bookings)
    external_events = list(external_events)
    now_local = to_local(now, config.time_zone)
    today = now_local.date()

    days: list[BookableDay] = []
    for index in range(config.max_advance_days):
        day = build_day(today + timedelta(days=index), index, bookings, external_events, now_local, config)
        if index == 0 and not day.has_any_slots:
            continue
        days.append(day)
    return days


def _lookup_selection(
    date_key: str,
    time_of_day: str,
    duration: str,
    config: BookingConfig,
) -> tuple[date, TimeOfDayOption, DurationOption]:
    day = parse_date_key(date_key)
    option = next((o for o in time_of_day_options(config) if o.value == time_of_day), None)
    if option is None:
        raise ValidationError(f"Unknown time of day: {time_of_day!r}", reason="invalid time slot")
    length = next((d for d in duration_options(config) if d.value == duration), None)
    if length is None:
        raise ValidationError(f"Unknown duration: {duration!r}", reason="invalid duration")
    return day, option, length


def resolve_selection(
    date_key: str,
    time_of_day: str,
    duration: str,
    config: BookingConfig,
) -> tuple[datetime, datetime]:
    """UTC interval for a (date, window, duration) selection."""
    day, option, length = _lookup_selection(date_key, time_of_day, duration, config)
    start = local_hour_to_utc(day, option.start_hour, config.time_zone)
    return start, start + timedelta(minutes=length.duration_minutes)


def validate_selection(
    date_key: str,
    time_of_day: str,
    duration: str,
    now: datetime,
    config: BookingConfig,
) -> tuple[datetime, datetime]:
    """Format, horizon and gating checks for one selection. Touches no store."""
    day, option, length = _lookup_selection(date_key, time_of_day, duration, config)

    now_local = to_local(now, config.time_zone)
    day_index = (day - now_local.date()).days
    if day_index < 0:
        raise ValidationError(f"{date_key} is in the past", reason="cannot book dates in the past")
    if day_index >= config.max_advance_days:
        raise ValidationError(
            f"{date_key} is beyond the booking horizon",
            reason=f"cannot book more than {config.max_advance_days} days in advance",
        )

    reason = gate_reason(day_index, option.start_hour, now_local, config)
    if reason:
        raise ValidationError(f"{date_key} {time_of_day} closed by {reason}", reason="time slot not bookable")

    start = local_hour_to_utc(day, option.start_hour, config.time_zone)
    return start, start + timedelta(minutes=length.duration_minutes)


def validate_booking_request(
    date_key: str,
    time_of_day: str,
    duration: str,
    bookings: Iterable[Booking],
    external_events: Iterable[TimedEvent],
    now: datetime,
    config: BookingConfig,
) -> tuple[datetime, datetime]:
    start, end = validate_selection(date_key, time_of_day, duration, now, config)
    if not is_free(start, end, bookings, external_events, config.buffer_min):
        raise ConflictError(f"{date_key} {time_of_day} ({duration}) conflicts with existing busy time")
    return start, end
