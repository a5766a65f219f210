from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from availability.application.exceptions import ValidationError


def get_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(f"Unknown time zone: {name}") from e


def utc_offset_hours(year: int, month: int, day: int, time_zone: str) -> int:
    """
    UTC offset in whole hours for one civil date in `time_zone`.

    Samples the zone's wall-clock hour at UTC midnight of the date. Zones west of
    UTC land on the previous civil date there, so the hour is shifted down a day.
    """
    tz = get_zone(time_zone)
    try:
        utc_midnight = datetime(year, month, day, tzinfo=timezone.utc)
    except ValueError as e:
        raise ValidationError(f"Invalid date: {year}-{month}-{day}") from e

    local = utc_midnight.astimezone(tz)
    if local.date() < utc_midnight.date():
        return local.hour - 24
    return local.hour


def local_hour_to_utc(day: date, hour: int, time_zone: str) -> datetime:
    """UTC instant of `hour`:00 local time on `day`, using that day's offset."""
    offset = utc_offset_hours(day.year, day.month, day.day, time_zone)
    midnight = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    return midnight + timedelta(hours=hour - offset)


def to_local(moment: datetime, time_zone: str) -> datetime:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(get_zone(time_zone))
