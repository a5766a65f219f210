from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class TimeOfDayOption:
    value: str
    label: str
    start_hour: int
    end_hour: int


@dataclass(frozen=True)
class DurationOption:
    value: str  # "short" | "long"
    label: str
    duration_minutes: int


@dataclass(frozen=True)
class TimeWindow:
    value: str
    label: str
    available_short: bool
    available_long: bool


@dataclass(frozen=True)
class BookableDay:
    date_key: str
    day_label: str
    full_label: str
    is_today: bool
    is_weekend: bool
    time_windows: list[TimeWindow] = field(default_factory=list)
    has_any_slots: bool = False
