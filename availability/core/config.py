from __future__ import annotations

from dataclasses import dataclass

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    BUSINESS_TIMEZONE: str = "Pacific/Auckland"
    MAX_ADVANCE_DAYS: int = 14
    BUFFER_MINUTES: int = 15
    MIN_HOURS_NOTICE: int = 2
    SAME_DAY_CUTOFF_HOUR: int = 18
    NEXT_DAY_MORNING_CUTOFF_HOUR: int = 20
    MORNING_END_HOUR: int = 12
    WORK_START_HOUR: int = 10
    LAST_SLOT_START_HOUR: int = 18
    SHORT_DURATION_MINUTES: int = 60
    LONG_DURATION_MINUTES: int = 120
    HOLD_TTL_MINUTES: int = 15
    CACHE_TTL_MINUTES: int = 15

    CRON_SECRET: str | None = None

    STORE_PROVIDER: str = "memory"
    DATA_DIR: str = "./data"

    GOOGLE_OAUTH_CLIENT_ID: str | None = None
    GOOGLE_OAUTH_CLIENT_SECRET: str | None = None
    GOOGLE_OAUTH_REFRESH_TOKEN: str | None = None
    GOOGLE_CALENDAR_BASE_URL: str = "https://www.googleapis.com/calendar/v3"
    GOOGLE_TOKEN_URL: str = "https://oauth2.googleapis.com/token"
    BOOKING_CALENDAR_ID: str | None = None
    WORK_CALENDAR_ID: str | None = None
    PERSONAL_CALENDAR_ID: str | None = None
    CALENDAR_TIMEOUT_SECONDS: float = 10.0


settings = Settings()


@dataclass(frozen=True)
class BookingConfig:
    """Immutable scheduling rules handed to every pure scheduling function."""

    time_zone: str = "Pacific/Auckland"
    max_advance_days: int = 14
    buffer_min: int = 15
    min_hours_notice: int = 2
    same_day_cutoff_hour: int = 18
    next_day_morning_cutoff_hour: int = 20
    morning_end_hour: int = 12
    work_start_hour: int = 10
    last_slot_start_hour: int = 18
    short_duration_minutes: int = 60
    long_duration_minutes: int = 120
    hold_ttl_minutes: int = 15
    cache_ttl_minutes: int = 15

    @classmethod
    def from_settings(cls, source: Settings) -> "BookingConfig":
        return cls(
            time_zone=source.BUSINESS_TIMEZONE,
            max_advance_days=source.MAX_ADVANCE_DAYS,
            buffer_min=source.BUFFER_MINUTES,
            min_hours_notice=source.MIN_HOURS_NOTICE,
            same_day_cutoff_hour=source.SAME_DAY_CUTOFF_HOUR,
            next_day_morning_cutoff_hour=source.NEXT_DAY_MORNING_CUTOFF_HOUR,
            morning_end_hour=source.MORNING_END_HOUR,
            work_start_hour=source.WORK_START_HOUR,
            last_slot_start_hour=source.LAST_SLOT_START_HOUR,
            short_duration_minutes=source.SHORT_DURATION_MINUTES,
            long_duration_minutes=source.LONG_DURATION_MINUTES,
            hold_ttl_minutes=source.HOLD_TTL_MINUTES,
            cache_ttl_minutes=source.CACHE_TTL_MINUTES,
        )


def configured_calendar_ids(source: Settings) -> list[str]:
    """Booking, work and personal calendars; duplicates and blanks dropped."""
    ids: list[str] = []
    for value in (source.BOOKING_CALENDAR_ID, source.WORK_CALENDAR_ID, source.PERSONAL_CALENDAR_ID):
        if value and value.strip() and value.strip() not in ids:
            ids.append(value.strip())
    return ids or ["primary"]
