from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from availability.domain.entities.booking import MeetingType


class JobDuration(str, Enum):
    short = "short"
    long = "long"


class TimeWindowSchema(BaseModel):
    value: str
    label: str
    available_short: bool
    available_long: bool


class BookableDaySchema(BaseModel):
    date_key: str
    day_label: str
    full_label: str
    is_today: bool
    is_weekend: bool
    time_windows: list[TimeWindowSchema] = Field(default_factory=list)
    has_any_slots: bool


class DaysResponseSchema(BaseModel):
    days: list[BookableDaySchema]
    time_zone: str


class BookingDetailsSchema(BaseModel):
    meeting_type: MeetingType = MeetingType.remote
    address: str | None = None
    phone: str | None = None
    notes: str | None = None

    @model_validator(mode="after")
    def require_address_in_person(self) -> "BookingDetailsSchema":
        if self.meeting_type == MeetingType.in_person and not (self.address and self.address.strip()):
            raise ValueError("Address is required for in-person appointments")
        return self


class HoldRequestSchema(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: str = Field(min_length=3, max_length=320)
    date_key: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    time_of_day: str = Field(min_length=1)
    duration: JobDuration = JobDuration.short
    details: BookingDetailsSchema = Field(default_factory=BookingDetailsSchema)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Name is required")
        return value.strip()

    @field_validator("email")
    @classmethod
    def email_has_at(cls, value: str) -> str:
        value = value.strip().lower()
        local, _, domain = value.partition("@")
        if not local or not domain:
            raise ValueError("Valid email is required")
        return value


class HoldResponseSchema(BaseModel):
    hold_id: str
    cancel_token: str
    status: str
    start_utc: datetime
    end_utc: datetime
    hold_expires_utc: datetime | None = None


class ConfirmResponseSchema(BaseModel):
    ok: bool = True
    booking_id: str
    status: str
    external_event_id: str | None = None
    calendar_error: str | None = None


class BookingRequestResponseSchema(BaseModel):
    ok: bool = True
    booking_id: str
    cancel_token: str
    status: str
    start_utc: datetime
    end_utc: datetime
    calendar_error: str | None = None


class CancelRequestSchema(BaseModel):
    cancel_token: str = Field(min_length=1)

    @field_validator("cancel_token")
    @classmethod
    def token_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Cancel token required")
        return value.strip()


class CancelResponseSchema(BaseModel):
    ok: bool = True
    already_cancelled: bool = False


class ReleaseHoldsResponseSchema(BaseModel):
    ok: bool = True
    released_count: int
    released_ids: list[str] = Field(default_factory=list)
    pending_count: int = 0


class RefreshCacheResponseSchema(BaseModel):
    ok: bool = True
    cached_count: int
    deleted_count: int
    failed_calendars: list[str] = Field(default_factory=list)
