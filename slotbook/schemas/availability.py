"""Availability schemas - working hours, holidays, reschedule policy."""

from datetime import date, time
from uuid import UUID

from pydantic import BaseModel, Field

from slotbook.db.enums import HolidayKind


class WorkingHoursInput(BaseModel):
    """Schema for one weekday."""
    day_of_week: int = Field(..., ge=0, le=6, description="Monday=0, Sunday=6")
    is_open: bool = True
    open_time: str | None = Field(None, pattern=r"^\d{2}:\d{2}$", description="HH:MM format")
    close_time: str | None = Field(None, pattern=r"^\d{2}:\d{2}$", description="HH:MM format")
    break_start: str | None = Field(None, pattern=r"^\d{2}:\d{2}$")
    break_end: str | None = Field(None, pattern=r"^\d{2}:\d{2}$")


class WorkingHoursSet(BaseModel):
    """Schema for replacing the whole week."""
    days: list[WorkingHoursInput]


class WorkingHoursRead(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    day_of_week: int
    is_open: bool
    open_time: time | None
    close_time: time | None
    break_start: time | None
    break_end: time | None


class HolidayCreate(BaseModel):
    date: date
    name: str = Field(..., min_length=1, max_length=255)
    kind: HolidayKind = HolidayKind.HOLIDAY
    open_time: time | None = None
    close_time: time | None = None


class HolidayRead(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    date: date
    name: str
    kind: str
    open_time: time | None
    close_time: time | None


class BlackoutRangeInput(BaseModel):
    start: date
    end: date
    reason: str | None = Field(None, max_length=255)


class ReschedulePolicyUpdate(BaseModel):
    allow_client_reschedule: bool | None = None
    minimum_notice_hours: int | None = Field(None, ge=0, le=720)
    warning_notice_hours: int | None = Field(None, ge=0, le=720)
    max_reschedules: int | None = Field(None, ge=0, le=50)
    allow_same_day: bool | None = None
    auto_confirm: bool | None = None
    notify_client: bool | None = None
    blackout_ranges: list[BlackoutRangeInput] | None = None
