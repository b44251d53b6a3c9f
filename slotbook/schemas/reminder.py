"""Reminder schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from slotbook.db.enums import ReminderChannel


class ReminderConfigRead(BaseModel):
    model_config = {"from_attributes": True}

    professional_id: UUID
    enabled: bool
    hours_before: list[int]
    channels: list[str]
    message_template: str | None


class ReminderConfigUpdate(BaseModel):
    """Offsets are range-checked, deduplicated and sorted by the service."""
    enabled: bool | None = None
    hours_before: list[int] | None = Field(None, max_length=10)
    channels: list[ReminderChannel] | None = None
    message_template: str | None = Field(None, max_length=2000)


class ReminderJobRead(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    appointment_id: UUID
    channel: str
    offset_hours: int
    fire_at: datetime
    next_attempt_at: datetime
    status: str
    attempts: int
    max_attempts: int
    sent_at: datetime | None
    last_error: str | None
    created_at: datetime


class ReminderListResponse(BaseModel):
    items: list[ReminderJobRead]
    total: int
    page: int
    per_page: int


class ReminderStatsRead(BaseModel):
    total: int
    sent: int
    pending: int
    failed: int
    canceled: int
    success_rate: float


class DispatchSummaryRead(BaseModel):
    processed: int
    sent: int
    failed: int
    retried: int
    canceled: int
