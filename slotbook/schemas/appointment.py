"""Appointment schemas - Pydantic models for appointments API."""

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from slotbook.db.enums import AppointmentStatus, RescheduleInitiator


# =============================================================================
# Appointments
# =============================================================================

class AppointmentCreate(BaseModel):
    """Schema for booking an appointment."""
    professional_id: UUID
    client_id: UUID
    service_id: UUID
    scheduled_for: datetime
    duration_minutes: int | None = Field(None, gt=0, le=720)
    team_member_id: UUID | None = None
    notes: str | None = Field(None, max_length=2000)


class AppointmentRead(BaseModel):
    """Schema for reading an appointment."""
    model_config = {"from_attributes": True}

    id: UUID
    professional_id: UUID
    client_id: UUID
    service_id: UUID | None
    team_member_id: UUID | None
    service_name: str
    service_price: Decimal
    duration_minutes: int
    scheduled_for: datetime
    scheduled_end: datetime
    status: str
    payment_status: str
    notes: str | None
    cancelled_at: datetime | None
    cancellation_reason: str | None
    created_at: datetime
    updated_at: datetime


class AppointmentListResponse(BaseModel):
    items: list[AppointmentRead]
    total: int
    page: int
    per_page: int


class AppointmentCancel(BaseModel):
    reason: str | None = Field(None, max_length=500)


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus


# =============================================================================
# Rescheduling
# =============================================================================

class AppointmentReschedule(BaseModel):
    """Schema for rescheduling an appointment."""
    new_scheduled_for: datetime
    reason: str | None = Field(None, max_length=500)
    initiated_by: RescheduleInitiator = RescheduleInitiator.CLIENT
    duration_minutes: int | None = Field(None, gt=0, le=720)
    notify_client: bool | None = None


class PolicyMessage(BaseModel):
    code: str
    message: str


class ConflictRead(BaseModel):
    kind: str
    message: str
    appointment_id: UUID | None = None
    client_id: UUID | None = None
    client_name: str | None = None
    service_name: str | None = None
    start: datetime | None = None
    end: datetime | None = None


class ImpactRead(BaseModel):
    level: Literal["low", "medium", "high"]
    warnings: list[str]


class RescheduleHistoryRead(BaseModel):
    model_config = {"from_attributes": True}

    id: UUID
    appointment_id: UUID
    original_scheduled_for: datetime
    requested_scheduled_for: datetime
    reason: str
    initiated_by: str
    status: str
    created_at: datetime


class RescheduleResultRead(BaseModel):
    success: bool
    appointment: AppointmentRead | None = None
    history: RescheduleHistoryRead | None = None
    error: str | None = None
    errors: list[PolicyMessage] = []
    warnings: list[PolicyMessage] = []
    conflicts: list[ConflictRead] = []
    suggested_times: list[datetime] = []
    impact: ImpactRead | None = None
    notification_sent: bool = False


class SlotOptionRead(BaseModel):
    start: datetime
    end: datetime
    available: bool
    reason: str | None = None
    message: str | None = None


class ReschedulePolicyRead(BaseModel):
    model_config = {"from_attributes": True}

    allow_client_reschedule: bool
    minimum_notice_hours: int
    warning_notice_hours: int
    max_reschedules: int
    allow_same_day: bool
    auto_confirm: bool
    notify_client: bool
    blackout_ranges: list[dict]


class RescheduleOptionsRead(BaseModel):
    appointment: AppointmentRead
    available_options: list[SlotOptionRead]
    unavailable_options: list[SlotOptionRead]
    policy: ReschedulePolicyRead
    reschedule_count: int
    can_reschedule: bool
    errors: list[PolicyMessage]
    warnings: list[PolicyMessage]
