"""Appointments router - booking, rescheduling and cancellation endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from slotbook.core.deps import get_db, get_sender
from slotbook.core.exceptions import SlotbookError
from slotbook.core.http_errors import to_http_exception
from slotbook.db.enums import AppointmentStatus
from slotbook.schemas.appointment import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentRead,
    AppointmentReschedule,
    AppointmentStatusUpdate,
    ConflictRead,
    ImpactRead,
    PolicyMessage,
    RescheduleHistoryRead,
    RescheduleOptionsRead,
    ReschedulePolicyRead,
    RescheduleResultRead,
    SlotOptionRead,
)
from slotbook.services import appointment_service, reschedule_service
from slotbook.services.notification_sender import NotificationSender
from slotbook.services.reschedule_service import RescheduleResult
from slotbook.services.slot_service import SlotPreferences
from slotbook.utils.pagination import PaginationParams, get_pagination

router = APIRouter()


# =============================================================================
# Helper Functions
# =============================================================================

def _result_to_read(result: RescheduleResult) -> RescheduleResultRead:
    """Convert a RescheduleResult to its response schema."""
    return RescheduleResultRead(
        success=result.success,
        appointment=AppointmentRead.model_validate(result.appointment) if result.appointment else None,
        history=RescheduleHistoryRead.model_validate(result.history) if result.history else None,
        error=result.error,
        errors=[PolicyMessage(code=e.code, message=e.message) for e in result.errors],
        warnings=[PolicyMessage(code=w.code, message=w.message) for w in result.warnings],
        conflicts=[ConflictRead(**vars(c)) for c in result.conflicts],
        suggested_times=result.suggested_times,
        impact=ImpactRead(level=result.impact.level, warnings=result.impact.warnings) if result.impact else None,
        notification_sent=result.notification_sent,
    )


def _option_to_read(option) -> SlotOptionRead:
    return SlotOptionRead(
        start=option.start,
        end=option.end,
        available=option.available,
        reason=option.reason,
        message=option.message,
    )


# =============================================================================
# Booking
# =============================================================================

@router.post("", response_model=AppointmentRead, status_code=201)
def create_appointment(
    data: AppointmentCreate,
    db: Session = Depends(get_db),
):
    """Book an appointment. 409 on overlap, 422 on a closed or invalid window."""
    try:
        appointment = appointment_service.create_appointment(
            db,
            professional_id=data.professional_id,
            client_id=data.client_id,
            service_id=data.service_id,
            scheduled_for=data.scheduled_for,
            duration_minutes=data.duration_minutes,
            team_member_id=data.team_member_id,
            notes=data.notes,
        )
    except SlotbookError as exc:
        raise to_http_exception(exc) from exc
    return AppointmentRead.model_validate(appointment)


@router.get("", response_model=AppointmentListResponse)
def list_appointments(
    professional_id: UUID,
    start: datetime | None = None,
    end: datetime | None = None,
    status: AppointmentStatus | None = None,
    pagination: PaginationParams = Depends(get_pagination),
    db: Session = Depends(get_db),
):
    items, total = appointment_service.list_appointments(
        db,
        professional_id,
        date_start=start,
        date_end=end,
        status=status,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return AppointmentListResponse(
        **pagination.envelope([AppointmentRead.model_validate(a) for a in items], total)
    )


@router.get("/past", response_model=list[AppointmentRead])
def get_past_appointments(
    client_id: UUID,
    professional_id: UUID,
    before: datetime,
    db: Session = Depends(get_db),
):
    """Read-only history of a client's appointments before an instant (newest first)."""
    appointments = appointment_service.get_past_appointments(db, client_id, professional_id, before)
    return [AppointmentRead.model_validate(a) for a in appointments]


@router.get("/{appointment_id}", response_model=AppointmentRead)
def get_appointment(appointment_id: UUID, db: Session = Depends(get_db)):
    try:
        appointment = appointment_service.get_appointment(db, appointment_id)
    except SlotbookError as exc:
        raise to_http_exception(exc) from exc
    return AppointmentRead.model_validate(appointment)


# =============================================================================
# Rescheduling
# =============================================================================

@router.post("/{appointment_id}/reschedule", response_model=RescheduleResultRead)
def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentReschedule,
    db: Session = Depends(get_db),
    sender: NotificationSender = Depends(get_sender),
):
    """
    Move an appointment.

    409 with conflicts and suggested_times when the slot is taken or closed;
    422 with policy errors when the policy denies the move.
    """
    try:
        result = reschedule_service.reschedule_appointment(
            db,
            appointment_id,
            data.new_scheduled_for,
            initiated_by=data.initiated_by,
            reason=data.reason,
            duration_minutes=data.duration_minutes,
            notify_client=data.notify_client,
            sender=sender,
        )
    except SlotbookError as exc:
        raise to_http_exception(exc) from exc

    body = _result_to_read(result)
    if not result.success:
        status_code = 409 if result.error == "conflict" else 422
        raise HTTPException(status_code=status_code, detail=body.model_dump(mode="json"))
    return body


@router.get("/{appointment_id}/reschedule-options", response_model=RescheduleOptionsRead)
def get_reschedule_options(
    appointment_id: UUID,
    prefer_same_week: bool = False,
    avoid_weekends: bool = False,
    prefer_morning: bool = False,
    prefer_afternoon: bool = False,
    horizon_days: int | None = Query(None, ge=0, le=21),
    db: Session = Depends(get_db),
):
    preferences = SlotPreferences(
        prefer_same_week=prefer_same_week,
        avoid_weekends=avoid_weekends,
        prefer_morning=prefer_morning,
        prefer_afternoon=prefer_afternoon,
        horizon_days=horizon_days,
    )
    try:
        options = reschedule_service.find_reschedule_options(db, appointment_id, preferences)
    except SlotbookError as exc:
        raise to_http_exception(exc) from exc

    return RescheduleOptionsRead(
        appointment=AppointmentRead.model_validate(options.appointment),
        available_options=[_option_to_read(o) for o in options.available_options],
        unavailable_options=[_option_to_read(o) for o in options.unavailable_options],
        policy=ReschedulePolicyRead.model_validate(options.policy),
        reschedule_count=options.reschedule_count,
        can_reschedule=options.can_reschedule,
        errors=[PolicyMessage(code=e.code, message=e.message) for e in options.errors],
        warnings=[PolicyMessage(code=w.code, message=w.message) for w in options.warnings],
    )


@router.get("/{appointment_id}/reschedule-history", response_model=list[RescheduleHistoryRead])
def get_reschedule_history(appointment_id: UUID, db: Session = Depends(get_db)):
    try:
        history = reschedule_service.list_reschedule_history(db, appointment_id)
    except SlotbookError as exc:
        raise to_http_exception(exc) from exc
    return [RescheduleHistoryRead.model_validate(h) for h in history]


# =============================================================================
# Cancellation and status
# =============================================================================

@router.post("/{appointment_id}/cancel", response_model=AppointmentRead)
def cancel_appointment(
    appointment_id: UUID,
    data: AppointmentCancel | None = None,
    db: Session = Depends(get_db),
):
    """Cancel (idempotent). Pending reminders are cancelled with it."""
    try:
        appointment = appointment_service.cancel_appointment(
            db, appointment_id, reason=data.reason if data else None
        )
    except SlotbookError as exc:
        raise to_http_exception(exc) from exc
    return AppointmentRead.model_validate(appointment)


@router.patch("/{appointment_id}/status", response_model=AppointmentRead)
def update_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    db: Session = Depends(get_db),
):
    try:
        appointment = appointment_service.update_appointment_status(db, appointment_id, data.status)
    except SlotbookError as exc:
        raise to_http_exception(exc) from exc
    return AppointmentRead.model_validate(appointment)
