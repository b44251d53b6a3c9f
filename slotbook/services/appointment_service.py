"""Appointment service - booking, cancellation and status workflows.

Handles:
- Booking with calendar + conflict checks under the professional lock
- Idempotent cancellation (status change, never a delete)
- Guarded status transitions
- Read models (listing, past appointments for risk scoring)
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from slotbook.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from slotbook.core.structured_logging import build_log_context
from slotbook.db.enums import AppointmentStatus, PaymentStatus
from slotbook.db.models import Appointment
from slotbook.services import (
    calendar_service,
    conflict_service,
    professional_service,
    reminder_service,
    slot_service,
)
from slotbook.services.booking_lock import professional_lock
from slotbook.utils.datetime_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


# =============================================================================
# Booking
# =============================================================================

def create_appointment(
    db: Session,
    professional_id: UUID,
    client_id: UUID,
    service_id: UUID,
    scheduled_for: datetime,
    duration_minutes: int | None = None,
    team_member_id: UUID | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> Appointment:
    """
    Book an appointment.

    Raises NotFoundError (professional/client/service), ValidationError
    (bad duration, past start, inactive service, closed calendar window) or
    ConflictError (overlap). Reminders are scheduled after the booking
    commits; a reminder failure never undoes the booking.
    """
    professional_service.get_professional(db, professional_id)
    professional_service.get_client(db, client_id, professional_id)
    service = professional_service.get_service(db, service_id, professional_id)
    if not service.is_active:
        raise ValidationError.for_field("service_id", "Service is not active", "inactive_service")

    duration = duration_minutes if duration_minutes is not None else service.duration_minutes
    slot_service.validate_duration(duration)

    start = ensure_utc(scheduled_for)
    now = ensure_utc(now) if now else utcnow()
    if start <= now:
        raise ValidationError.for_field("scheduled_for", "Appointment must be in the future", "in_past")

    with professional_lock(db, professional_id):
        try:
            calendar = calendar_service.load_calendar(db, professional_id)
            rejection = calendar.window_rejection(start, duration)
            if rejection:
                raise ValidationError.for_field("scheduled_for", rejection.message, rejection.reason)

            conflicts = conflict_service.find_conflicts(db, professional_id, start, duration)
            if conflicts:
                raise ConflictError(
                    "Time slot conflicts with an existing appointment",
                    conflict_service.describe_conflicts(db, conflicts),
                )

            appointment = Appointment(
                professional_id=professional_id,
                client_id=client_id,
                service_id=service.id,
                team_member_id=team_member_id,
                service_name=service.name,
                service_price=service.price,
                duration_minutes=duration,
                scheduled_for=start,
                scheduled_end=start + timedelta(minutes=duration),
                status=AppointmentStatus.SCHEDULED.value,
                payment_status=PaymentStatus.PENDING.value,
                notes=notes,
            )
            db.add(appointment)
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(appointment)
    logger.info(
        "Appointment booked id=%s start=%s",
        appointment.id,
        appointment.scheduled_for.isoformat(),
        extra=build_log_context(professional_id=professional_id, appointment_id=appointment.id),
    )

    schedule_reminders_safely(db, appointment, now)
    return appointment


def schedule_reminders_safely(db: Session, appointment: Appointment, now: datetime | None = None) -> None:
    """Schedule reminders in their own commit; failures are logged, never raised."""
    try:
        reminder_service.schedule_reminders(db, appointment, now=now)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(
            "Failed to schedule reminders for appointment=%s",
            appointment.id,
            extra=build_log_context(appointment_id=appointment.id),
        )


# =============================================================================
# Cancellation and status
# =============================================================================

def cancel_appointment(
    db: Session,
    appointment_id: UUID,
    reason: str | None = None,
    now: datetime | None = None,
) -> Appointment:
    """
    Cancel an appointment. Idempotent: an already-cancelled appointment is
    returned untouched. Pending reminders are cancelled in the same commit.

    Runs under the professional lock so it serializes with reschedules of
    the same appointment.
    """
    appointment = get_appointment(db, appointment_id)
    now = ensure_utc(now) if now else utcnow()

    with professional_lock(db, appointment.professional_id):
        try:
            db.refresh(appointment)
            current = AppointmentStatus(appointment.status)
            if current == AppointmentStatus.CANCELLED:
                db.rollback()
                return appointment
            if not current.can_transition_to(AppointmentStatus.CANCELLED):
                raise InvalidTransitionError("appointment", current.value, AppointmentStatus.CANCELLED.value)

            appointment.status = AppointmentStatus.CANCELLED.value
            appointment.cancelled_at = now
            appointment.cancellation_reason = reason
            reminder_service.cancel_pending_reminders(db, appointment.id)
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(appointment)
    logger.info(
        "Appointment cancelled id=%s",
        appointment.id,
        extra=build_log_context(
            professional_id=appointment.professional_id, appointment_id=appointment.id
        ),
    )
    return appointment


def update_appointment_status(
    db: Session,
    appointment_id: UUID,
    status: AppointmentStatus | str,
    now: datetime | None = None,
) -> Appointment:
    """Move an appointment through its lifecycle; invalid moves raise InvalidTransitionError."""
    target = AppointmentStatus(status)
    if target == AppointmentStatus.CANCELLED:
        return cancel_appointment(db, appointment_id, now=now)

    appointment = get_appointment(db, appointment_id)
    with professional_lock(db, appointment.professional_id):
        try:
            db.refresh(appointment)
            current = AppointmentStatus(appointment.status)
            if current == target:
                db.rollback()
                return appointment
            if not current.can_transition_to(target):
                raise InvalidTransitionError("appointment", current.value, target.value)

            appointment.status = target.value
            if target in (AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW):
                reminder_service.cancel_pending_reminders(db, appointment.id)
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(appointment)
    return appointment


# =============================================================================
# Queries
# =============================================================================

def get_appointment(db: Session, appointment_id: UUID) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if not appointment:
        raise NotFoundError("Appointment", appointment_id)
    return appointment


def list_appointments(
    db: Session,
    professional_id: UUID,
    date_start: datetime | None = None,
    date_end: datetime | None = None,
    status: AppointmentStatus | str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Appointment], int]:
    """Appointments for a professional ordered by start. Returns (items, total)."""
    query = db.query(Appointment).filter(Appointment.professional_id == professional_id)
    if date_start:
        query = query.filter(Appointment.scheduled_end > ensure_utc(date_start))
    if date_end:
        query = query.filter(Appointment.scheduled_for < ensure_utc(date_end))
    if status:
        query = query.filter(Appointment.status == AppointmentStatus(status).value)

    total = query.count()
    items = query.order_by(Appointment.scheduled_for).offset(offset).limit(limit).all()
    return items, total


def get_past_appointments(
    db: Session,
    client_id: UUID,
    professional_id: UUID,
    before: datetime,
) -> list[Appointment]:
    """Read model for risk scoring: the client's appointments starting before ``before``, newest first."""
    return (
        db.query(Appointment)
        .filter(
            Appointment.client_id == client_id,
            Appointment.professional_id == professional_id,
            Appointment.scheduled_for < ensure_utc(before),
        )
        .order_by(Appointment.scheduled_for.desc())
        .all()
    )
