"""Reschedule orchestration.

reschedule_appointment() composes the policy validator, calendar, conflict
detector and slot search. Policy and conflict failures come back as a
RescheduleResult with success=False and leave the appointment, its history
and its reminder jobs untouched. On success the appointment move, the
history entry and the reminder rebinding (stale jobs cancelled, fresh jobs
for the new time created) commit together.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from slotbook.core.config import settings
from slotbook.core.exceptions import ConflictDetail
from slotbook.core.structured_logging import build_log_context, mask_recipient
from slotbook.db.enums import AppointmentStatus, RescheduleInitiator, RescheduleStatus
from slotbook.db.models import Appointment, Client, RescheduleHistory, ReschedulePolicy
from slotbook.services import (
    appointment_service,
    calendar_service,
    conflict_service,
    message_service,
    reminder_service,
    reschedule_policy_service,
    slot_service,
)
from slotbook.services.booking_lock import professional_lock
from slotbook.services.notification_sender import NotificationSender
from slotbook.services.reschedule_policy_service import (
    PolicyViolation,
    RescheduleImpact,
)
from slotbook.utils.datetime_utils import ensure_utc, resolve_timezone, utcnow

logger = logging.getLogger(__name__)

DEFAULT_REASON = "Not informed"


@dataclass
class RescheduleResult:
    success: bool
    appointment: Appointment | None = None
    history: RescheduleHistory | None = None
    error: str | None = None  # policy_violation | conflict
    errors: list[PolicyViolation] = field(default_factory=list)
    warnings: list[PolicyViolation] = field(default_factory=list)
    conflicts: list[ConflictDetail] = field(default_factory=list)
    suggested_times: list[datetime] = field(default_factory=list)
    impact: RescheduleImpact | None = None
    notification_sent: bool = False


@dataclass
class RescheduleOptions:
    appointment: Appointment
    available_options: list[slot_service.SlotOption]
    unavailable_options: list[slot_service.SlotOption]
    policy: ReschedulePolicy
    reschedule_count: int
    can_reschedule: bool
    errors: list[PolicyViolation]
    warnings: list[PolicyViolation]


def get_history(db: Session, appointment_id: UUID) -> list[RescheduleHistory]:
    """Reschedule ledger for an appointment, oldest first."""
    return (
        db.query(RescheduleHistory)
        .filter(RescheduleHistory.appointment_id == appointment_id)
        .order_by(RescheduleHistory.created_at, RescheduleHistory.id)
        .all()
    )


def list_reschedule_history(db: Session, appointment_id: UUID) -> list[RescheduleHistory]:
    appointment_service.get_appointment(db, appointment_id)
    return get_history(db, appointment_id)


def _suggest_alternatives(
    db: Session,
    appointment: Appointment,
    around: datetime,
    duration_minutes: int,
    now: datetime,
) -> list[datetime]:
    options = slot_service.find_options(
        db,
        appointment.professional_id,
        duration_minutes,
        around,
        exclude_appointment_id=appointment.id,
        now=now,
    )
    return slot_service.available_starts(options, settings.RESCHEDULE_SUGGESTION_LIMIT)


def reschedule_appointment(
    db: Session,
    appointment_id: UUID,
    new_start: datetime,
    *,
    initiated_by: RescheduleInitiator | str = RescheduleInitiator.CLIENT,
    reason: str | None = None,
    duration_minutes: int | None = None,
    notify_client: bool | None = None,
    sender: NotificationSender | None = None,
    now: datetime | None = None,
) -> RescheduleResult:
    """
    Move an appointment to ``new_start``.

    Raises NotFoundError for an unknown appointment and ValidationError for a
    non-positive duration. Returns success=False with policy errors, or with
    conflicts plus suggested alternative starts, without writing anything.
    """
    initiator = RescheduleInitiator(initiated_by)
    requested = ensure_utc(new_start)
    now = ensure_utc(now) if now else utcnow()

    appointment = appointment_service.get_appointment(db, appointment_id)
    duration = duration_minutes if duration_minutes is not None else appointment.duration_minutes
    slot_service.validate_duration(duration)

    professional_id = appointment.professional_id
    context = build_log_context(professional_id=professional_id, appointment_id=appointment_id)

    with professional_lock(db, professional_id) as professional:
        try:
            db.refresh(appointment)
            tz = resolve_timezone(professional.timezone)
            policy = reschedule_policy_service.get_policy(db, professional_id)
            history = get_history(db, appointment_id)

            outcome = reschedule_policy_service.validate_reschedule(
                appointment, requested, policy, history, tz, now, initiated_by=initiator
            )
            if not outcome.is_valid:
                db.rollback()
                logger.info(
                    "Reschedule denied by policy for appointment=%s: %s",
                    appointment_id,
                    [e.code for e in outcome.errors],
                    extra=context,
                )
                return RescheduleResult(
                    success=False,
                    appointment=appointment,
                    error="policy_violation",
                    errors=outcome.errors,
                    warnings=outcome.warnings,
                )

            conflicts: list[ConflictDetail] = []
            calendar = calendar_service.load_calendar(db, professional_id)
            rejection = calendar.window_rejection(requested, duration)
            if rejection:
                conflicts.append(ConflictDetail(kind=rejection.reason, message=rejection.message))
            overlapping = conflict_service.find_conflicts(
                db,
                professional_id,
                requested,
                duration,
                exclude_appointment_id=appointment_id,
                buffer_minutes=professional.buffer_minutes or 0,
            )
            conflicts.extend(conflict_service.describe_conflicts(db, overlapping))

            if conflicts:
                db.rollback()
                suggestions = _suggest_alternatives(db, appointment, requested, duration, now)
                logger.info(
                    "Reschedule conflict for appointment=%s (%d conflicts, %d suggestions)",
                    appointment_id,
                    len(conflicts),
                    len(suggestions),
                    extra=context,
                )
                return RescheduleResult(
                    success=False,
                    appointment=appointment,
                    error="conflict",
                    warnings=outcome.warnings,
                    conflicts=conflicts,
                    suggested_times=suggestions,
                )

            original_start = appointment.scheduled_for
            impact = reschedule_policy_service.calculate_impact(original_start, requested, tz)

            appointment.scheduled_for = requested
            appointment.scheduled_end = requested + timedelta(minutes=duration)
            appointment.duration_minutes = duration
            appointment.status = (
                AppointmentStatus.CONFIRMED.value
                if policy.auto_confirm
                else AppointmentStatus.SCHEDULED.value
            )
            entry = RescheduleHistory(
                appointment_id=appointment.id,
                original_scheduled_for=original_start,
                requested_scheduled_for=requested,
                reason=reason or DEFAULT_REASON,
                initiated_by=initiator.value,
                status=RescheduleStatus.CONFIRMED.value,
                created_at=now,
            )
            db.add(entry)
            reminder_service.rebind_reminders(db, appointment, now=now)
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(appointment)
    db.refresh(entry)
    logger.info(
        "Appointment rescheduled id=%s from=%s to=%s by=%s",
        appointment.id,
        original_start.isoformat(),
        requested.isoformat(),
        initiator.value,
        extra=context,
    )

    should_notify = policy.notify_client if notify_client is None else notify_client
    notification_sent = False
    if should_notify and sender is not None:
        notification_sent = _notify_rescheduled(db, appointment, sender)

    return RescheduleResult(
        success=True,
        appointment=appointment,
        history=entry,
        warnings=outcome.warnings,
        impact=impact,
        notification_sent=notification_sent,
    )


def _notify_rescheduled(db: Session, appointment: Appointment, sender: NotificationSender) -> bool:
    """Best-effort client notice on every configured channel the client can receive."""
    client = db.get(Client, appointment.client_id)
    config = reminder_service.get_reminder_config(db, appointment.professional_id)
    message = message_service.render_for_appointment(db, appointment, message_service.RESCHEDULED)

    delivered = False
    for channel in config.channels or []:
        recipient = reminder_service.recipient_for(channel, client)
        if not recipient:
            continue
        try:
            result = sender.send(channel, recipient, message)
        except Exception:
            logger.exception(
                "Reschedule notice to %s failed for appointment=%s",
                mask_recipient(recipient),
                appointment.id,
                extra=build_log_context(appointment_id=appointment.id, channel=channel),
            )
            continue
        if result.delivered:
            delivered = True
        else:
            logger.warning(
                "Reschedule notice not delivered for appointment=%s: %s",
                appointment.id,
                result.error,
                extra=build_log_context(appointment_id=appointment.id, channel=channel),
            )
    return delivered


def find_reschedule_options(
    db: Session,
    appointment_id: UUID,
    preferences: slot_service.SlotPreferences | None = None,
    now: datetime | None = None,
) -> RescheduleOptions:
    """
    Ranked alternatives for an appointment plus the policy view of it.

    errors holds the policy rules that block moving this appointment at all
    (status, notice on the current slot, reschedule limit).
    """
    now = ensure_utc(now) if now else utcnow()
    appointment = appointment_service.get_appointment(db, appointment_id)
    policy = reschedule_policy_service.get_policy(db, appointment.professional_id)
    history = get_history(db, appointment_id)
    reschedule_count = reschedule_policy_service.count_confirmed_reschedules(history, appointment_id)

    options = slot_service.find_options(
        db,
        appointment.professional_id,
        appointment.duration_minutes,
        appointment.scheduled_for,
        preferences,
        exclude_appointment_id=appointment.id,
        now=now,
    )
    # The current slot is not an alternative to itself
    options = [o for o in options if o.start != appointment.scheduled_for]
    available = [o for o in options if o.available][: settings.RESCHEDULE_OPTIONS_LIMIT]
    unavailable = [o for o in options if not o.available][: settings.RESCHEDULE_UNAVAILABLE_LIMIT]

    errors = reschedule_policy_service.appointment_violations(appointment, policy, history, now)
    warnings = []
    if reschedule_count + 1 == policy.max_reschedules:
        warnings.append(PolicyViolation("last_reschedule", "This is the last reschedule allowed"))

    return RescheduleOptions(
        appointment=appointment,
        available_options=available,
        unavailable_options=unavailable,
        policy=policy,
        reschedule_count=reschedule_count,
        can_reschedule=not errors and bool(available),
        errors=errors,
        warnings=warnings,
    )
