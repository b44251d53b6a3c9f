"""Reminder scheduler - reminder config and reminder job lifecycle.

Job creation and cancellation only flush; the caller owns the transaction so
cancellation commits together with the appointment mutation that caused it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import NamedTuple
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from slotbook.core.config import settings
from slotbook.core.exceptions import FieldReason, ValidationError
from slotbook.core.structured_logging import build_log_context
from slotbook.db.enums import (
    DEFAULT_REMINDER_CHANNELS,
    DEFAULT_REMINDER_HOURS,
    MAX_REMINDER_HOURS,
    AppointmentStatus,
    ReminderChannel,
    ReminderStatus,
)
from slotbook.db.models import Appointment, Client, ReminderConfig, ReminderJob
from slotbook.services import professional_service
from slotbook.utils.datetime_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

# Appointments in these states never get new reminders
NO_REMINDER_STATUSES = frozenset(
    {
        AppointmentStatus.CANCELLED.value,
        AppointmentStatus.COMPLETED.value,
        AppointmentStatus.NO_SHOW.value,
    }
)


class ReminderStats(NamedTuple):
    total: int
    sent: int
    pending: int
    failed: int
    canceled: int
    success_rate: float


# =============================================================================
# Config
# =============================================================================

def default_config(professional_id: UUID | None = None) -> ReminderConfig:
    """Unsaved default: enabled, 24h and 2h before, WhatsApp only."""
    return ReminderConfig(
        professional_id=professional_id,
        enabled=True,
        hours_before=list(DEFAULT_REMINDER_HOURS),
        channels=[c.value for c in DEFAULT_REMINDER_CHANNELS],
        message_template=None,
    )


def get_reminder_config(db: Session, professional_id: UUID) -> ReminderConfig:
    config = db.query(ReminderConfig).filter(
        ReminderConfig.professional_id == professional_id
    ).first()
    return config or default_config(professional_id)


def normalize_hours(hours_before: list[int]) -> list[int]:
    """Validate offsets to (0, 168], dedupe, sort descending."""
    reasons = [
        FieldReason(
            field="hours_before",
            message=f"{hours} is outside the allowed range (0, {MAX_REMINDER_HOURS}]",
            code="offset_out_of_range",
        )
        for hours in hours_before
        if hours <= 0 or hours > MAX_REMINDER_HOURS
    ]
    if reasons:
        raise ValidationError("Invalid reminder offsets", reasons)
    return sorted(set(hours_before), reverse=True)


def normalize_channels(channels: list[str | ReminderChannel]) -> list[str]:
    """Validate and dedupe channels, keeping first-seen order."""
    normalized: list[str] = []
    for raw in channels:
        try:
            value = ReminderChannel(raw).value
        except ValueError as exc:
            raise ValidationError.for_field("channels", f"Unknown channel: {raw}") from exc
        if value not in normalized:
            normalized.append(value)
    return normalized


def set_reminder_config(
    db: Session,
    professional_id: UUID,
    *,
    enabled: bool | None = None,
    hours_before: list[int] | None = None,
    channels: list[str | ReminderChannel] | None = None,
    message_template: str | None = None,
) -> ReminderConfig:
    """Create or update the reminder config. Applies to jobs scheduled afterwards."""
    professional_service.get_professional(db, professional_id)

    config = db.query(ReminderConfig).filter(
        ReminderConfig.professional_id == professional_id
    ).first()
    if not config:
        config = default_config(professional_id)
        db.add(config)

    if enabled is not None:
        config.enabled = enabled
    if hours_before is not None:
        config.hours_before = normalize_hours(hours_before)
    if channels is not None:
        config.channels = normalize_channels(channels)
    if message_template is not None:
        config.message_template = message_template or None

    db.commit()
    db.refresh(config)
    logger.info(
        "Reminder config updated professional=%s hours=%s channels=%s",
        professional_id,
        config.hours_before,
        config.channels,
    )
    return config


# =============================================================================
# Job lifecycle
# =============================================================================

def recipient_for(channel: ReminderChannel | str, client: Client | None) -> str | None:
    """Phone for WhatsApp/SMS, email for EMAIL; None when the client has neither."""
    if client is None:
        return None
    if ReminderChannel(channel).needs_phone:
        return client.phone or None
    return client.email or None


def schedule_reminders(
    db: Session,
    appointment: Appointment,
    now: datetime | None = None,
) -> list[ReminderJob]:
    """
    Create PENDING jobs for every (offset, channel) whose fire time is still ahead.

    Skips channels the client has no contact for and combinations that already
    have a PENDING job at the same fire time.
    """
    if appointment.status in NO_REMINDER_STATUSES:
        return []

    config = get_reminder_config(db, appointment.professional_id)
    if not config.enabled:
        return []

    now = ensure_utc(now) if now else utcnow()
    client = db.get(Client, appointment.client_id)

    existing = {
        (job.channel, job.fire_at)
        for job in db.query(ReminderJob).filter(
            ReminderJob.appointment_id == appointment.id,
            ReminderJob.status == ReminderStatus.PENDING.value,
        )
    }

    jobs: list[ReminderJob] = []
    for hours in config.hours_before or []:
        fire_at = appointment.scheduled_for - timedelta(hours=hours)
        if fire_at <= now:
            continue
        for channel in config.channels or []:
            if not recipient_for(channel, client):
                continue
            if (channel, fire_at) in existing:
                continue
            job = ReminderJob(
                appointment_id=appointment.id,
                professional_id=appointment.professional_id,
                channel=channel,
                offset_hours=hours,
                fire_at=fire_at,
                next_attempt_at=fire_at,
                status=ReminderStatus.PENDING.value,
                attempts=0,
                max_attempts=settings.REMINDER_MAX_ATTEMPTS,
            )
            db.add(job)
            jobs.append(job)
            existing.add((channel, fire_at))

    db.flush()
    if jobs:
        logger.info(
            "Scheduled %d reminder(s) for appointment=%s",
            len(jobs),
            appointment.id,
            extra=build_log_context(
                professional_id=appointment.professional_id, appointment_id=appointment.id
            ),
        )
    return jobs


def status_guard(target: ReminderStatus):
    """
    WHERE clause admitting only jobs whose status may move to ``target``.

    A retry keeps the job pending, so ``target`` PENDING matches pending jobs.
    """
    if target == ReminderStatus.PENDING:
        return ReminderJob.status == ReminderStatus.PENDING.value
    return ReminderJob.status.in_([status.value for status in ReminderStatus.sources_of(target)])


def cancel_pending_reminders(db: Session, appointment_id: UUID) -> int:
    """Flip every PENDING job of the appointment to CANCELED. Returns the count."""
    result = db.execute(
        update(ReminderJob)
        .where(
            ReminderJob.appointment_id == appointment_id,
            status_guard(ReminderStatus.CANCELED),
        )
        .values(status=ReminderStatus.CANCELED.value, claimed_until=None)
        .execution_options(synchronize_session="fetch")
    )
    db.flush()
    if result.rowcount:
        logger.info(
            "Cancelled %d pending reminder(s) for appointment=%s",
            result.rowcount,
            appointment_id,
            extra=build_log_context(appointment_id=appointment_id),
        )
    return result.rowcount


def rebind_reminders(
    db: Session,
    appointment: Appointment,
    now: datetime | None = None,
) -> list[ReminderJob]:
    """Cancel stale jobs and schedule fresh ones for the appointment's current time."""
    cancel_pending_reminders(db, appointment.id)
    return schedule_reminders(db, appointment, now=now)


def list_pending_for_appointment(db: Session, appointment_id: UUID) -> list[ReminderJob]:
    return (
        db.query(ReminderJob)
        .filter(
            ReminderJob.appointment_id == appointment_id,
            ReminderJob.status == ReminderStatus.PENDING.value,
        )
        .order_by(ReminderJob.fire_at)
        .all()
    )


# =============================================================================
# Reporting
# =============================================================================

def list_reminders(
    db: Session,
    professional_id: UUID,
    status: ReminderStatus | str | None = None,
    appointment_id: UUID | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[ReminderJob], int]:
    """Reminder jobs for a professional, newest fire time first. Returns (items, total)."""
    query = db.query(ReminderJob).filter(ReminderJob.professional_id == professional_id)
    if status:
        query = query.filter(ReminderJob.status == ReminderStatus(status).value)
    if appointment_id:
        query = query.filter(ReminderJob.appointment_id == appointment_id)

    total = query.count()
    items = query.order_by(ReminderJob.fire_at.desc()).offset(offset).limit(limit).all()
    return items, total


def get_reminder_stats(db: Session, professional_id: UUID) -> ReminderStats:
    """Counts per status; success_rate = sent / (total - pending) * 100."""
    rows = (
        db.query(ReminderJob.status, func.count(ReminderJob.id))
        .filter(ReminderJob.professional_id == professional_id)
        .group_by(ReminderJob.status)
        .all()
    )
    counts = {status: count for status, count in rows}
    total = sum(counts.values())
    sent = counts.get(ReminderStatus.SENT.value, 0)
    pending = counts.get(ReminderStatus.PENDING.value, 0)
    settled = total - pending
    success_rate = round(sent / settled * 100, 2) if settled else 0.0
    return ReminderStats(
        total=total,
        sent=sent,
        pending=pending,
        failed=counts.get(ReminderStatus.FAILED.value, 0),
        canceled=counts.get(ReminderStatus.CANCELED.value, 0),
        success_rate=success_rate,
    )
