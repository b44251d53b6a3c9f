"""Reminder dispatcher - delivers due reminder jobs through a NotificationSender.

Each job is claimed with a status-guarded UPDATE before sending, so
concurrent dispatch passes (worker + cron endpoint, or several workers)
deliver a job at most once. The job and its appointment are re-read right
before sending, and every later transition is guarded through
ReminderStatus.can_transition_to, so a cancellation that lands mid-dispatch
wins.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, NamedTuple
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from slotbook.core.config import settings
from slotbook.core.exceptions import TransientDispatchError
from slotbook.core.structured_logging import build_log_context
from slotbook.db.enums import ReminderStatus
from slotbook.db.models import Appointment, Client, ReminderJob
from slotbook.services import message_service, reminder_service
from slotbook.services.notification_sender import NotificationSender
from slotbook.utils.datetime_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


class DispatchSummary(NamedTuple):
    processed: int
    sent: int
    failed: int
    retried: int
    canceled: int


def retry_delay(attempts: int) -> timedelta:
    """Exponential backoff: base, 2x base, 4x base, ..."""
    return timedelta(seconds=settings.REMINDER_RETRY_BASE_SECONDS * (2 ** max(attempts - 1, 0)))


def get_due_job_ids(db: Session, now: datetime, limit: int) -> list[UUID]:
    """PENDING jobs whose next attempt is due and that no one holds a lease on."""
    return list(
        db.execute(
            select(ReminderJob.id)
            .where(
                ReminderJob.status == ReminderStatus.PENDING.value,
                ReminderJob.next_attempt_at <= now,
                or_(ReminderJob.claimed_until.is_(None), ReminderJob.claimed_until <= now),
            )
            .order_by(ReminderJob.next_attempt_at)
            .limit(limit)
        ).scalars()
    )


def claim_job(db: Session, job_id: UUID, now: datetime, lease_seconds: int | None = None) -> bool:
    """
    Take a lease on a PENDING job. Returns False if another dispatcher has it
    or it is no longer pending.
    """
    lease = timedelta(seconds=lease_seconds or settings.REMINDER_CLAIM_LEASE_SECONDS)
    result = db.execute(
        update(ReminderJob)
        .where(
            ReminderJob.id == job_id,
            ReminderJob.status == ReminderStatus.PENDING.value,
            or_(ReminderJob.claimed_until.is_(None), ReminderJob.claimed_until <= now),
        )
        .values(claimed_until=now + lease, attempts=ReminderJob.attempts + 1)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def _finish(db: Session, job_id: UUID, values: dict[str, Any]) -> bool:
    """Guarded transition out of PENDING (or a retry reschedule). Commits."""
    target = ReminderStatus(values.get("status", ReminderStatus.PENDING.value))
    result = db.execute(
        update(ReminderJob)
        .where(
            ReminderJob.id == job_id,
            reminder_service.status_guard(target),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount != 1:
        logger.info("Reminder job=%s changed concurrently; transition skipped", job_id)
        return False
    return True


def _truncate_error(error: str) -> str:
    return error[: settings.REMINDER_ERROR_MAX_LENGTH]


def _is_stale(job: ReminderJob, appointment: Appointment | None, now: datetime) -> bool:
    if appointment is None:
        return True
    if appointment.status in reminder_service.NO_REMINDER_STATUSES:
        return True
    if appointment.scheduled_for <= now:
        return True
    return appointment.scheduled_for - timedelta(hours=job.offset_hours) != job.fire_at


def _cancel_stale(db: Session, job: ReminderJob, context: dict[str, Any]) -> str:
    _finish(
        db,
        job.id,
        {
            "status": ReminderStatus.CANCELED.value,
            "claimed_until": None,
            "last_error": "Appointment moved, closed or already started",
        },
    )
    logger.info("Reminder job=%s canceled: appointment no longer matches", job.id, extra=context)
    return "canceled"


def _record_failure(db: Session, job: ReminderJob, error: str, now: datetime) -> str:
    error = _truncate_error(error)
    if job.attempts < job.max_attempts:
        _finish(
            db,
            job.id,
            {
                "last_error": error,
                "claimed_until": None,
                "next_attempt_at": now + retry_delay(job.attempts),
            },
        )
        logger.warning(
            "Reminder job=%s attempt %d/%d failed, will retry: %s",
            job.id,
            job.attempts,
            job.max_attempts,
            error,
            extra=build_log_context(job_id=job.id, appointment_id=job.appointment_id, channel=job.channel),
        )
        return "retried"

    _finish(
        db,
        job.id,
        {"status": ReminderStatus.FAILED.value, "last_error": error, "claimed_until": None},
    )
    logger.error(
        "Reminder job=%s failed permanently after %d attempts: %s",
        job.id,
        job.attempts,
        error,
        extra=build_log_context(job_id=job.id, appointment_id=job.appointment_id, channel=job.channel),
    )
    return "failed"


def dispatch_job(db: Session, job_id: UUID, sender: NotificationSender, now: datetime) -> str | None:
    """
    Claim and deliver one job.

    Returns "sent", "retried", "failed" or "canceled"; None when the job was
    not claimed (owned by someone else or no longer pending).
    """
    if not claim_job(db, job_id, now):
        return None

    job = db.get(ReminderJob, job_id)
    appointment = db.get(Appointment, job.appointment_id)
    context = build_log_context(job_id=job.id, appointment_id=job.appointment_id, channel=job.channel)

    if _is_stale(job, appointment, now):
        return _cancel_stale(db, job, context)

    client = db.get(Client, appointment.client_id)
    recipient = reminder_service.recipient_for(job.channel, client)
    if not recipient:
        _finish(
            db,
            job.id,
            {
                "status": ReminderStatus.FAILED.value,
                "claimed_until": None,
                "last_error": f"Client has no contact for channel {job.channel}",
            },
        )
        logger.warning("Reminder job=%s has no recipient", job.id, extra=context)
        return "failed"

    config = reminder_service.get_reminder_config(db, appointment.professional_id)
    message = message_service.render_for_appointment(
        db,
        appointment,
        message_service.reminder_template_key(job.offset_hours),
        custom_template=job.custom_template or config.message_template,
        hours_before=job.offset_hours,
    )

    # A cancel or reschedule may have committed since the checks above
    db.refresh(job)
    db.refresh(appointment)
    if job.status != ReminderStatus.PENDING.value or _is_stale(job, appointment, now):
        return _cancel_stale(db, job, context)

    try:
        result = sender.send(job.channel, recipient, message)
        error = None if result.delivered else (result.error or "Notification not delivered")
    except TransientDispatchError as exc:
        error = str(exc)
    except Exception as exc:
        logger.exception("Reminder job=%s sender raised unexpectedly", job.id, extra=context)
        error = f"{type(exc).__name__}: {exc}"

    if error is not None:
        return _record_failure(db, job, error, now)

    if _finish(
        db,
        job.id,
        {
            "status": ReminderStatus.SENT.value,
            "sent_at": now,
            "claimed_until": None,
            "last_error": None,
        },
    ):
        logger.info("Reminder job=%s sent", job.id, extra=context)
    return "sent"


def dispatch_due(
    db: Session,
    sender: NotificationSender,
    now: datetime | None = None,
    batch_size: int | None = None,
) -> DispatchSummary:
    """One dispatch pass over due PENDING jobs. ``processed`` counts claimed jobs."""
    now = ensure_utc(now) if now else utcnow()
    job_ids = get_due_job_ids(db, now, batch_size or settings.REMINDER_BATCH_SIZE)

    counts = {"sent": 0, "failed": 0, "retried": 0, "canceled": 0}
    processed = 0
    for job_id in job_ids:
        try:
            outcome = dispatch_job(db, job_id, sender, now)
        except Exception:
            # One broken job must not stop the batch; its lease expires and it is retried
            db.rollback()
            logger.exception("Reminder job=%s dispatch crashed", job_id)
            continue
        if outcome is None:
            continue
        processed += 1
        counts[outcome] += 1

    if job_ids:
        logger.info(
            "Reminder dispatch: due=%d processed=%d sent=%d retried=%d failed=%d canceled=%d",
            len(job_ids),
            processed,
            counts["sent"],
            counts["retried"],
            counts["failed"],
            counts["canceled"],
        )
    return DispatchSummary(processed=processed, **counts)


def process_pending_reminders(
    db: Session,
    sender: NotificationSender,
    now: datetime | None = None,
) -> DispatchSummary:
    """Manual trigger: equivalent to one dispatcher pass."""
    return dispatch_due(db, sender, now=now)
