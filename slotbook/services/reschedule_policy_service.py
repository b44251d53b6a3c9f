"""Reschedule policy - rule engine for when and how often an appointment may move.

validate_reschedule() is pure and deterministic given its inputs (including
``now``); it never touches the session. get_policy/set_policy manage the
per-professional configuration row.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any, Iterable, NamedTuple
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from slotbook.core.exceptions import FieldReason, ValidationError
from slotbook.db.enums import (
    RESCHEDULABLE_STATUSES,
    AppointmentStatus,
    RescheduleInitiator,
    RescheduleStatus,
)
from slotbook.db.models import Appointment, RescheduleHistory, ReschedulePolicy
from slotbook.services import professional_service

logger = logging.getLogger(__name__)

FAR_FUTURE_DAYS = 180
COMMON_HOURS_START = 8
COMMON_HOURS_END = 18


# =============================================================================
# Types
# =============================================================================

class PolicyViolation(NamedTuple):
    code: str
    message: str


class PolicyOutcome(NamedTuple):
    """Structured validation result: allowed, allowed with warnings, or denied."""
    is_valid: bool
    errors: list[PolicyViolation]
    warnings: list[PolicyViolation]


class BlackoutRange(NamedTuple):
    start: date
    end: date
    reason: str | None = None

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


class RescheduleImpact(NamedTuple):
    level: str  # low | medium | high
    warnings: list[str]


# =============================================================================
# Policy configuration
# =============================================================================

def default_policy(professional_id: UUID | None = None) -> ReschedulePolicy:
    """System default policy (unsaved)."""
    return ReschedulePolicy(
        professional_id=professional_id,
        allow_client_reschedule=True,
        minimum_notice_hours=2,
        warning_notice_hours=4,
        max_reschedules=3,
        allow_same_day=False,
        auto_confirm=False,
        notify_client=True,
        blackout_ranges=[],
    )


def get_policy(db: Session, professional_id: UUID) -> ReschedulePolicy:
    """Persisted policy for the professional, or the system default."""
    policy = db.query(ReschedulePolicy).filter(
        ReschedulePolicy.professional_id == professional_id
    ).first()
    return policy or default_policy(professional_id)


def parse_blackout_ranges(raw: Iterable[dict[str, Any]] | None) -> list[BlackoutRange]:
    ranges = []
    for index, item in enumerate(raw or []):
        try:
            start = item["start"] if isinstance(item["start"], date) else date.fromisoformat(item["start"])
            end = item["end"] if isinstance(item["end"], date) else date.fromisoformat(item["end"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError.for_field(
                f"blackout_ranges[{index}]", f"Invalid blackout range: {exc}"
            ) from exc
        if end < start:
            raise ValidationError.for_field(
                f"blackout_ranges[{index}]", "Blackout range ends before it starts"
            )
        ranges.append(BlackoutRange(start, end, item.get("reason")))
    return ranges


def set_policy(db: Session, professional_id: UUID, **fields: Any) -> ReschedulePolicy:
    """Create or update the professional's policy. Unknown fields are ignored."""
    professional_service.get_professional(db, professional_id)

    reasons = []
    for name in ("minimum_notice_hours", "warning_notice_hours", "max_reschedules"):
        value = fields.get(name)
        if value is not None and value < 0:
            reasons.append(FieldReason(field=name, message=f"{name} cannot be negative"))
    if reasons:
        raise ValidationError("Invalid reschedule policy", reasons)

    if fields.get("blackout_ranges") is not None:
        fields["blackout_ranges"] = [
            {"start": r.start.isoformat(), "end": r.end.isoformat(), "reason": r.reason}
            for r in parse_blackout_ranges(fields["blackout_ranges"])
        ]

    policy = db.query(ReschedulePolicy).filter(
        ReschedulePolicy.professional_id == professional_id
    ).first()
    if not policy:
        policy = default_policy(professional_id)
        db.add(policy)

    for name in (
        "allow_client_reschedule",
        "minimum_notice_hours",
        "warning_notice_hours",
        "max_reschedules",
        "allow_same_day",
        "auto_confirm",
        "notify_client",
        "blackout_ranges",
    ):
        if fields.get(name) is not None:
            setattr(policy, name, fields[name])

    db.commit()
    db.refresh(policy)
    logger.info("Reschedule policy updated for professional=%s", professional_id)
    return policy


# =============================================================================
# Validation
# =============================================================================

def count_confirmed_reschedules(history: Iterable[RescheduleHistory], appointment_id: UUID) -> int:
    return sum(
        1
        for entry in history
        if entry.appointment_id == appointment_id
        and entry.status == RescheduleStatus.CONFIRMED.value
    )


def appointment_violations(
    appointment: Appointment,
    policy: ReschedulePolicy,
    history: Iterable[RescheduleHistory],
    now: datetime,
    initiated_by: RescheduleInitiator | str | None = None,
) -> list[PolicyViolation]:
    """Rules about the appointment itself, independent of the requested time."""
    errors: list[PolicyViolation] = []

    status = AppointmentStatus(appointment.status)
    if status not in RESCHEDULABLE_STATUSES:
        errors.append(
            PolicyViolation("status_not_reschedulable", f"Cannot reschedule a {status.value} appointment")
        )

    if (
        initiated_by is not None
        and RescheduleInitiator(initiated_by) == RescheduleInitiator.CLIENT
        and not policy.allow_client_reschedule
    ):
        errors.append(
            PolicyViolation("client_reschedule_disabled", "Clients cannot reschedule with this professional")
        )

    until_current = appointment.scheduled_for - now
    if until_current <= timedelta(0):
        errors.append(PolicyViolation("appointment_in_past", "Appointment has already started or passed"))
    elif until_current < timedelta(hours=policy.minimum_notice_hours):
        errors.append(
            PolicyViolation(
                "notice_violation",
                f"Reschedules must be requested at least {policy.minimum_notice_hours}h before the appointment",
            )
        )

    confirmed = count_confirmed_reschedules(history, appointment.id)
    if confirmed >= policy.max_reschedules:
        errors.append(
            PolicyViolation(
                "max_reschedules_reached",
                f"Appointment was already rescheduled {confirmed} time(s); limit is {policy.max_reschedules}",
            )
        )
    return errors


def validate_reschedule(
    appointment: Appointment,
    requested: datetime,
    policy: ReschedulePolicy,
    history: Iterable[RescheduleHistory],
    tz: ZoneInfo,
    now: datetime,
    initiated_by: RescheduleInitiator | str | None = None,
) -> PolicyOutcome:
    """
    Evaluate a reschedule request against the policy.

    Every rule is evaluated independently so the caller gets the full list
    of errors, not just the first.
    """
    history = list(history)
    errors = appointment_violations(appointment, policy, history, now, initiated_by)
    warnings: list[PolicyViolation] = []

    until_requested = requested - now
    if until_requested <= timedelta(0):
        errors.append(PolicyViolation("requested_in_past", "New time must be in the future"))
    elif until_requested < timedelta(hours=policy.minimum_notice_hours):
        violation = PolicyViolation(
            "notice_violation",
            f"New time must be at least {policy.minimum_notice_hours}h from now",
        )
        if policy.allow_same_day:
            warnings.append(violation)
        else:
            errors.append(violation)
    elif until_requested < timedelta(hours=policy.warning_notice_hours):
        warnings.append(
            PolicyViolation("short_notice", f"New time is less than {policy.warning_notice_hours}h away")
        )

    requested_local = requested.astimezone(tz)
    if (
        not policy.allow_same_day
        and until_requested > timedelta(0)
        and requested_local.date() == now.astimezone(tz).date()
    ):
        errors.append(PolicyViolation("same_day_not_allowed", "Same-day rescheduling is not allowed"))

    for blackout in parse_blackout_ranges(policy.blackout_ranges):
        if blackout.contains(requested_local.date()):
            suffix = f" ({blackout.reason})" if blackout.reason else ""
            errors.append(
                PolicyViolation("blackout_date", f"{requested_local.date().isoformat()} is blacked out{suffix}")
            )
            break

    # Soft warnings
    if count_confirmed_reschedules(history, appointment.id) + 1 == policy.max_reschedules:
        warnings.append(PolicyViolation("last_reschedule", "This is the last reschedule allowed"))
    if until_requested > timedelta(days=FAR_FUTURE_DAYS):
        warnings.append(PolicyViolation("far_future", "New time is more than 6 months away"))
    if requested_local.weekday() >= 5:
        warnings.append(PolicyViolation("weekend", "New time falls on a weekend"))
    if requested_local.hour < COMMON_HOURS_START or requested_local.hour >= COMMON_HOURS_END:
        warnings.append(
            PolicyViolation("outside_common_hours", "New time is outside common business hours")
        )

    return PolicyOutcome(is_valid=not errors, errors=errors, warnings=warnings)


def calculate_impact(original: datetime, requested: datetime, tz: ZoneInfo) -> RescheduleImpact:
    """Rough disruption estimate of moving from ``original`` to ``requested``."""
    delta = abs(requested - original)
    original_day = original.astimezone(tz).date()
    requested_day = requested.astimezone(tz).date()

    warnings = []
    if delta >= timedelta(days=7):
        warnings.append("Moved by a week or more")
        level = "high"
    elif original_day == requested_day:
        if delta >= timedelta(hours=4):
            warnings.append("Large time change on the same day")
            level = "high"
        else:
            level = "low"
    else:
        warnings.append("Moved to a different day")
        level = "medium"
    return RescheduleImpact(level, warnings)
