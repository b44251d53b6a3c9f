"""Slot search - enumerate and rank candidate start times around a target.

Candidates are generated on a fixed grid inside the professional's daily
envelope for every day of the horizon, closed days included, and tagged
available/unavailable instead of being dropped so callers can show near misses.
"""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta, timezone
from typing import NamedTuple
from uuid import UUID

from sqlalchemy.orm import Session

from slotbook.core.config import settings
from slotbook.core.exceptions import ValidationError
from slotbook.services import calendar_service, conflict_service, professional_service
from slotbook.utils.datetime_utils import ensure_utc, resolve_timezone, utcnow

logger = logging.getLogger(__name__)


# =============================================================================
# Types
# =============================================================================

class SlotPreferences(NamedTuple):
    """Ranking and horizon preferences for a search."""
    prefer_same_week: bool = False
    avoid_weekends: bool = False
    prefer_morning: bool = False
    prefer_afternoon: bool = False
    horizon_days: int | None = None
    granularity_minutes: int | None = None


class SlotOption(NamedTuple):
    """One candidate window. reason is None when available."""
    start: datetime
    end: datetime
    available: bool
    reason: str | None = None
    message: str | None = None


# =============================================================================
# Search
# =============================================================================

def validate_duration(duration_minutes: int) -> None:
    if duration_minutes is None or duration_minutes <= 0:
        raise ValidationError.for_field(
            "duration_minutes", "Duration must be a positive number of minutes", "invalid_duration"
        )


def find_options(
    db: Session,
    professional_id: UUID,
    duration_minutes: int,
    around: datetime,
    preferences: SlotPreferences | None = None,
    exclude_appointment_id: UUID | None = None,
    now: datetime | None = None,
) -> list[SlotOption]:
    """
    Enumerate candidate starts around ``around`` and rank them.

    A candidate is unavailable when it is in the past, the calendar rejects
    the window (closed day, holiday, outside hours, break, crosses midnight)
    or it overlaps a non-cancelled appointment (buffer included).

    Ordering: weekends last when avoid_weekends, then morning/afternoon
    preference mismatches, then absolute distance from ``around``.
    """
    validate_duration(duration_minutes)
    prefs = preferences or SlotPreferences()
    granularity = prefs.granularity_minutes or settings.SLOT_GRANULARITY_MINUTES
    horizon_days = prefs.horizon_days if prefs.horizon_days is not None else settings.SLOT_SEARCH_HORIZON_DAYS
    if granularity <= 0:
        raise ValidationError.for_field("granularity_minutes", "Granularity must be positive")
    if horizon_days < 0:
        raise ValidationError.for_field("horizon_days", "Horizon cannot be negative")

    around = ensure_utc(around)
    now = ensure_utc(now) if now else utcnow()
    professional = professional_service.get_professional(db, professional_id)
    buffer_minutes = professional.buffer_minutes or 0

    tz = resolve_timezone(professional.timezone)
    local_around = around.astimezone(tz)
    if prefs.prefer_same_week:
        first_day = local_around.date() - timedelta(days=local_around.weekday())
        last_day = first_day + timedelta(days=6)
    else:
        first_day = local_around.date() - timedelta(days=horizon_days)
        last_day = local_around.date() + timedelta(days=horizon_days)

    calendar = calendar_service.load_calendar(db, professional_id, first_day, last_day)

    # One snapshot of busy windows for the whole horizon
    padding = timedelta(minutes=duration_minutes + buffer_minutes)
    window_start = datetime.combine(first_day, time.min, tzinfo=tz).astimezone(timezone.utc) - padding
    window_end = (
        datetime.combine(last_day + timedelta(days=1), time.min, tzinfo=tz).astimezone(timezone.utc)
        + padding
    )
    busy = conflict_service.load_busy_intervals(
        db, professional_id, window_start, window_end, exclude_appointment_id
    )

    options: list[SlotOption] = []
    day = first_day
    while day <= last_day:
        envelope_open, envelope_close = calendar.candidate_envelope(day)
        candidate_local = datetime.combine(day, envelope_open, tzinfo=tz)
        day_end_local = datetime.combine(day, envelope_close, tzinfo=tz)
        while candidate_local < day_end_local:
            options.append(
                _evaluate_candidate(
                    calendar,
                    busy,
                    candidate_local.astimezone(timezone.utc),
                    duration_minutes,
                    buffer_minutes,
                    now,
                )
            )
            candidate_local += timedelta(minutes=granularity)
        day += timedelta(days=1)

    def rank(option: SlotOption):
        local = option.start.astimezone(tz)
        weekend = prefs.avoid_weekends and local.weekday() >= 5
        mismatch = (prefs.prefer_morning and local.hour >= 12) or (
            prefs.prefer_afternoon and local.hour < 12
        )
        return (weekend, mismatch, abs((option.start - around).total_seconds()), option.start)

    options.sort(key=rank)
    logger.debug(
        "Slot search professional=%s candidates=%d available=%d",
        professional_id,
        len(options),
        sum(1 for o in options if o.available),
    )
    return options


def _evaluate_candidate(
    calendar: calendar_service.ProfessionalCalendar,
    busy: list[conflict_service.BusyInterval],
    start: datetime,
    duration_minutes: int,
    buffer_minutes: int,
    now: datetime,
) -> SlotOption:
    end = start + timedelta(minutes=duration_minutes)
    if start <= now:
        return SlotOption(start, end, False, "in_past", "Time has already passed")

    rejection = calendar.window_rejection(start, duration_minutes)
    if rejection:
        return SlotOption(start, end, False, rejection.reason, rejection.message)

    for interval in busy:
        if conflict_service.overlaps(start, end, interval.start, interval.end, buffer_minutes):
            return SlotOption(start, end, False, "conflict", "Overlaps an existing appointment")

    return SlotOption(start, end, True)


def available_starts(options: list[SlotOption], limit: int) -> list[datetime]:
    """First ``limit`` available starts, preserving rank order."""
    return [option.start for option in options if option.available][:limit]
