"""Calendar model - weekly working hours plus date overrides.

load_calendar() is the only function here that reads the database. Everything
on ProfessionalCalendar is a pure query over the loaded snapshot, so slot
search can evaluate hundreds of candidates without extra round trips.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, NamedTuple
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from slotbook.core.config import settings
from slotbook.core.exceptions import NotFoundError, ValidationError
from slotbook.db.enums import HolidayKind
from slotbook.db.models import Holiday, WorkingHours
from slotbook.services import professional_service
from slotbook.utils.datetime_utils import minutes_of_day, parse_hhmm, resolve_timezone

logger = logging.getLogger(__name__)


# =============================================================================
# Types
# =============================================================================

class WeeklyWindow(NamedTuple):
    """Opening hours for one weekday."""
    is_open: bool
    open_time: time | None
    close_time: time | None
    break_start: time | None = None
    break_end: time | None = None


class DateOverride(NamedTuple):
    """Holiday/vacation/event for a single date."""
    day: date
    name: str
    kind: str
    open_time: time | None = None
    close_time: time | None = None

    @property
    def is_closed(self) -> bool:
        return self.open_time is None or self.close_time is None


class DaySchedule(NamedTuple):
    """Resolved hours for a concrete date. closed_reason is None when open."""
    day: date
    open_time: time | None
    close_time: time | None
    break_start: time | None
    break_end: time | None
    closed_reason: str | None = None  # "holiday" | "closed_day"
    label: str | None = None


class CalendarRejection(NamedTuple):
    reason: str  # crosses_midnight | holiday | closed_day | outside_hours | break
    message: str


@dataclass
class ProfessionalCalendar:
    professional_id: UUID
    tz: ZoneInfo
    weekly: dict[int, WeeklyWindow] = field(default_factory=dict)
    overrides: dict[date, DateOverride] = field(default_factory=dict)

    def day_schedule(self, day: date) -> DaySchedule:
        """Resolve the hours for ``day``; overrides win over weekly hours."""
        override = self.overrides.get(day)
        if override:
            if override.is_closed:
                return DaySchedule(day, None, None, None, None, "holiday", override.name)
            return DaySchedule(day, override.open_time, override.close_time, None, None, None, override.name)

        window = self.weekly.get(day.weekday())
        if not window or not window.is_open or not window.open_time or not window.close_time:
            return DaySchedule(day, None, None, None, None, "closed_day")
        return DaySchedule(
            day,
            window.open_time,
            window.close_time,
            window.break_start,
            window.break_end,
        )

    def window_rejection(self, start: datetime, duration_minutes: int) -> CalendarRejection | None:
        """
        Check ``[start, start + duration)`` against the calendar.

        Returns None when the window is bookable, otherwise the first reason
        found in order: crosses_midnight, holiday, closed_day, outside_hours, break.
        """
        local_start = start.astimezone(self.tz)
        local_end = (start + timedelta(minutes=duration_minutes)).astimezone(self.tz)

        # An end of exactly 00:00 the next day does not cross midnight
        if (local_end - timedelta(microseconds=1)).date() != local_start.date():
            return CalendarRejection("crosses_midnight", "Appointment would cross midnight")

        schedule = self.day_schedule(local_start.date())
        if schedule.closed_reason == "holiday":
            return CalendarRejection(
                "holiday", f"Closed on {schedule.day.isoformat()} ({schedule.label})"
            )
        if schedule.closed_reason == "closed_day":
            return CalendarRejection("closed_day", f"Closed on {local_start.strftime('%A')}")

        start_m = minutes_of_day(local_start.time())
        end_m = minutes_of_day(local_end.time())
        if local_end.date() != local_start.date():
            end_m = 24 * 60

        open_m = minutes_of_day(schedule.open_time)
        close_m = minutes_of_day(schedule.close_time)
        if start_m < open_m or end_m > close_m:
            return CalendarRejection(
                "outside_hours",
                f"Outside working hours ({schedule.open_time:%H:%M} - {schedule.close_time:%H:%M})",
            )

        if schedule.break_start and schedule.break_end:
            break_start_m = minutes_of_day(schedule.break_start)
            break_end_m = minutes_of_day(schedule.break_end)
            if start_m < break_end_m and end_m > break_start_m:
                return CalendarRejection(
                    "break",
                    f"Overlaps break ({schedule.break_start:%H:%M} - {schedule.break_end:%H:%M})",
                )
        return None

    def candidate_envelope(self, day: date | None = None) -> tuple[time, time]:
        """
        Earliest open and latest close across the week, or the configured default.

        With ``day``, an open override for that date widens the envelope to its
        custom hours.
        """
        opens = [w.open_time for w in self.weekly.values() if w.is_open and w.open_time and w.close_time]
        closes = [w.close_time for w in self.weekly.values() if w.is_open and w.open_time and w.close_time]
        override = self.overrides.get(day) if day else None
        if override and not override.is_closed:
            opens.append(override.open_time)
            closes.append(override.close_time)
        if not opens:
            return parse_hhmm(settings.SLOT_DEFAULT_DAY_START), parse_hhmm(settings.SLOT_DEFAULT_DAY_END)
        return min(opens), max(closes)


# =============================================================================
# Loading
# =============================================================================

def load_calendar(
    db: Session,
    professional_id: UUID,
    date_start: date | None = None,
    date_end: date | None = None,
) -> ProfessionalCalendar:
    """Load weekly hours and overrides (optionally limited to a date range)."""
    professional = professional_service.get_professional(db, professional_id)

    weekly = {
        row.day_of_week: WeeklyWindow(
            is_open=row.is_open,
            open_time=row.open_time,
            close_time=row.close_time,
            break_start=row.break_start,
            break_end=row.break_end,
        )
        for row in get_working_hours(db, professional_id)
    }
    overrides = {
        row.date: DateOverride(
            day=row.date,
            name=row.name,
            kind=row.kind,
            open_time=row.open_time,
            close_time=row.close_time,
        )
        for row in list_holidays(db, professional_id, date_start, date_end)
    }
    return ProfessionalCalendar(
        professional_id=professional_id,
        tz=resolve_timezone(professional.timezone),
        weekly=weekly,
        overrides=overrides,
    )


# =============================================================================
# Reference data maintenance
# =============================================================================

def _coerce_time(value: Any) -> time | None:
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value
    return parse_hhmm(str(value))


def set_working_hours(
    db: Session,
    professional_id: UUID,
    entries: list[dict[str, Any]],
) -> list[WorkingHours]:
    """
    Replace all working hours for a professional.

    entries format: [{"day_of_week": 0, "is_open": True, "open_time": "09:00",
    "close_time": "18:00", "break_start": "12:00", "break_end": "13:00"}, ...]
    """
    professional_service.get_professional(db, professional_id)

    seen_days: set[int] = set()
    rows: list[WorkingHours] = []
    for entry in entries:
        day = int(entry["day_of_week"])
        if day < 0 or day > 6:
            raise ValidationError.for_field("day_of_week", "day_of_week must be between 0 and 6")
        if day in seen_days:
            raise ValidationError.for_field("day_of_week", f"Duplicate entry for day {day}")
        seen_days.add(day)

        is_open = bool(entry.get("is_open", True))
        open_time = _coerce_time(entry.get("open_time"))
        close_time = _coerce_time(entry.get("close_time"))
        break_start = _coerce_time(entry.get("break_start"))
        break_end = _coerce_time(entry.get("break_end"))

        if is_open:
            if not open_time or not close_time or open_time >= close_time:
                raise ValidationError.for_field(
                    "open_time", f"Day {day}: open_time must be before close_time"
                )
            if (break_start is None) != (break_end is None):
                raise ValidationError.for_field(
                    "break_start", f"Day {day}: break needs both start and end"
                )
            if break_start and break_end and not (open_time <= break_start < break_end <= close_time):
                raise ValidationError.for_field(
                    "break_start", f"Day {day}: break must fall inside working hours"
                )

        rows.append(
            WorkingHours(
                professional_id=professional_id,
                day_of_week=day,
                is_open=is_open,
                open_time=open_time,
                close_time=close_time,
                break_start=break_start,
                break_end=break_end,
            )
        )

    db.query(WorkingHours).filter(WorkingHours.professional_id == professional_id).delete()
    db.add_all(rows)
    db.commit()
    for row in rows:
        db.refresh(row)
    logger.info("Working hours replaced for professional=%s days=%s", professional_id, sorted(seen_days))
    return rows


def get_working_hours(db: Session, professional_id: UUID) -> list[WorkingHours]:
    return (
        db.query(WorkingHours)
        .filter(WorkingHours.professional_id == professional_id)
        .order_by(WorkingHours.day_of_week)
        .all()
    )


def add_holiday(
    db: Session,
    professional_id: UUID,
    holiday_date: date,
    name: str,
    kind: HolidayKind = HolidayKind.HOLIDAY,
    open_time: time | None = None,
    close_time: time | None = None,
) -> Holiday:
    """Create or replace the override for a date."""
    professional_service.get_professional(db, professional_id)
    if (open_time is None) != (close_time is None):
        raise ValidationError.for_field("open_time", "Custom hours need both open_time and close_time")
    if open_time and close_time and open_time >= close_time:
        raise ValidationError.for_field("open_time", "open_time must be before close_time")

    holiday = db.query(Holiday).filter(
        Holiday.professional_id == professional_id,
        Holiday.date == holiday_date,
    ).first()
    if holiday:
        holiday.name = name
        holiday.kind = HolidayKind(kind).value
        holiday.open_time = open_time
        holiday.close_time = close_time
    else:
        holiday = Holiday(
            professional_id=professional_id,
            date=holiday_date,
            name=name,
            kind=HolidayKind(kind).value,
            open_time=open_time,
            close_time=close_time,
        )
        db.add(holiday)

    db.commit()
    db.refresh(holiday)
    return holiday


def remove_holiday(db: Session, professional_id: UUID, holiday_id: UUID) -> None:
    holiday = db.query(Holiday).filter(
        Holiday.id == holiday_id,
        Holiday.professional_id == professional_id,
    ).first()
    if not holiday:
        raise NotFoundError("Holiday", holiday_id)
    db.delete(holiday)
    db.commit()


def list_holidays(
    db: Session,
    professional_id: UUID,
    date_start: date | None = None,
    date_end: date | None = None,
) -> list[Holiday]:
    query = db.query(Holiday).filter(Holiday.professional_id == professional_id)
    if date_start:
        query = query.filter(Holiday.date >= date_start)
    if date_end:
        query = query.filter(Holiday.date <= date_end)
    return query.order_by(Holiday.date).all()
