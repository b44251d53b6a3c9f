"""
Tests for the calendar model.

Coverage:
- Weekly hours resolution and date overrides
- Window checks (closed day, holiday, outside hours, break, midnight)
- Working hours and holiday maintenance
"""

from datetime import date, time, timedelta
from uuid import uuid4

import pytest

from slotbook.core.exceptions import NotFoundError, ValidationError
from slotbook.db.enums import HolidayKind
from slotbook.services import calendar_service
from tests.conftest import MONDAY, SUNDAY, TUESDAY, local


# =============================================================================
# Day resolution
# =============================================================================

class TestDaySchedule:
    """Weekly hours and overrides resolve to a concrete day."""

    def test_weekday_uses_weekly_hours(self, db, professional):
        calendar = calendar_service.load_calendar(db, professional.id)
        schedule = calendar.day_schedule(MONDAY)

        assert schedule.closed_reason is None
        assert schedule.open_time == time(9, 0)
        assert schedule.close_time == time(18, 0)
        assert schedule.break_start == time(12, 0)

    def test_sunday_closed(self, db, professional):
        calendar = calendar_service.load_calendar(db, professional.id)
        assert calendar.day_schedule(SUNDAY).closed_reason == "closed_day"

    def test_holiday_closes_day(self, db, professional):
        calendar_service.add_holiday(db, professional.id, MONDAY, "Corpus Christi")
        calendar = calendar_service.load_calendar(db, professional.id)

        schedule = calendar.day_schedule(MONDAY)
        assert schedule.closed_reason == "holiday"
        assert schedule.label == "Corpus Christi"

    def test_override_with_custom_hours(self, db, professional):
        calendar_service.add_holiday(
            db,
            professional.id,
            SUNDAY,
            "Christmas market",
            kind=HolidayKind.EVENT,
            open_time=time(10, 0),
            close_time=time(14, 0),
        )
        calendar = calendar_service.load_calendar(db, professional.id)

        schedule = calendar.day_schedule(SUNDAY)
        assert schedule.closed_reason is None
        assert (schedule.open_time, schedule.close_time) == (time(10, 0), time(14, 0))
        assert calendar.window_rejection(local(SUNDAY, 10), 60) is None

    def test_missing_weekday_row_is_closed(self, db, professional):
        calendar_service.set_working_hours(
            db, professional.id, [{"day_of_week": 0, "open_time": "09:00", "close_time": "17:00"}]
        )
        calendar = calendar_service.load_calendar(db, professional.id)
        assert calendar.day_schedule(TUESDAY).closed_reason == "closed_day"

    def test_date_range_limits_overrides(self, db, professional):
        calendar_service.add_holiday(db, professional.id, MONDAY, "Holiday")
        calendar = calendar_service.load_calendar(
            db, professional.id, TUESDAY, TUESDAY + timedelta(days=3)
        )
        assert MONDAY not in calendar.overrides


# =============================================================================
# Window checks
# =============================================================================

class TestWindowRejection:
    """Whether a [start, start + duration) window fits the calendar."""

    @pytest.fixture
    def calendar(self, db, professional):
        return calendar_service.load_calendar(db, professional.id)

    def test_open_window(self, calendar):
        assert calendar.window_rejection(local(MONDAY, 10), 60) is None

    def test_window_ending_at_close(self, calendar):
        assert calendar.window_rejection(local(MONDAY, 17), 60) is None

    def test_window_past_close(self, calendar):
        rejection = calendar.window_rejection(local(MONDAY, 17, 30), 60)
        assert rejection.reason == "outside_hours"

    def test_window_before_open(self, calendar):
        assert calendar.window_rejection(local(MONDAY, 8, 30), 60).reason == "outside_hours"

    def test_window_touching_break_is_allowed(self, calendar):
        assert calendar.window_rejection(local(MONDAY, 11), 60) is None
        assert calendar.window_rejection(local(MONDAY, 13), 60) is None

    def test_window_overlapping_break(self, calendar):
        assert calendar.window_rejection(local(MONDAY, 11, 30), 60).reason == "break"
        assert calendar.window_rejection(local(MONDAY, 12), 30).reason == "break"

    def test_closed_day(self, calendar):
        assert calendar.window_rejection(local(SUNDAY, 10), 60).reason == "closed_day"

    def test_crosses_midnight(self, calendar):
        assert calendar.window_rejection(local(MONDAY, 23), 120).reason == "crosses_midnight"

    def test_holiday_reason(self, db, professional):
        calendar_service.add_holiday(db, professional.id, MONDAY, "Holiday")
        calendar = calendar_service.load_calendar(db, professional.id)

        rejection = calendar.window_rejection(local(MONDAY, 10), 60)
        assert rejection.reason == "holiday"
        assert "Holiday" in rejection.message

    def test_envelope_spans_week(self, calendar):
        assert calendar.candidate_envelope() == (time(9, 0), time(18, 0))

    def test_envelope_widened_by_override_hours(self, db, professional):
        calendar_service.add_holiday(
            db,
            professional.id,
            MONDAY,
            "Open house",
            kind=HolidayKind.EVENT,
            open_time=time(7, 0),
            close_time=time(20, 0),
        )
        calendar = calendar_service.load_calendar(db, professional.id)

        assert calendar.candidate_envelope(MONDAY) == (time(7, 0), time(20, 0))
        assert calendar.candidate_envelope(TUESDAY) == (time(9, 0), time(18, 0))


# =============================================================================
# Maintenance
# =============================================================================

class TestWorkingHoursMaintenance:

    def test_replace_week(self, db, professional):
        rows = calendar_service.set_working_hours(
            db,
            professional.id,
            [
                {"day_of_week": 0, "open_time": "08:00", "close_time": "12:00"},
                {"day_of_week": 2, "is_open": False},
            ],
        )
        assert [r.day_of_week for r in rows] == [0, 2]
        stored = calendar_service.get_working_hours(db, professional.id)
        assert len(stored) == 2
        assert stored[0].open_time == time(8, 0)

    def test_open_after_close_rejected(self, db, professional):
        with pytest.raises(ValidationError):
            calendar_service.set_working_hours(
                db, professional.id, [{"day_of_week": 0, "open_time": "18:00", "close_time": "09:00"}]
            )

    def test_break_outside_hours_rejected(self, db, professional):
        with pytest.raises(ValidationError) as exc_info:
            calendar_service.set_working_hours(
                db,
                professional.id,
                [
                    {
                        "day_of_week": 0,
                        "open_time": "09:00",
                        "close_time": "18:00",
                        "break_start": "18:30",
                        "break_end": "19:00",
                    }
                ],
            )
        assert exc_info.value.reasons[0].field == "break_start"

    def test_duplicate_day_rejected(self, db, professional):
        entry = {"day_of_week": 1, "open_time": "09:00", "close_time": "18:00"}
        with pytest.raises(ValidationError):
            calendar_service.set_working_hours(db, professional.id, [entry, entry])

    def test_unknown_professional(self, db):
        with pytest.raises(NotFoundError):
            calendar_service.set_working_hours(db, uuid4(), [])


class TestHolidayMaintenance:

    def test_add_is_upsert(self, db, professional):
        first = calendar_service.add_holiday(db, professional.id, MONDAY, "Holiday")
        second = calendar_service.add_holiday(
            db, professional.id, MONDAY, "Vacation", kind=HolidayKind.VACATION
        )

        assert first.id == second.id
        holidays = calendar_service.list_holidays(db, professional.id)
        assert len(holidays) == 1
        assert holidays[0].kind == HolidayKind.VACATION.value

    def test_half_specified_hours_rejected(self, db, professional):
        with pytest.raises(ValidationError):
            calendar_service.add_holiday(db, professional.id, MONDAY, "Event", open_time=time(10, 0))

    def test_remove(self, db, professional):
        holiday = calendar_service.add_holiday(db, professional.id, date(2030, 12, 25), "Christmas")
        calendar_service.remove_holiday(db, professional.id, holiday.id)
        assert calendar_service.list_holidays(db, professional.id) == []

    def test_remove_unknown(self, db, professional):
        with pytest.raises(NotFoundError):
            calendar_service.remove_holiday(db, professional.id, uuid4())
