"""
Tests for slot search.

Coverage:
- Candidate tagging (available, break, closed day, conflict, past)
- Ranking by distance and preferences
- Horizon and same-week bounds
"""

from datetime import time, timedelta

import pytest

from slotbook.core.exceptions import ValidationError
from slotbook.db.enums import HolidayKind
from slotbook.services import calendar_service, slot_service
from slotbook.services.slot_service import SlotPreferences
from tests.conftest import MONDAY, NOW, SUNDAY, TUESDAY, TZ, local


def _by_start(options):
    return {o.start: o for o in options}


class TestCandidateTagging:
    """Monday 09:00-18:00 with a 12:00-13:00 break, Sunday closed, 60-minute service."""

    @pytest.fixture
    def options(self, db, professional):
        return slot_service.find_options(db, professional.id, 60, local(MONDAY, 11), now=NOW)

    def test_target_slot_available_and_first(self, options):
        assert options[0].start == local(MONDAY, 11)
        assert options[0].available

    def test_break_overlaps_unavailable(self, options):
        by_start = _by_start(options)
        for hour, minute in ((11, 30), (12, 0), (12, 30)):
            option = by_start[local(MONDAY, hour, minute)]
            assert not option.available
            assert option.reason == "break"
        assert by_start[local(MONDAY, 13)].available

    def test_sunday_unavailable(self, options):
        sunday = [o for o in options if o.start.astimezone(TZ).date() == SUNDAY]
        assert sunday
        assert all(not o.available and o.reason == "closed_day" for o in sunday)

    def test_past_candidates_unavailable(self, options):
        past = [o for o in options if o.start <= NOW]
        assert past
        assert all(o.reason == "in_past" for o in past)

    def test_window_past_close_unavailable(self, options):
        assert _by_start(options)[local(MONDAY, 17, 30)].reason == "outside_hours"

    def test_candidates_on_grid(self, options):
        assert all(o.start.astimezone(TZ).minute in (0, 30) for o in options)
        assert all(o.end - o.start == timedelta(minutes=60) for o in options)


class TestConflictsAndRanking:

    def test_booked_slot_tagged_conflict(self, db, professional, make_appointment):
        make_appointment(local(MONDAY, 10), 60)
        options = _by_start(slot_service.find_options(db, professional.id, 60, local(MONDAY, 10), now=NOW))

        assert options[local(MONDAY, 10)].reason == "conflict"
        assert options[local(MONDAY, 9, 30)].reason == "conflict"
        assert options[local(MONDAY, 11)].available

    def test_excluded_appointment_frees_slot(self, db, professional, make_appointment):
        existing = make_appointment(local(MONDAY, 10), 60)
        options = _by_start(
            slot_service.find_options(
                db, professional.id, 60, local(MONDAY, 10), exclude_appointment_id=existing.id, now=NOW
            )
        )
        assert options[local(MONDAY, 10)].available

    def test_sorted_by_distance(self, db, professional):
        around = local(TUESDAY, 15)
        options = slot_service.find_options(db, professional.id, 60, around, now=NOW)
        distances = [abs(o.start - around) for o in options]
        assert distances == sorted(distances)

    def test_prefer_morning_ranks_morning_first(self, db, professional):
        options = slot_service.find_options(
            db,
            professional.id,
            60,
            local(TUESDAY, 15),
            SlotPreferences(prefer_morning=True),
            now=NOW,
        )
        first_afternoon = next(i for i, o in enumerate(options) if o.start.astimezone(TZ).hour >= 12)
        assert all(o.start.astimezone(TZ).hour < 12 for o in options[:first_afternoon])
        assert all(o.start.astimezone(TZ).hour >= 12 for o in options[first_afternoon:])

    def test_avoid_weekends_ranks_weekend_last(self, db, professional):
        options = slot_service.find_options(
            db,
            professional.id,
            60,
            local(MONDAY, 10),
            SlotPreferences(avoid_weekends=True),
            now=NOW,
        )
        weekend_flags = [o.start.astimezone(TZ).weekday() >= 5 for o in options]
        assert weekend_flags == sorted(weekend_flags)

    def test_same_week_bounds(self, db, professional):
        options = slot_service.find_options(
            db,
            professional.id,
            60,
            local(TUESDAY, 10),
            SlotPreferences(prefer_same_week=True),
            now=NOW,
        )
        days = {o.start.astimezone(TZ).date() for o in options}
        assert min(days) == MONDAY
        assert max(days) == MONDAY + timedelta(days=6)

    def test_horizon_bounds(self, db, professional):
        options = slot_service.find_options(
            db, professional.id, 60, local(TUESDAY, 10), SlotPreferences(horizon_days=1), now=NOW
        )
        days = {o.start.astimezone(TZ).date() for o in options}
        assert days == {MONDAY, TUESDAY, TUESDAY + timedelta(days=1)}

    def test_available_starts_keeps_rank(self, db, professional):
        options = slot_service.find_options(db, professional.id, 60, local(MONDAY, 11), now=NOW)
        starts = slot_service.available_starts(options, 3)
        assert starts[0] == local(MONDAY, 11)
        assert len(starts) == 3

    def test_override_hours_outside_week_are_searched(self, db, professional):
        calendar_service.add_holiday(
            db,
            professional.id,
            MONDAY,
            "Open house",
            kind=HolidayKind.EVENT,
            open_time=time(7, 0),
            close_time=time(20, 0),
        )
        options = _by_start(slot_service.find_options(db, professional.id, 60, local(MONDAY, 8), now=NOW))

        assert options[local(MONDAY, 7)].available
        assert options[local(MONDAY, 19)].available
        assert local(TUESDAY, 7) not in options


class TestValidation:

    @pytest.mark.parametrize("duration", [0, -30])
    def test_non_positive_duration(self, db, professional, duration):
        with pytest.raises(ValidationError) as exc_info:
            slot_service.find_options(db, professional.id, duration, local(MONDAY, 10), now=NOW)
        assert exc_info.value.reasons[0].field == "duration_minutes"
