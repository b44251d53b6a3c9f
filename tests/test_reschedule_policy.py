"""
Tests for the reschedule policy engine.

validate_reschedule is pure, so these tests build unsaved model objects
instead of touching the database.
"""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from slotbook.core.exceptions import ValidationError
from slotbook.db.enums import AppointmentStatus, RescheduleInitiator, RescheduleStatus
from slotbook.db.models import Appointment, RescheduleHistory
from slotbook.services import reschedule_policy_service as policy_service
from tests.conftest import MONDAY, NOW, TUESDAY, TZ, local


# =============================================================================
# Fixtures
# =============================================================================

def _appointment(start: datetime, status: AppointmentStatus = AppointmentStatus.SCHEDULED) -> Appointment:
    return Appointment(
        id=uuid4(),
        professional_id=uuid4(),
        client_id=uuid4(),
        service_name="Haircut",
        duration_minutes=60,
        scheduled_for=start,
        scheduled_end=start + timedelta(hours=1),
        status=status.value,
    )


def _history(appointment: Appointment, count: int) -> list[RescheduleHistory]:
    return [
        RescheduleHistory(
            appointment_id=appointment.id,
            original_scheduled_for=appointment.scheduled_for,
            requested_scheduled_for=appointment.scheduled_for,
            status=RescheduleStatus.CONFIRMED.value,
        )
        for _ in range(count)
    ]


@pytest.fixture
def policy():
    return policy_service.default_policy()


def _codes(violations) -> list[str]:
    return [v.code for v in violations]


# =============================================================================
# Hard rules
# =============================================================================

class TestPolicyErrors:

    def test_valid_request(self, policy):
        appointment = _appointment(local(MONDAY, 10))
        outcome = policy_service.validate_reschedule(
            appointment, local(TUESDAY, 10), policy, [], TZ, NOW
        )
        assert outcome.is_valid
        assert outcome.errors == []

    def test_notice_on_current_appointment(self, policy):
        policy.minimum_notice_hours = 24
        appointment = _appointment(NOW + timedelta(hours=10))

        outcome = policy_service.validate_reschedule(
            appointment, local(TUESDAY, 10), policy, [], TZ, NOW
        )
        assert not outcome.is_valid
        assert "notice_violation" in _codes(outcome.errors)

    def test_fourth_reschedule_rejected(self, policy):
        appointment = _appointment(local(MONDAY, 10))
        outcome = policy_service.validate_reschedule(
            appointment, local(TUESDAY, 10), policy, _history(appointment, 3), TZ, NOW
        )
        assert "max_reschedules_reached" in _codes(outcome.errors)

    def test_other_appointments_history_not_counted(self, policy):
        appointment = _appointment(local(MONDAY, 10))
        history = _history(_appointment(local(MONDAY, 15)), 3)
        outcome = policy_service.validate_reschedule(
            appointment, local(TUESDAY, 10), policy, history, TZ, NOW
        )
        assert outcome.is_valid

    @pytest.mark.parametrize(
        "status",
        [AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED, AppointmentStatus.IN_PROGRESS],
    )
    def test_status_not_reschedulable(self, policy, status):
        appointment = _appointment(local(MONDAY, 10), status)
        outcome = policy_service.validate_reschedule(
            appointment, local(TUESDAY, 10), policy, [], TZ, NOW
        )
        assert "status_not_reschedulable" in _codes(outcome.errors)

    def test_requested_in_past(self, policy):
        appointment = _appointment(local(MONDAY, 10))
        outcome = policy_service.validate_reschedule(
            appointment, NOW - timedelta(hours=1), policy, [], TZ, NOW
        )
        assert "requested_in_past" in _codes(outcome.errors)

    def test_appointment_already_started(self, policy):
        appointment = _appointment(NOW - timedelta(minutes=5))
        outcome = policy_service.validate_reschedule(
            appointment, local(TUESDAY, 10), policy, [], TZ, NOW
        )
        assert "appointment_in_past" in _codes(outcome.errors)

    def test_same_day_not_allowed(self, policy):
        appointment = _appointment(local(MONDAY, 10))
        # NOW is Saturday 12:00 local; 17:00 the same day is 5h away
        outcome = policy_service.validate_reschedule(
            appointment, NOW + timedelta(hours=5), policy, [], TZ, NOW
        )
        assert "same_day_not_allowed" in _codes(outcome.errors)

    def test_short_notice_error_becomes_warning_when_same_day_allowed(self, policy):
        policy.allow_same_day = True
        appointment = _appointment(local(MONDAY, 10))
        outcome = policy_service.validate_reschedule(
            appointment, NOW + timedelta(hours=1), policy, [], TZ, NOW
        )
        assert outcome.is_valid
        assert "notice_violation" in _codes(outcome.warnings)

    def test_client_reschedule_disabled(self, policy):
        policy.allow_client_reschedule = False
        appointment = _appointment(local(MONDAY, 10))

        denied = policy_service.validate_reschedule(
            appointment, local(TUESDAY, 10), policy, [], TZ, NOW, initiated_by=RescheduleInitiator.CLIENT
        )
        allowed = policy_service.validate_reschedule(
            appointment, local(TUESDAY, 10), policy, [], TZ, NOW, initiated_by=RescheduleInitiator.STAFF
        )
        assert "client_reschedule_disabled" in _codes(denied.errors)
        assert allowed.is_valid

    def test_blackout_date(self, policy):
        policy.blackout_ranges = [
            {"start": TUESDAY.isoformat(), "end": TUESDAY.isoformat(), "reason": "Training"}
        ]
        appointment = _appointment(local(MONDAY, 10))
        outcome = policy_service.validate_reschedule(
            appointment, local(TUESDAY, 10), policy, [], TZ, NOW
        )
        assert "blackout_date" in _codes(outcome.errors)
        assert "Training" in outcome.errors[0].message

    def test_all_errors_reported(self, policy):
        policy.minimum_notice_hours = 24
        appointment = _appointment(NOW + timedelta(hours=10), AppointmentStatus.COMPLETED)
        outcome = policy_service.validate_reschedule(
            appointment, local(TUESDAY, 10), policy, _history(appointment, 3), TZ, NOW
        )
        assert {"status_not_reschedulable", "notice_violation", "max_reschedules_reached"} <= set(
            _codes(outcome.errors)
        )


# =============================================================================
# Warnings and impact
# =============================================================================

class TestPolicyWarnings:

    def test_last_reschedule_warning(self, policy):
        appointment = _appointment(local(MONDAY, 10))
        outcome = policy_service.validate_reschedule(
            appointment, local(TUESDAY, 10), policy, _history(appointment, 2), TZ, NOW
        )
        assert outcome.is_valid
        assert "last_reschedule" in _codes(outcome.warnings)

    def test_short_notice_warning(self, policy):
        policy.allow_same_day = True
        appointment = _appointment(local(MONDAY, 10))
        outcome = policy_service.validate_reschedule(
            appointment, NOW + timedelta(hours=3), policy, [], TZ, NOW
        )
        assert "short_notice" in _codes(outcome.warnings)

    def test_weekend_and_off_hours_warnings(self, policy):
        appointment = _appointment(local(MONDAY, 10))
        outcome = policy_service.validate_reschedule(
            appointment, local(MONDAY + timedelta(days=5), 19), policy, [], TZ, NOW
        )
        assert {"weekend", "outside_common_hours"} <= set(_codes(outcome.warnings))

    def test_far_future_warning(self, policy):
        appointment = _appointment(local(MONDAY, 10))
        outcome = policy_service.validate_reschedule(
            appointment, local(MONDAY + timedelta(days=210), 10), policy, [], TZ, NOW
        )
        assert "far_future" in _codes(outcome.warnings)

    def test_impact_levels(self):
        original = local(MONDAY, 10)
        assert policy_service.calculate_impact(original, local(MONDAY, 11), TZ).level == "low"
        assert policy_service.calculate_impact(original, local(MONDAY, 16), TZ).level == "high"
        assert policy_service.calculate_impact(original, local(TUESDAY, 10), TZ).level == "medium"
        assert policy_service.calculate_impact(
            original, original + timedelta(days=8), TZ
        ).level == "high"


# =============================================================================
# Configuration
# =============================================================================

class TestPolicyConfig:

    def test_default_when_missing(self, db, professional):
        policy = policy_service.get_policy(db, professional.id)
        assert policy.id is None
        assert policy.max_reschedules == 3

    def test_set_policy_partial_update(self, db, professional):
        policy_service.set_policy(db, professional.id, minimum_notice_hours=24)
        policy = policy_service.set_policy(db, professional.id, auto_confirm=True)

        assert policy.minimum_notice_hours == 24
        assert policy.auto_confirm is True

    def test_blackout_ranges_normalized(self, db, professional):
        policy = policy_service.set_policy(
            db,
            professional.id,
            blackout_ranges=[{"start": MONDAY, "end": TUESDAY, "reason": None}],
        )
        assert policy.blackout_ranges == [
            {"start": MONDAY.isoformat(), "end": TUESDAY.isoformat(), "reason": None}
        ]

    def test_inverted_blackout_rejected(self, db, professional):
        with pytest.raises(ValidationError):
            policy_service.set_policy(
                db,
                professional.id,
                blackout_ranges=[{"start": TUESDAY.isoformat(), "end": MONDAY.isoformat()}],
            )

    def test_negative_values_rejected(self, db, professional):
        with pytest.raises(ValidationError) as exc_info:
            policy_service.set_policy(db, professional.id, max_reschedules=-1)
        assert exc_info.value.reasons[0].field == "max_reschedules"
