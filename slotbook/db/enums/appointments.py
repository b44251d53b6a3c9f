"""Appointment and scheduling enums."""

from enum import Enum


class AppointmentStatus(str, Enum):
    """
    Appointment lifecycle status.

    Flow: scheduled → confirmed → in_progress → completed
              ↘ cancelled
              ↘ no_show
    A reschedule that is not auto-confirmed moves confirmed back to scheduled.
    """

    SCHEDULED = "scheduled"  # Booked, awaiting confirmation
    CONFIRMED = "confirmed"  # Client confirmed
    IN_PROGRESS = "in_progress"  # Service started
    COMPLETED = "completed"  # Service delivered
    CANCELLED = "cancelled"  # Cancelled by client or staff (never deleted)
    NO_SHOW = "no_show"  # Client didn't show up

    def can_transition_to(self, target: "AppointmentStatus") -> bool:
        return target in APPOINTMENT_TRANSITIONS[self]


APPOINTMENT_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset(
        {
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.IN_PROGRESS,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.NO_SHOW,
        }
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {
            AppointmentStatus.SCHEDULED,
            AppointmentStatus.IN_PROGRESS,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.NO_SHOW,
        }
    ),
    AppointmentStatus.IN_PROGRESS: frozenset({AppointmentStatus.COMPLETED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}

# Statuses that still occupy their time window
BLOCKING_STATUSES = frozenset(s for s in AppointmentStatus if s != AppointmentStatus.CANCELLED)

# Statuses a reschedule may start from
RESCHEDULABLE_STATUSES = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED})


class PaymentStatus(str, Enum):
    """Payment lifecycle, tracked independently of the appointment status."""

    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class HolidayKind(str, Enum):
    """Classification of a date-specific calendar override."""

    HOLIDAY = "holiday"
    VACATION = "vacation"
    EVENT = "event"


class RescheduleInitiator(str, Enum):
    """Who asked for a reschedule."""

    CLIENT = "client"
    PROFESSIONAL = "professional"
    STAFF = "staff"
    SYSTEM = "system"


class RescheduleStatus(str, Enum):
    """Outcome recorded on a reschedule history entry. Only committed moves are recorded."""

    CONFIRMED = "confirmed"


# Default appointment status
DEFAULT_APPOINTMENT_STATUS = AppointmentStatus.SCHEDULED
