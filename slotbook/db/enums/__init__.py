"""Enum definitions for application constants."""

from slotbook.db.enums.appointments import (
    APPOINTMENT_TRANSITIONS,
    BLOCKING_STATUSES,
    DEFAULT_APPOINTMENT_STATUS,
    RESCHEDULABLE_STATUSES,
    AppointmentStatus,
    HolidayKind,
    PaymentStatus,
    RescheduleInitiator,
    RescheduleStatus,
)
from slotbook.db.enums.reminders import (
    DEFAULT_REMINDER_CHANNELS,
    DEFAULT_REMINDER_HOURS,
    MAX_REMINDER_HOURS,
    ReminderChannel,
    ReminderStatus,
)
