"""SQLAlchemy ORM models."""

from slotbook.db.models.appointments import Appointment, RescheduleHistory
from slotbook.db.models.calendar import Holiday, ReschedulePolicy, WorkingHours
from slotbook.db.models.professionals import Client, Professional, Service
from slotbook.db.models.reminders import ReminderConfig, ReminderJob

__all__ = [
    "Appointment",
    "Client",
    "Holiday",
    "Professional",
    "ReminderConfig",
    "ReminderJob",
    "RescheduleHistory",
    "ReschedulePolicy",
    "Service",
    "WorkingHours",
]
