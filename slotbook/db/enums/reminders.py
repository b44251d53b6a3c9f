"""Reminder enums."""

from enum import Enum


class ReminderChannel(str, Enum):
    """Transport a reminder is delivered through."""

    WHATSAPP = "whatsapp"
    EMAIL = "email"
    SMS = "sms"

    @property
    def needs_phone(self) -> bool:
        return self in (ReminderChannel.WHATSAPP, ReminderChannel.SMS)


class ReminderStatus(str, Enum):
    """
    Reminder job status.

    Flow: pending → sent
              ↘ failed (retries exhausted)
              ↘ canceled (appointment moved or cancelled)
    Retries keep the job pending with a later next_attempt_at.
    """

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    CANCELED = "canceled"

    def can_transition_to(self, target: "ReminderStatus") -> bool:
        return self == ReminderStatus.PENDING and target != ReminderStatus.PENDING

    @classmethod
    def sources_of(cls, target: "ReminderStatus") -> list["ReminderStatus"]:
        """Statuses a job may be in for a move to ``target`` to be allowed."""
        return [status for status in cls if status.can_transition_to(target)]


DEFAULT_REMINDER_HOURS = [24, 2]
DEFAULT_REMINDER_CHANNELS = [ReminderChannel.WHATSAPP]
MAX_REMINDER_HOURS = 168  # One week
