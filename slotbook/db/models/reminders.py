"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from slotbook.db.base import Base
from slotbook.db.enums import ReminderStatus
from slotbook.db.types import JSONType
from slotbook.utils.datetime_utils import utcnow

if TYPE_CHECKING:
    from slotbook.db.models import Appointment


class ReminderJob(Base):
    """
    One reminder delivery for one appointment on one channel.

    fire_at is fixed at creation (appointment start - offset_hours).
    next_attempt_at starts equal to fire_at and moves forward on retry.
    claimed_until is a short lease taken by the dispatcher that owns the job.
    """

    __tablename__ = "reminder_jobs"
    __table_args__ = (
        Index("idx_reminder_jobs_due", "status", "next_attempt_at"),
        Index("idx_reminder_jobs_appointment", "appointment_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    appointment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False
    )
    professional_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False
    )
    channel: Mapped[str] = mapped_column(String(20), nullable=False)
    offset_hours: Mapped[int] = mapped_column(Integer, nullable=False)

    fire_at: Mapped[datetime] = mapped_column(nullable=False)
    next_attempt_at: Mapped[datetime] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), default=ReminderStatus.PENDING.value, nullable=False
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    claimed_until: Mapped[datetime | None] = mapped_column(nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    custom_template: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    appointment: Mapped["Appointment"] = relationship()


class ReminderConfig(Base):
    """
    Per-professional reminder settings.

    hours_before: offsets in hours, stored sorted descending (e.g. [24, 2]).
    channels: active channel values (e.g. ["whatsapp"]).
    """

    __tablename__ = "reminder_configs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    professional_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("professionals.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    hours_before: Mapped[list[int]] = mapped_column(JSONType, default=list, nullable=False)
    channels: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    message_template: Mapped[str | None] = mapped_column(Text, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)
