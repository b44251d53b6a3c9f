"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from slotbook.db.base import Base
from slotbook.db.enums import (
    DEFAULT_APPOINTMENT_STATUS,
    PaymentStatus,
    RescheduleInitiator,
    RescheduleStatus,
)
from slotbook.utils.datetime_utils import utcnow

if TYPE_CHECKING:
    from slotbook.db.models import Client, Professional


class Appointment(Base):
    """
    Booked slot for a client with a professional.

    Times stored in UTC. scheduled_end is derived from scheduled_for +
    duration_minutes and kept in sync so overlap checks are range queries.
    Never deleted: cancellation is a status change.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_professional_start", "professional_id", "scheduled_for"),
        Index("idx_appointments_client", "client_id", "scheduled_for"),
        Index("idx_appointments_status", "professional_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    professional_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False
    )
    service_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("services.id", ondelete="SET NULL"), nullable=True
    )
    # Optional secondary staff member; not part of conflict checks
    team_member_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    # Service snapshot at booking time
    service_name: Mapped[str] = mapped_column(String(255), nullable=False)
    service_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    scheduled_for: Mapped[datetime] = mapped_column(nullable=False)
    scheduled_end: Mapped[datetime] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_APPOINTMENT_STATUS.value, nullable=False
    )
    payment_status: Mapped[str] = mapped_column(
        String(20), default=PaymentStatus.PENDING.value, nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    client: Mapped["Client"] = relationship()
    professional: Mapped["Professional"] = relationship()


class RescheduleHistory(Base):
    """
    Append-only ledger of reschedules.

    Rows are never updated or deleted; the count of confirmed rows feeds the
    policy's max-reschedules rule.
    """

    __tablename__ = "reschedule_history"
    __table_args__ = (Index("idx_reschedule_history_appointment", "appointment_id", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    appointment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False
    )
    original_scheduled_for: Mapped[datetime] = mapped_column(nullable=False)
    requested_scheduled_for: Mapped[datetime] = mapped_column(nullable=False)
    reason: Mapped[str] = mapped_column(Text, default="Not informed", nullable=False)
    initiated_by: Mapped[str] = mapped_column(
        String(20), default=RescheduleInitiator.CLIENT.value, nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), default=RescheduleStatus.CONFIRMED.value, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
