"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import date as date_type, datetime, time
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from slotbook.db.base import Base
from slotbook.db.enums import HolidayKind
from slotbook.db.types import JSONType
from slotbook.utils.datetime_utils import utcnow


class WorkingHours(Base):
    """
    Weekly opening hours for one weekday.

    Uses ISO weekday: Monday=0, Sunday=6. Times are wall-clock in the
    professional's timezone. A missing weekday row means closed.
    """

    __tablename__ = "working_hours"
    __table_args__ = (
        UniqueConstraint("professional_id", "day_of_week", name="uq_working_hours_day"),
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_valid_day_of_week"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    professional_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False
    )
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    is_open: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    open_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    close_time: Mapped[time | None] = mapped_column(Time, nullable=True)

    # Optional single break (lunch)
    break_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    break_end: Mapped[time | None] = mapped_column(Time, nullable=True)


class Holiday(Base):
    """
    Date-specific override (holiday, vacation, one-off event).

    Closes the whole date unless open_time/close_time are both set, in which
    case the date is open with those hours instead of the weekly ones.
    """

    __tablename__ = "holidays"
    __table_args__ = (
        UniqueConstraint("professional_id", "date", name="uq_holiday_date"),
        Index("idx_holidays_professional_date", "professional_id", "date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    professional_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[date_type] = mapped_column(Date, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), default=HolidayKind.HOLIDAY.value, nullable=False)
    open_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    close_time: Mapped[time | None] = mapped_column(Time, nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    @property
    def is_closed(self) -> bool:
        return self.open_time is None or self.close_time is None


class ReschedulePolicy(Base):
    """
    Per-professional reschedule rules.

    blackout_ranges: [{"start": "YYYY-MM-DD", "end": "YYYY-MM-DD", "reason": str}],
    inclusive on both ends.
    """

    __tablename__ = "reschedule_policies"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    professional_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("professionals.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    allow_client_reschedule: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    minimum_notice_hours: Mapped[int] = mapped_column(Integer, default=2, nullable=False)
    warning_notice_hours: Mapped[int] = mapped_column(Integer, default=4, nullable=False)
    max_reschedules: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    allow_same_day: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    auto_confirm: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notify_client: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    blackout_ranges: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, default=list, nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)
