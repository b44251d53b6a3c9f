"""Conflict detection - does a candidate window overlap a non-cancelled appointment?

Two windows conflict iff ``start_a < end_b + buffer AND start_b - buffer < end_a``.
All functions here are pure reads; callers that need check-then-write
atomicity hold professional_lock around them.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import NamedTuple
from uuid import UUID

from sqlalchemy.orm import Session

from slotbook.core.exceptions import ConflictDetail
from slotbook.db.enums import BLOCKING_STATUSES
from slotbook.db.models import Appointment, Client
from slotbook.services import professional_service


class BusyInterval(NamedTuple):
    """Occupied window of an existing appointment."""
    appointment_id: UUID
    start: datetime
    end: datetime


def overlaps(
    a_start: datetime,
    a_end: datetime,
    b_start: datetime,
    b_end: datetime,
    buffer_minutes: int = 0,
) -> bool:
    """Half-open interval overlap, with ``b`` widened by the buffer on both sides."""
    buffer = timedelta(minutes=buffer_minutes)
    return a_start < b_end + buffer and b_start - buffer < a_end


def _resolve_buffer(db: Session, professional_id: UUID, buffer_minutes: int | None) -> int:
    if buffer_minutes is not None:
        return buffer_minutes
    return professional_service.get_professional(db, professional_id).buffer_minutes or 0


def _active_appointments_query(
    db: Session,
    professional_id: UUID,
    window_start: datetime,
    window_end: datetime,
    exclude_appointment_id: UUID | None = None,
):
    query = db.query(Appointment).filter(
        Appointment.professional_id == professional_id,
        Appointment.status.in_([s.value for s in BLOCKING_STATUSES]),
        Appointment.scheduled_for < window_end,
        Appointment.scheduled_end > window_start,
    )
    if exclude_appointment_id:
        query = query.filter(Appointment.id != exclude_appointment_id)
    return query


def find_conflicts(
    db: Session,
    professional_id: UUID,
    candidate_start: datetime,
    duration_minutes: int,
    exclude_appointment_id: UUID | None = None,
    buffer_minutes: int | None = None,
) -> list[Appointment]:
    """Return every non-cancelled appointment overlapping the candidate window."""
    buffer = timedelta(minutes=_resolve_buffer(db, professional_id, buffer_minutes))
    candidate_end = candidate_start + timedelta(minutes=duration_minutes)
    return (
        _active_appointments_query(
            db,
            professional_id,
            candidate_start - buffer,
            candidate_end + buffer,
            exclude_appointment_id,
        )
        .order_by(Appointment.scheduled_for)
        .all()
    )


def has_conflict(
    db: Session,
    professional_id: UUID,
    candidate_start: datetime,
    duration_minutes: int,
    exclude_appointment_id: UUID | None = None,
    buffer_minutes: int | None = None,
) -> bool:
    return bool(
        find_conflicts(
            db,
            professional_id,
            candidate_start,
            duration_minutes,
            exclude_appointment_id=exclude_appointment_id,
            buffer_minutes=buffer_minutes,
        )
    )


def load_busy_intervals(
    db: Session,
    professional_id: UUID,
    window_start: datetime,
    window_end: datetime,
    exclude_appointment_id: UUID | None = None,
) -> list[BusyInterval]:
    """Snapshot of occupied windows, for evaluating many candidates in memory."""
    rows = _active_appointments_query(
        db, professional_id, window_start, window_end, exclude_appointment_id
    ).with_entities(Appointment.id, Appointment.scheduled_for, Appointment.scheduled_end)
    return [BusyInterval(row[0], row[1], row[2]) for row in rows.all()]


def describe_conflicts(db: Session, appointments: list[Appointment]) -> list[ConflictDetail]:
    """Build structured conflict details (appointment id, client, time)."""
    client_ids = {appt.client_id for appt in appointments}
    clients = {}
    if client_ids:
        clients = {c.id: c for c in db.query(Client).filter(Client.id.in_(client_ids)).all()}

    details = []
    for appt in appointments:
        client = clients.get(appt.client_id)
        details.append(
            ConflictDetail(
                kind="appointment",
                message=(
                    f"Overlaps {appt.service_name} for {client.name if client else 'another client'} "
                    f"at {appt.scheduled_for.isoformat()}"
                ),
                appointment_id=appt.id,
                client_id=appt.client_id,
                client_name=client.name if client else None,
                service_name=appt.service_name,
                start=appt.scheduled_for,
                end=appt.scheduled_end,
            )
        )
    return details
