"""Availability router - working hours, holidays, reschedule policy and slot search."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from slotbook.core.deps import get_db
from slotbook.core.exceptions import SlotbookError
from slotbook.core.http_errors import to_http_exception
from slotbook.schemas.appointment import ReschedulePolicyRead, SlotOptionRead
from slotbook.schemas.availability import (
    HolidayCreate,
    HolidayRead,
    ReschedulePolicyUpdate,
    WorkingHoursRead,
    WorkingHoursSet,
)
from slotbook.services import calendar_service, reschedule_policy_service, slot_service

router = APIRouter()


# =============================================================================
# Working hours
# =============================================================================

@router.get("/{professional_id}/working-hours", response_model=list[WorkingHoursRead])
def get_working_hours(professional_id: UUID, db: Session = Depends(get_db)):
    rows = calendar_service.get_working_hours(db, professional_id)
    return [WorkingHoursRead.model_validate(r) for r in rows]


@router.put("/{professional_id}/working-hours", response_model=list[WorkingHoursRead])
def set_working_hours(
    professional_id: UUID,
    data: WorkingHoursSet,
    db: Session = Depends(get_db),
):
    """Replace the whole week. Days left out are closed."""
    try:
        rows = calendar_service.set_working_hours(
            db, professional_id, [day.model_dump() for day in data.days]
        )
    except SlotbookError as exc:
        raise to_http_exception(exc) from exc
    return [WorkingHoursRead.model_validate(r) for r in rows]


# =============================================================================
# Holidays
# =============================================================================

@router.get("/{professional_id}/holidays", response_model=list[HolidayRead])
def list_holidays(professional_id: UUID, db: Session = Depends(get_db)):
    return [HolidayRead.model_validate(h) for h in calendar_service.list_holidays(db, professional_id)]


@router.post("/{professional_id}/holidays", response_model=HolidayRead, status_code=201)
def add_holiday(
    professional_id: UUID,
    data: HolidayCreate,
    db: Session = Depends(get_db),
):
    try:
        holiday = calendar_service.add_holiday(
            db,
            professional_id,
            data.date,
            data.name,
            kind=data.kind,
            open_time=data.open_time,
            close_time=data.close_time,
        )
    except SlotbookError as exc:
        raise to_http_exception(exc) from exc
    return HolidayRead.model_validate(holiday)


@router.delete("/{professional_id}/holidays/{holiday_id}", status_code=204)
def remove_holiday(professional_id: UUID, holiday_id: UUID, db: Session = Depends(get_db)):
    try:
        calendar_service.remove_holiday(db, professional_id, holiday_id)
    except SlotbookError as exc:
        raise to_http_exception(exc) from exc


# =============================================================================
# Reschedule policy
# =============================================================================

@router.get("/{professional_id}/reschedule-policy", response_model=ReschedulePolicyRead)
def get_reschedule_policy(professional_id: UUID, db: Session = Depends(get_db)):
    return ReschedulePolicyRead.model_validate(reschedule_policy_service.get_policy(db, professional_id))


@router.put("/{professional_id}/reschedule-policy", response_model=ReschedulePolicyRead)
def update_reschedule_policy(
    professional_id: UUID,
    data: ReschedulePolicyUpdate,
    db: Session = Depends(get_db),
):
    try:
        policy = reschedule_policy_service.set_policy(
            db, professional_id, **data.model_dump(exclude_none=True)
        )
    except SlotbookError as exc:
        raise to_http_exception(exc) from exc
    return ReschedulePolicyRead.model_validate(policy)


# =============================================================================
# Slot search
# =============================================================================

@router.get("/{professional_id}/slots", response_model=list[SlotOptionRead])
def find_slots(
    professional_id: UUID,
    duration_minutes: int,
    around: datetime,
    prefer_same_week: bool = False,
    avoid_weekends: bool = False,
    prefer_morning: bool = False,
    prefer_afternoon: bool = False,
    only_available: bool = False,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """Ranked candidate starts around an instant, tagged available/unavailable."""
    preferences = slot_service.SlotPreferences(
        prefer_same_week=prefer_same_week,
        avoid_weekends=avoid_weekends,
        prefer_morning=prefer_morning,
        prefer_afternoon=prefer_afternoon,
    )
    try:
        options = slot_service.find_options(db, professional_id, duration_minutes, around, preferences)
    except SlotbookError as exc:
        raise to_http_exception(exc) from exc
    if only_available:
        options = [o for o in options if o.available]
    return [
        SlotOptionRead(
            start=o.start, end=o.end, available=o.available, reason=o.reason, message=o.message
        )
        for o in options[:limit]
    ]
