"""Reminders router - config, listing, stats and the manual dispatch trigger."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from slotbook.core.deps import get_db, get_sender
from slotbook.core.exceptions import SlotbookError
from slotbook.core.http_errors import to_http_exception
from slotbook.db.enums import ReminderStatus
from slotbook.schemas.reminder import (
    DispatchSummaryRead,
    ReminderConfigRead,
    ReminderConfigUpdate,
    ReminderJobRead,
    ReminderListResponse,
    ReminderStatsRead,
)
from slotbook.services import reminder_dispatcher, reminder_service
from slotbook.services.notification_sender import NotificationSender
from slotbook.utils.pagination import PaginationParams, get_pagination

router = APIRouter()


@router.get("/config/{professional_id}", response_model=ReminderConfigRead)
def get_reminder_config(professional_id: UUID, db: Session = Depends(get_db)):
    return ReminderConfigRead.model_validate(reminder_service.get_reminder_config(db, professional_id))


@router.put("/config/{professional_id}", response_model=ReminderConfigRead)
def set_reminder_config(
    professional_id: UUID,
    data: ReminderConfigUpdate,
    db: Session = Depends(get_db),
):
    """Update reminder settings. Offsets must be in (0, 168] hours."""
    try:
        config = reminder_service.set_reminder_config(
            db,
            professional_id,
            enabled=data.enabled,
            hours_before=data.hours_before,
            channels=data.channels,
            message_template=data.message_template,
        )
    except SlotbookError as exc:
        raise to_http_exception(exc) from exc
    return ReminderConfigRead.model_validate(config)


@router.get("", response_model=ReminderListResponse)
def list_reminders(
    professional_id: UUID,
    status: ReminderStatus | None = None,
    appointment_id: UUID | None = None,
    pagination: PaginationParams = Depends(get_pagination),
    db: Session = Depends(get_db),
):
    items, total = reminder_service.list_reminders(
        db,
        professional_id,
        status=status,
        appointment_id=appointment_id,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return ReminderListResponse(
        **pagination.envelope([ReminderJobRead.model_validate(j) for j in items], total)
    )


@router.get("/stats/{professional_id}", response_model=ReminderStatsRead)
def get_reminder_stats(professional_id: UUID, db: Session = Depends(get_db)):
    stats = reminder_service.get_reminder_stats(db, professional_id)
    return ReminderStatsRead(**stats._asdict())


@router.post("/process", response_model=DispatchSummaryRead)
def process_pending_reminders(
    db: Session = Depends(get_db),
    sender: NotificationSender = Depends(get_sender),
):
    """Run one dispatch pass over due reminders."""
    summary = reminder_dispatcher.process_pending_reminders(db, sender)
    return DispatchSummaryRead(**summary._asdict())
