"""
Internal endpoints for scheduled/cron operations.

Protected by X-Internal-Secret header.
Call from an external cron when the polling worker is not deployed.
"""
import hmac
import logging

from fastapi import APIRouter, Depends, Header, HTTPException

from slotbook.core.config import settings
from slotbook.core.deps import get_sender
from slotbook.db.session import SessionLocal
from slotbook.schemas.reminder import DispatchSummaryRead
from slotbook.services import reminder_dispatcher
from slotbook.services.notification_sender import NotificationSender

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal/scheduled", tags=["internal"])


def verify_internal_secret(x_internal_secret: str = Header(...)):
    """Verify the internal secret header."""
    expected = settings.INTERNAL_SECRET
    if not expected:
        raise HTTPException(status_code=501, detail="INTERNAL_SECRET not configured")
    if not hmac.compare_digest(x_internal_secret, expected):
        raise HTTPException(status_code=403, detail="Invalid internal secret")


@router.post("/reminders", response_model=DispatchSummaryRead)
def dispatch_reminders(
    x_internal_secret: str = Header(...),
    sender: NotificationSender = Depends(get_sender),
):
    """Dispatch due reminders (one pass)."""
    verify_internal_secret(x_internal_secret)

    with SessionLocal() as db:
        summary = reminder_dispatcher.dispatch_due(db, sender)

    logger.info("Scheduled reminder dispatch processed=%d", summary.processed)
    return DispatchSummaryRead(**summary._asdict())
