"""FastAPI dependencies."""

from typing import Generator

from sqlalchemy.orm import Session

from slotbook.db.session import SessionLocal
from slotbook.services.notification_sender import NotificationSender, get_notification_sender


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session. Services commit; the session is closed after the response."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_sender() -> NotificationSender:
    """Notification sender dependency (overridden in tests)."""
    return get_notification_sender()
