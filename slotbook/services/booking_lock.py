"""Per-professional mutual exclusion for check-then-write.

Two layers:
- an in-process threading.Lock per professional id (covers SQLite and
  threads of one API process);
- SELECT ... FOR UPDATE on the professional row, which serializes separate
  processes on PostgreSQL until the caller commits or rolls back.

Callers must commit or roll back inside the ``with`` block.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from slotbook.core.config import settings
from slotbook.core.exceptions import ConflictError, NotFoundError
from slotbook.db.models import Professional

logger = logging.getLogger(__name__)

_registry_guard = threading.Lock()
_locks: dict[UUID, threading.Lock] = {}


def _lock_for(professional_id: UUID) -> threading.Lock:
    with _registry_guard:
        lock = _locks.get(professional_id)
        if lock is None:
            lock = threading.Lock()
            _locks[professional_id] = lock
        return lock


@contextmanager
def professional_lock(
    db: Session,
    professional_id: UUID,
    timeout: float | None = None,
) -> Iterator[Professional]:
    """Hold the professional's booking lock; yields the locked Professional row."""
    lock = _lock_for(professional_id)
    wait = settings.BOOKING_LOCK_TIMEOUT_SECONDS if timeout is None else timeout
    if not lock.acquire(timeout=wait):
        logger.warning("Booking lock timeout for professional=%s", professional_id)
        raise ConflictError("Calendar is busy, please retry")
    try:
        professional = db.execute(
            select(Professional).where(Professional.id == professional_id).with_for_update()
        ).scalar_one_or_none()
        if not professional:
            raise NotFoundError("Professional", professional_id)
        yield professional
    finally:
        lock.release()
