"""Timezone helpers shared by the calendar, slot search and reminder code."""

from __future__ import annotations

import logging
from datetime import datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from slotbook.core.config import settings

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Normalize to aware UTC. Naive input is assumed to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_timezone(tz_name: str | None) -> ZoneInfo:
    """Return the ZoneInfo for ``tz_name``, falling back to the configured default."""
    name = tz_name or settings.DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        logger.warning("Unknown timezone %r, defaulting to %s", name, settings.DEFAULT_TIMEZONE)
        return ZoneInfo(settings.DEFAULT_TIMEZONE)


def parse_hhmm(value: str) -> time:
    """Parse an ``HH:MM`` string into a time."""
    hours, _, minutes = value.partition(":")
    return time(int(hours), int(minutes or 0))


def minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute
