"""
Background worker that dispatches due appointment reminders.

Usage:
    python -m slotbook.worker          # poll forever
    python -m slotbook.worker --once   # single pass (cron friendly)

Several workers may run against the same database: each job is claimed
with a lease before it is sent, so a reminder goes out at most once per
successful attempt.
"""

import asyncio
import logging

import click

from slotbook.core.config import settings
from slotbook.core.structured_logging import build_log_context
from slotbook.db.session import SessionLocal
from slotbook.services import reminder_dispatcher
from slotbook.services.notification_sender import (
    LoggingNotificationSender,
    NotificationSender,
    get_notification_sender,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = settings.WORKER_POLL_INTERVAL


def run_once(sender: NotificationSender) -> reminder_dispatcher.DispatchSummary:
    """Run a single dispatch pass in a fresh session."""
    with SessionLocal() as db:
        return reminder_dispatcher.dispatch_due(db, sender)


async def worker_loop(once: bool = False) -> None:
    """Main worker loop - polls for and dispatches due reminders."""
    sender = get_notification_sender()
    logger.info(
        "Worker starting (poll interval: %ss, batch size: %s)",
        POLL_INTERVAL_SECONDS,
        settings.REMINDER_BATCH_SIZE,
    )
    if isinstance(sender, LoggingNotificationSender):
        logger.warning("NOTIFICATION_WEBHOOK_URL not set - reminders will be logged but not sent")

    while True:
        try:
            run_once(sender)
        except Exception:
            logger.exception("Error in worker loop", extra=build_log_context(route="worker"))
            if once:
                raise

        if once:
            return
        await asyncio.sleep(POLL_INTERVAL_SECONDS)


@click.command()
@click.option("--once", is_flag=True, help="Run a single dispatch pass and exit")
def main(once: bool) -> None:
    """Dispatch due appointment reminders."""
    try:
        asyncio.run(worker_loop(once=once))
    except KeyboardInterrupt:
        logger.info("Worker shutting down")


if __name__ == "__main__":
    main()
