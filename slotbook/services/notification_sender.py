"""Notification senders - the transport boundary for reminders and client notices.

The dispatcher only depends on the NotificationSender protocol. Channel
transports (WhatsApp/SMS/e-mail providers) sit behind a webhook relay.
"""

from __future__ import annotations

import logging
import re
from typing import NamedTuple, Protocol

import httpx

from slotbook.core.config import settings
from slotbook.core.exceptions import TransientDispatchError
from slotbook.core.structured_logging import mask_recipient
from slotbook.db.enums import ReminderChannel

logger = logging.getLogger(__name__)

VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")


class SendResult(NamedTuple):
    delivered: bool
    error: str | None = None


class NotificationSender(Protocol):
    def send(self, channel: ReminderChannel | str, recipient: str, message: str) -> SendResult:
        ...


def render_message(template: str, variables: dict[str, str]) -> str:
    """
    Render a template with variable substitution.

    Variables in format {{variable_name}} are replaced with values.
    Missing variables are replaced with empty string.
    """
    def replace_var(match: re.Match) -> str:
        return variables.get(match.group(1), "")

    return VARIABLE_PATTERN.sub(replace_var, template)


class LoggingNotificationSender:
    """Dry-run sender: logs instead of delivering. Used when no webhook is configured."""

    def send(self, channel: ReminderChannel | str, recipient: str, message: str) -> SendResult:
        logger.info(
            "[DRY RUN] %s notification to %s (%d chars)",
            ReminderChannel(channel).value,
            mask_recipient(recipient),
            len(message),
        )
        return SendResult(delivered=True)


class WebhookNotificationSender:
    """POST {channel, recipient, message} to a relay that owns the real transports."""

    def __init__(
        self,
        url: str,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ):
        self.url = url
        self.timeout = timeout if timeout is not None else settings.NOTIFICATION_TIMEOUT_SECONDS
        self._client = client

    def send(self, channel: ReminderChannel | str, recipient: str, message: str) -> SendResult:
        payload = {
            "channel": ReminderChannel(channel).value,
            "recipient": recipient,
            "message": message,
        }
        try:
            if self._client is not None:
                response = self._client.post(self.url, json=payload, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(self.url, json=payload)
        except httpx.TransportError as exc:
            raise TransientDispatchError(f"Transport error: {exc}") from exc

        if response.is_success:
            return SendResult(delivered=True)
        if response.status_code == 429 or response.status_code >= 500:
            raise TransientDispatchError(f"Relay returned HTTP {response.status_code}")
        return SendResult(delivered=False, error=f"Relay rejected message: HTTP {response.status_code}")


def get_notification_sender() -> NotificationSender:
    """Sender from settings. Also used as a FastAPI dependency (override in tests)."""
    if settings.NOTIFICATION_WEBHOOK_URL:
        return WebhookNotificationSender(settings.NOTIFICATION_WEBHOOK_URL)
    return LoggingNotificationSender()
