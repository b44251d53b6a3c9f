"""Structured logging helpers (PII-safe)."""

from typing import Any
from uuid import UUID


def build_log_context(
    *,
    professional_id: UUID | str | None = None,
    appointment_id: UUID | str | None = None,
    job_id: UUID | str | None = None,
    channel: str | None = None,
    route: str | None = None,
) -> dict[str, Any]:
    """Return a PII-free log context dict for ``extra=``."""
    context: dict[str, Any] = {}
    if professional_id:
        context["professional_id"] = str(professional_id)
    if appointment_id:
        context["appointment_id"] = str(appointment_id)
    if job_id:
        context["job_id"] = str(job_id)
    if channel:
        context["channel"] = channel
    if route:
        context["route"] = route
    return context


def mask_recipient(recipient: str | None) -> str:
    """Mask a phone number or e-mail address before it reaches a log line."""
    if not recipient:
        return ""
    if "@" in recipient:
        local, _, domain = recipient.partition("@")
        prefix = local[:3] if local else ""
        return f"{prefix}...@{domain}"
    digits = "".join(ch for ch in recipient if ch.isdigit())
    if len(digits) <= 4:
        return "***"
    return f"***{digits[-4:]}"
