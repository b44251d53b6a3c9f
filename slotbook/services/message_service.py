"""Message templates and variables for client notifications."""

from __future__ import annotations

from sqlalchemy.orm import Session

from slotbook.db.models import Appointment, Client, Professional
from slotbook.services.notification_sender import render_message
from slotbook.utils.datetime_utils import resolve_timezone

REMINDER_24_HOURS = "reminder_24hours"
REMINDER_2_HOURS = "reminder_2hours"
RESCHEDULED = "rescheduled"

TEMPLATES: dict[str, str] = {
    REMINDER_24_HOURS: (
        "Hi {{client_name}}! Reminder: you have {{service_name}} with {{professional_name}} "
        "on {{date}} at {{time}}. Reply to confirm or reschedule."
    ),
    REMINDER_2_HOURS: (
        "Hi {{client_name}}! Your {{service_name}} with {{professional_name}} starts in "
        "{{hours_before}}h, at {{time}}. See you soon!"
    ),
    RESCHEDULED: (
        "Hi {{client_name}}, your {{service_name}} with {{professional_name}} was moved to "
        "{{date}} at {{time}}."
    ),
}


def reminder_template_key(offset_hours: int) -> str:
    return REMINDER_2_HOURS if offset_hours <= 2 else REMINDER_24_HOURS


def build_appointment_variables(
    db: Session,
    appointment: Appointment,
    hours_before: int | None = None,
) -> dict[str, str]:
    """Flat template variables; date/time are in the professional's timezone."""
    professional = db.get(Professional, appointment.professional_id)
    client = db.get(Client, appointment.client_id)
    tz = resolve_timezone(professional.timezone if professional else None)
    local_start = appointment.scheduled_for.astimezone(tz)
    return {
        "client_name": client.name if client else "",
        "professional_name": professional.name if professional else "",
        "service_name": appointment.service_name,
        "date": local_start.strftime("%d/%m/%Y"),
        "time": local_start.strftime("%H:%M"),
        "hours_before": str(hours_before) if hours_before is not None else "",
        "price": f"{appointment.service_price:.2f}" if appointment.service_price is not None else "",
    }


def render_for_appointment(
    db: Session,
    appointment: Appointment,
    template_key: str,
    custom_template: str | None = None,
    hours_before: int | None = None,
) -> str:
    template = custom_template or TEMPLATES[template_key]
    return render_message(template, build_appointment_variables(db, appointment, hours_before))
