"""Domain errors raised by slotbook services.

Routers translate these into HTTP responses; services never raise HTTPException.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID


@dataclass
class FieldReason:
    """One field-level reason attached to a ValidationError."""

    field: str
    message: str
    code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"field": self.field, "message": self.message}
        if self.code:
            data["code"] = self.code
        return data


@dataclass
class ConflictDetail:
    """Why a candidate window is not bookable."""

    kind: str  # appointment | holiday | closed_day | outside_hours | break | crosses_midnight
    message: str
    appointment_id: UUID | None = None
    client_id: UUID | None = None
    client_name: str | None = None
    service_name: str | None = None
    start: datetime | None = None
    end: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "appointment_id": str(self.appointment_id) if self.appointment_id else None,
            "client_id": str(self.client_id) if self.client_id else None,
            "client_name": self.client_name,
            "service_name": self.service_name,
            "start": self.start.isoformat() if self.start else None,
            "end": self.end.isoformat() if self.end else None,
        }


class SlotbookError(Exception):
    """Base exception for slotbook domain errors."""

    pass


class NotFoundError(SlotbookError):
    """Appointment, professional, client or service does not exist."""

    def __init__(self, resource: str, resource_id: Any = None):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found")


class ConflictError(SlotbookError):
    """Requested window overlaps an existing appointment."""

    def __init__(
        self,
        message: str,
        conflicts: list[ConflictDetail] | None = None,
        suggested_times: list[datetime] | None = None,
    ):
        self.conflicts = conflicts or []
        self.suggested_times = suggested_times or []
        super().__init__(message)


class ValidationError(SlotbookError):
    """Malformed input or policy violation."""

    def __init__(self, message: str, reasons: list[FieldReason] | None = None):
        self.reasons = reasons or []
        super().__init__(message)

    @classmethod
    def for_field(cls, field_name: str, message: str, code: str | None = None) -> "ValidationError":
        return cls(message, [FieldReason(field=field_name, message=message, code=code)])


class InvalidTransitionError(ValidationError):
    """State machine guard rejected a status change."""

    def __init__(self, entity: str, current: str, target: str):
        self.entity = entity
        self.current = current
        self.target = target
        message = f"Cannot transition {entity} from {current} to {target}"
        super().__init__(message, [FieldReason(field="status", message=message, code="invalid_transition")])


class TransientDispatchError(SlotbookError):
    """Notification send failed in a way worth retrying."""

    pass
