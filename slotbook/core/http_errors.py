"""Map domain errors to HTTP responses."""

from fastapi import HTTPException

from slotbook.core.exceptions import (
    ConflictError,
    NotFoundError,
    SlotbookError,
    ValidationError,
)


def to_http_exception(exc: SlotbookError) -> HTTPException:
    """404 not found, 409 conflict, 422 validation; anything else is a 400."""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(
            status_code=409,
            detail={
                "message": str(exc),
                "conflicts": [c.to_dict() for c in exc.conflicts],
                "suggested_times": [t.isoformat() for t in exc.suggested_times],
            },
        )
    if isinstance(exc, ValidationError):
        return HTTPException(
            status_code=422,
            detail={"message": str(exc), "reasons": [r.to_dict() for r in exc.reasons]},
        )
    return HTTPException(status_code=400, detail=str(exc))
