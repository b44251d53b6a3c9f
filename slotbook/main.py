"""FastAPI application entry point."""
import logging

from fastapi import FastAPI
from sqlalchemy import text

from slotbook.core.config import settings
from slotbook.db.session import engine

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Slotbook API",
    description="Appointment booking, rescheduling and reminders for salon professionals",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# ============================================================================
# Routers
# ============================================================================

from slotbook.routers import appointments, availability, internal, reminders  # noqa: E402

app.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
app.include_router(availability.router, prefix="/professionals", tags=["availability"])
app.include_router(reminders.router, prefix="/reminders", tags=["reminders"])

# Internal endpoints for cron (already has /internal/scheduled prefix)
app.include_router(internal.router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
