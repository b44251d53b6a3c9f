"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Database
    DATABASE_URL: str = "sqlite:///./slotbook.db"

    # Internal scheduled endpoints (cron jobs)
    INTERNAL_SECRET: str = ""  # Secret for /internal/scheduled/* endpoints

    # Calendar
    DEFAULT_TIMEZONE: str = "America/Sao_Paulo"  # Used when a professional has none

    # Slot search
    SLOT_GRANULARITY_MINUTES: int = 30
    SLOT_SEARCH_HORIZON_DAYS: int = 7
    SLOT_DEFAULT_DAY_START: str = "09:00"  # Candidate envelope when no working hours exist
    SLOT_DEFAULT_DAY_END: str = "18:00"

    # Rescheduling
    RESCHEDULE_SUGGESTION_LIMIT: int = 5  # Alternatives returned on conflict
    RESCHEDULE_OPTIONS_LIMIT: int = 10
    RESCHEDULE_UNAVAILABLE_LIMIT: int = 5
    BOOKING_LOCK_TIMEOUT_SECONDS: float = 10.0  # Max wait for the per-professional lock

    # Reminder dispatch
    REMINDER_BATCH_SIZE: int = 50
    REMINDER_MAX_ATTEMPTS: int = 3
    REMINDER_RETRY_BASE_SECONDS: int = 60  # Doubles per attempt
    REMINDER_CLAIM_LEASE_SECONDS: int = 300
    REMINDER_ERROR_MAX_LENGTH: int = 500

    # Notification transport (empty URL = dry run, log only)
    NOTIFICATION_WEBHOOK_URL: str = ""
    NOTIFICATION_TIMEOUT_SECONDS: float = 10.0

    # Worker
    WORKER_POLL_INTERVAL: int = 30


settings = Settings()
