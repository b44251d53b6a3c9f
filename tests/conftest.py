"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database per test (fresh schema, no cross-test state)
- File-backed SQLite engine for multi-threaded tests
- Professional / client / service / calendar factories
- Recording notification sender
- HTTPX AsyncClient wired to the test session
"""
import os
import threading
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Callable, Generator
from zoneinfo import ZoneInfo

# Force an in-memory default database and dry-run notifications for tests
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["NOTIFICATION_WEBHOOK_URL"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from slotbook.core.deps import get_db, get_sender
from slotbook.db.base import Base
from slotbook.db.enums import AppointmentStatus, PaymentStatus, ReminderStatus
from slotbook.db.models import Appointment, Client, Professional, ReminderJob, Service, WorkingHours
from slotbook.main import app
from slotbook.services.notification_sender import SendResult


# =============================================================================
# Time helpers
# =============================================================================

TZ_NAME = "America/Sao_Paulo"
TZ = ZoneInfo(TZ_NAME)

# Saturday 2030-06-01 12:00 local (15:00 UTC)
NOW = datetime(2030, 6, 1, 15, 0, tzinfo=timezone.utc)
SUNDAY = date(2030, 6, 2)
MONDAY = date(2030, 6, 3)
TUESDAY = date(2030, 6, 4)


def local(day: date, hour: int, minute: int = 0) -> datetime:
    """Aware datetime at wall-clock ``hour:minute`` in the test professional's timezone."""
    return datetime.combine(day, time(hour, minute), tzinfo=TZ)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def engine():
    """Fresh in-memory database shared by every session of one test."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(test_engine)
    yield test_engine
    Base.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(scope="function")
def file_session_factory(tmp_path) -> Generator[sessionmaker, None, None]:
    """
    File-backed SQLite for tests that use several threads, each with its
    own connection and session.
    """
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'concurrency.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(file_engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
    file_engine.dispose()


# =============================================================================
# Data Fixtures
# =============================================================================

def create_professional(db: Session, buffer_minutes: int = 0) -> Professional:
    professional = Professional(
        id=uuid.uuid4(),
        name="Ana Souza",
        timezone=TZ_NAME,
        phone="+55 11 90000-0000",
        buffer_minutes=buffer_minutes,
    )
    db.add(professional)
    db.flush()
    return professional


def create_week(db: Session, professional_id: uuid.UUID) -> list[WorkingHours]:
    """Mon-Sat 09:00-18:00 with a 12:00-13:00 break; Sunday closed."""
    rows = []
    for day in range(6):
        rows.append(
            WorkingHours(
                professional_id=professional_id,
                day_of_week=day,
                is_open=True,
                open_time=time(9, 0),
                close_time=time(18, 0),
                break_start=time(12, 0),
                break_end=time(13, 0),
            )
        )
    rows.append(WorkingHours(professional_id=professional_id, day_of_week=6, is_open=False))
    db.add_all(rows)
    db.flush()
    return rows


@pytest.fixture
def professional(db: Session) -> Professional:
    """Professional in America/Sao_Paulo with the standard week."""
    pro = create_professional(db)
    create_week(db, pro.id)
    db.commit()
    return pro


@pytest.fixture
def client(db: Session, professional: Professional) -> Client:
    customer = Client(
        id=uuid.uuid4(),
        professional_id=professional.id,
        name="Maria Lima",
        phone="+55 11 98888-1234",
        email="maria@example.com",
    )
    db.add(customer)
    db.commit()
    return customer


@pytest.fixture
def service(db: Session, professional: Professional) -> Service:
    haircut = Service(
        id=uuid.uuid4(),
        professional_id=professional.id,
        name="Haircut",
        price=Decimal("80.00"),
        duration_minutes=60,
        is_active=True,
    )
    db.add(haircut)
    db.commit()
    return haircut


@pytest.fixture
def make_appointment(db: Session, professional: Professional, client: Client, service: Service) -> Callable[..., Appointment]:
    """Insert an appointment directly, bypassing booking checks."""
    def _make(
        start: datetime,
        duration_minutes: int = 60,
        status: AppointmentStatus = AppointmentStatus.SCHEDULED,
    ) -> Appointment:
        start = start.astimezone(timezone.utc)
        appointment = Appointment(
            id=uuid.uuid4(),
            professional_id=professional.id,
            client_id=client.id,
            service_id=service.id,
            service_name=service.name,
            service_price=service.price,
            duration_minutes=duration_minutes,
            scheduled_for=start,
            scheduled_end=start + timedelta(minutes=duration_minutes),
            status=status.value,
            payment_status=PaymentStatus.PENDING.value,
        )
        db.add(appointment)
        db.commit()
        return appointment

    return _make


def add_due_job(db: Session, appointment: Appointment, offset_hours: int = 24) -> ReminderJob:
    """Pending reminder whose fire time may already have passed (no scheduling checks)."""
    fire_at = appointment.scheduled_for - timedelta(hours=offset_hours)
    job = ReminderJob(
        appointment_id=appointment.id,
        professional_id=appointment.professional_id,
        channel="whatsapp",
        offset_hours=offset_hours,
        fire_at=fire_at,
        next_attempt_at=fire_at,
        status=ReminderStatus.PENDING.value,
        attempts=0,
        max_attempts=3,
    )
    db.add(job)
    db.commit()
    return job


# =============================================================================
# Notification Fixtures
# =============================================================================

@dataclass
class RecordingSender:
    """Notification sender that records every send and replays scripted outcomes."""
    outcomes: list = field(default_factory=list)
    calls: list = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def send(self, channel, recipient, message) -> SendResult:
        with self._lock:
            self.calls.append((str(getattr(channel, "value", channel)), recipient, message))
            outcome = self.outcomes.pop(0) if self.outcomes else SendResult(delivered=True)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def api_client(db: Session, sender: RecordingSender) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient bound to the test session and the recording sender."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sender] = lambda: sender

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
