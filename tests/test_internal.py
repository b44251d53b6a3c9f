"""
Tests for the cron-facing dispatch endpoint.
"""

from datetime import timedelta

import pytest

from slotbook.core.config import settings
from slotbook.db.enums import ReminderStatus
from slotbook.db.models import ReminderJob
from slotbook.utils.datetime_utils import utcnow
from tests.conftest import add_due_job

SECRET = "test-internal-secret"


@pytest.fixture
def internal_session(monkeypatch, session_factory):
    monkeypatch.setattr("slotbook.routers.internal.SessionLocal", session_factory)
    monkeypatch.setattr(settings, "INTERNAL_SECRET", SECRET)


class TestInternalDispatch:

    @pytest.mark.asyncio
    async def test_not_configured(self, api_client, monkeypatch):
        monkeypatch.setattr(settings, "INTERNAL_SECRET", "")
        response = await api_client.post(
            "/internal/scheduled/reminders", headers={"X-Internal-Secret": "anything"}
        )
        assert response.status_code == 501

    @pytest.mark.asyncio
    async def test_wrong_secret(self, api_client, internal_session):
        response = await api_client.post(
            "/internal/scheduled/reminders", headers={"X-Internal-Secret": "wrong"}
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_header(self, api_client, internal_session):
        response = await api_client.post("/internal/scheduled/reminders")
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_dispatches_due_jobs(self, api_client, internal_session, db, make_appointment, sender):
        appointment = make_appointment(utcnow() + timedelta(hours=1))
        job = add_due_job(db, appointment)
        job_id = job.id

        response = await api_client.post(
            "/internal/scheduled/reminders", headers={"X-Internal-Secret": SECRET}
        )

        assert response.status_code == 200
        assert response.json()["sent"] == 1
        assert len(sender.calls) == 1
        db.expire_all()
        assert db.get(ReminderJob, job_id).status == ReminderStatus.SENT.value
