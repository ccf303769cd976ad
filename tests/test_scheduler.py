"""Tests for the background maintenance scheduler."""

from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from apptime_api.config import settings
from apptime_api.services import scheduler as scheduler_module
from apptime_api.services.scheduler import (
    get_scheduler,
    purge_expired_sessions_job,
    start_scheduler,
    stop_scheduler,
)


@pytest.fixture
async def purge_enabled(monkeypatch):
    monkeypatch.setattr(settings, "session_purge_enabled", True)
    yield
    stop_scheduler()


class TestSchedulerLifecycle:
    """Tests for starting and stopping the scheduler."""

    async def test_not_started_when_no_jobs_enabled(self, monkeypatch):
        monkeypatch.setattr(settings, "session_purge_enabled", False)

        assert start_scheduler() is None
        assert get_scheduler() is None

    async def test_purge_job_registered(self, purge_enabled):
        scheduler = start_scheduler()

        assert scheduler is not None
        job = scheduler.get_job("access_session_purge")
        assert job is not None
        assert job.trigger.interval == timedelta(
            hours=settings.session_purge_interval_hours
        )

    async def test_start_is_idempotent(self, purge_enabled):
        first = start_scheduler()

        assert start_scheduler() is first

    async def test_stop_clears_instance(self, purge_enabled):
        start_scheduler()
        stop_scheduler()

        assert get_scheduler() is None


class TestPurgeJob:
    """Tests for the expired session purge job."""

    async def test_purges_with_retention_cutoff(self):
        db = AsyncMock()

        @asynccontextmanager
        async def fake_session():
            yield db

        with (
            patch.object(scheduler_module, "get_db_session", fake_session),
            patch.object(
                scheduler_module,
                "purge_expired_sessions",
                new_callable=AsyncMock,
                return_value=3,
            ) as mock_purge,
        ):
            before = datetime.now(UTC)
            await purge_expired_sessions_job()

        mock_purge.assert_awaited_once()
        called_db, older_than = mock_purge.await_args.args
        assert called_db is db
        expected = before - timedelta(days=settings.session_retention_days)
        assert abs((older_than - expected).total_seconds()) < 5

    async def test_storage_failure_is_logged_not_raised(self, caplog):
        with patch.object(
            scheduler_module,
            "purge_expired_sessions",
            new_callable=AsyncMock,
            side_effect=RuntimeError("database unavailable"),
        ):
            await purge_expired_sessions_job()

        assert "Expired access session purge failed" in caplog.text
