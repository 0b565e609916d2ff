"""Unit tests for the job worker wiring."""

from unittest.mock import AsyncMock, patch

import pytest

from librarian.config import Settings
from librarian.jobs.ingestion import BulkIngestionJob
from librarian.jobs.report import StatusReportJob
from librarian.jobs.worker import (
    ALL_JOBS,
    INGESTION_JOB,
    REPORT_JOB,
    WorkerResources,
    _logged,
    build_ingestion_job,
    build_report_job,
    build_scheduler,
)
from tests.conftest import InMemoryKeyValueStore


def test_scheduler_registers_jobs_on_crontab(test_settings: Settings):
    """Test that each job gets its own cron trigger and overlap limit."""

    async def run() -> None:
        return None

    scheduler = build_scheduler({name: run for name in ALL_JOBS}, test_settings)

    jobs = {job.id: job for job in scheduler.get_jobs()}
    assert set(jobs) == {INGESTION_JOB, REPORT_JOB}
    assert jobs[INGESTION_JOB].max_instances == test_settings.job_max_instances
    assert "minute='*/2'" in str(jobs[INGESTION_JOB].trigger)
    assert "minute='*/5'" in str(jobs[REPORT_JOB].trigger)


def test_scheduler_with_single_job(test_settings: Settings):
    async def run() -> None:
        return None

    scheduler = build_scheduler({REPORT_JOB: run}, test_settings)

    assert [job.id for job in scheduler.get_jobs()] == [REPORT_JOB]


@pytest.mark.asyncio
async def test_logged_run_contains_failures():
    """Test that an aborted run does not escape into the scheduler."""
    run = AsyncMock(side_effect=RuntimeError("store down"))

    await _logged(INGESTION_JOB, run)()

    run.assert_awaited_once()


def test_build_jobs_share_resources(test_settings: Settings):
    store = InMemoryKeyValueStore()
    resources = WorkerResources(store=store, mailer=AsyncMock())

    ingestion = build_ingestion_job(resources, test_settings)
    report = build_report_job(resources, test_settings)

    assert isinstance(ingestion, BulkIngestionJob)
    assert ingestion.store is store
    assert ingestion.record_ttl_seconds == test_settings.record_ttl_seconds
    assert isinstance(report, StatusReportJob)
    assert report.default_recipient == "reports@example.com"
    assert report.sender == test_settings.email_from


def test_report_job_requires_mailer(test_settings: Settings):
    resources = WorkerResources(store=InMemoryKeyValueStore())

    with pytest.raises(ValueError):
        build_report_job(resources, test_settings)


@pytest.mark.asyncio
async def test_resources_close_everything():
    store = InMemoryKeyValueStore()
    mailer = AsyncMock()

    with patch("librarian.jobs.worker.close_db", new_callable=AsyncMock) as close_db:
        await WorkerResources(store=store, mailer=mailer).close()

    assert store.closed
    mailer.close.assert_awaited_once()
    close_db.assert_awaited_once()
