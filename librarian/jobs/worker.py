"""Job worker: owns the job resources and runs both jobs on crontab schedules."""

import asyncio
import signal
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from librarian.cache.book_cache import BookListCache
from librarian.config import Settings, settings
from librarian.db.session import AsyncSessionLocal, check_database, close_db
from librarian.jobs.ingestion import BulkIngestionJob
from librarian.jobs.report import StatusReportJob
from librarian.reports.email import ReportMailer
from librarian.store.client import KeyValueStore

logger = structlog.get_logger(__name__)

INGESTION_JOB = "bulk_ingestion"
REPORT_JOB = "status_report"
ALL_JOBS = (INGESTION_JOB, REPORT_JOB)


@dataclass
class WorkerResources:
    """Connections owned by one worker process."""

    store: KeyValueStore
    mailer: ReportMailer | None = None

    async def close(self) -> None:
        """Release every connection; in-flight runs are not awaited."""
        await self.store.close()
        if self.mailer is not None:
            await self.mailer.close()
        await close_db()


async def open_resources(config: Settings, with_mailer: bool) -> WorkerResources:
    """
    Connect to the document store and key-value store.

    Args:
        config: Application settings
        with_mailer: Whether to create the SMTP transport

    Returns:
        Resources ready for the jobs

    Raises:
        Exception: If either store is unreachable
    """
    await check_database()
    store = KeyValueStore.from_url(config.redis_url)
    try:
        await store.ping()
    except Exception:
        await store.close()
        raise

    mailer = None
    if with_mailer:
        mailer = ReportMailer(
            hostname=config.smtp_host,
            port=config.smtp_port,
            username=config.smtp_username,
            password=config.smtp_password.get_secret_value() if config.smtp_password else None,
            start_tls=config.smtp_start_tls,
            timeout=config.smtp_timeout_seconds,
        )
    logger.info("worker_resources_opened", mailer=with_mailer)
    return WorkerResources(store=store, mailer=mailer)


def build_ingestion_job(resources: WorkerResources, config: Settings) -> BulkIngestionJob:
    return BulkIngestionJob(
        store=resources.store,
        session_factory=AsyncSessionLocal,
        cache=BookListCache(resources.store, config.book_cache_ttl_seconds),
        record_ttl_seconds=config.record_ttl_seconds,
    )


def build_report_job(resources: WorkerResources, config: Settings) -> StatusReportJob:
    if resources.mailer is None:
        raise ValueError("Report job requires a mail transport")
    return StatusReportJob(
        store=resources.store,
        session_factory=AsyncSessionLocal,
        mailer=resources.mailer,
        sender=config.email_from,
        default_recipient=config.default_report_email,
        record_ttl_seconds=config.record_ttl_seconds,
    )


def _logged(name: str, run: Callable[[], Awaitable[object]]) -> Callable[[], Awaitable[None]]:
    async def scheduled_run() -> None:
        logger.info("job_triggered", job=name)
        try:
            await run()
        except Exception as e:
            # Run aborted; progress made before the failure is kept
            logger.error("job_run_aborted", job=name, error=str(e), exc_info=True)

    return scheduled_run


def build_scheduler(
    jobs: dict[str, Callable[[], Awaitable[object]]],
    config: Settings,
) -> AsyncIOScheduler:
    """
    Register job runs on crontab triggers.

    Runs of the same job may overlap up to ``job_max_instances``; nothing
    serializes the two jobs against each other.

    Args:
        jobs: Job name to coroutine function running one pass
        config: Application settings (schedules, overlap limit)

    Returns:
        Scheduler, not yet started
    """
    schedules = {
        INGESTION_JOB: config.bulk_ingestion_cron,
        REPORT_JOB: config.report_cron,
    }
    scheduler = AsyncIOScheduler(timezone="UTC")
    for name, run in jobs.items():
        scheduler.add_job(
            _logged(name, run),
            CronTrigger.from_crontab(schedules[name], timezone="UTC"),
            id=name,
            name=name,
            max_instances=config.job_max_instances,
            coalesce=True,
        )
        logger.info("job_scheduled", job=name, schedule=schedules[name])
    return scheduler


async def run_worker(job_names: tuple[str, ...] = ALL_JOBS, config: Settings = settings) -> None:
    """
    Run the selected jobs until SIGINT or SIGTERM.

    Args:
        job_names: Jobs to schedule
        config: Application settings

    Raises:
        Exception: If resources cannot be opened at startup
    """
    resources = await open_resources(config, with_mailer=REPORT_JOB in job_names)

    jobs: dict[str, Callable[[], Awaitable[object]]] = {}
    if INGESTION_JOB in job_names:
        jobs[INGESTION_JOB] = build_ingestion_job(resources, config).run
    if REPORT_JOB in job_names:
        jobs[REPORT_JOB] = build_report_job(resources, config).run

    scheduler = build_scheduler(jobs, config)
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    scheduler.start()
    logger.info("worker_started", jobs=list(jobs))
    try:
        await stop.wait()
    finally:
        logger.info("worker_shutting_down")
        scheduler.shutdown(wait=False)
        await resources.close()
        logger.info("worker_stopped")
