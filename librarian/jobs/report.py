"""Report job: emails a PDF summary for every pending status record."""

import asyncio
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from uuid import uuid4

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from librarian.db.repositories.user_repository import UserRepository
from librarian.reports.email import ReportMailer, build_report_message
from librarian.reports.pdf import render_status_report
from librarian.store.client import KeyValueStore
from librarian.store.keys import (
    BATCH_STATUS_NAMESPACE,
    REPORT_ERROR_NAMESPACE,
    epoch_millis,
    user_email_key,
    user_id_from_key,
)
from librarian.store.records import BatchStatus, ReportErrorRecord
from librarian.utils.exceptions import RecipientNotFoundError

logger = structlog.get_logger(__name__)

ReportRenderer = Callable[[BatchStatus, str, datetime, int], bytes]


@dataclass
class ReportRunSummary:
    """Counters for one pass of the report job."""

    keys_found: int = 0
    sent: int = 0
    failed: int = 0
    discarded: int = 0


class StatusReportJob:
    """
    Email a report for every ``bulk_status:{user_id}:{millis}`` record.

    A record is deleted only after its email is accepted by the SMTP server.
    When lookup, rendering or sending fails, a ``report_error`` record is
    written and the status record stays in place, so the next pass tries
    again. Malformed status records are deleted without a report.
    """

    def __init__(
        self,
        store: KeyValueStore,
        session_factory: async_sessionmaker[AsyncSession],
        mailer: ReportMailer,
        sender: str,
        default_recipient: str | None = None,
        record_ttl_seconds: int = 86400,
        renderer: ReportRenderer = render_status_report,
    ) -> None:
        """
        Initialize report job with its resources.

        Args:
            store: Key-value store holding status records
            session_factory: Factory for document-store sessions (user lookup)
            mailer: SMTP transport
            sender: From address for report emails
            default_recipient: Last-resort address when the owner has none
            record_ttl_seconds: Expiry of report error records
            renderer: PDF renderer
        """
        self.store = store
        self.session_factory = session_factory
        self.mailer = mailer
        self.sender = sender
        self.default_recipient = default_recipient
        self.record_ttl_seconds = record_ttl_seconds
        self.renderer = renderer

    async def run(self) -> ReportRunSummary:
        """
        Process every pending status record once.

        Returns:
            Summary counters for the run

        Raises:
            StoreUnavailableError: If the store fails outside per-record handling
        """
        summary = ReportRunSummary()
        with structlog.contextvars.bound_contextvars(job="status_report", run_id=uuid4().hex[:12]):
            logger.info("status_report_started")

            keys = await self.store.scan_prefix(BATCH_STATUS_NAMESPACE)
            summary.keys_found = len(keys)
            if not keys:
                logger.info("status_report_idle")
                return summary

            logger.info("status_records_found", count=len(keys))
            for key in keys:
                await self.process_key(key, summary)

            logger.info("status_report_completed", **asdict(summary))
        return summary

    async def process_key(self, key: str, summary: ReportRunSummary) -> None:
        """
        Report one status record, recording a report error on failure.

        Args:
            key: ``bulk_status:{user_id}:{millis}`` key
            summary: Run counters to update
        """
        try:
            user_id = user_id_from_key(key)
        except ValueError:
            logger.warning("status_key_malformed", key=key)
            await self.store.delete(key)
            summary.discarded += 1
            return

        log = logger.bind(user_id=user_id, key=key)
        try:
            raw = await self.store.get(key)
            if raw is None:
                log.info("status_record_vanished")
                return

            status = BatchStatus.from_record(raw)
            if status is None:
                log.warning("status_record_discarded", reason="invalid_status_data")
                await self.store.delete(key)
                summary.discarded += 1
                return

            recipient = await self.resolve_recipient(user_id)

            report_id = epoch_millis()
            log.info("report_rendering", report_id=report_id)
            pdf = await asyncio.to_thread(
                self.renderer, status, user_id, datetime.now(timezone.utc), report_id
            )

            log.info("report_sending", recipient=recipient)
            message = build_report_message(
                status, user_id, recipient, self.sender, pdf, report_id=report_id
            )
            await self.mailer.send(message)

            await self.store.delete(key)
            summary.sent += 1
            log.info("report_delivered", recipient=recipient)
        except Exception as e:
            summary.failed += 1
            log.error("report_failed", error=str(e), exc_info=True)

            error_record = ReportErrorRecord(user_id=user_id, original_key=key, error=str(e))
            error_key = await self.store.set_timestamped(
                REPORT_ERROR_NAMESPACE, user_id, error_record.to_json(), self.record_ttl_seconds
            )
            log.info("report_error_recorded", error_key=error_key)

    async def resolve_recipient(self, user_id: str) -> str:
        """
        Find the address to send a user's report to.

        Order: the user's record in the document store, the cached
        ``user_email:{user_id}`` entry, then the configured default.

        Raises:
            RecipientNotFoundError: If no address is known and no default is configured
        """
        async with self.session_factory() as session:
            email = await UserRepository(session).get_email(user_id)
        if email:
            return email

        cached = await self.store.get(user_email_key(user_id))
        if cached:
            return cached

        if self.default_recipient:
            logger.warning(
                "report_recipient_fallback",
                user_id=user_id,
                recipient=self.default_recipient,
            )
            return self.default_recipient

        raise RecipientNotFoundError(f"No email address found for user {user_id}")
