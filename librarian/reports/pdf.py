"""PDF rendering of bulk insertion status reports with PyMuPDF."""

import textwrap
from datetime import datetime, timezone

import fitz  # type: ignore[import-untyped]
import structlog

from librarian.store.keys import epoch_millis
from librarian.store.records import BatchStatus, FailureDetail
from librarian.utils.exceptions import ReportRenderError

logger = structlog.get_logger(__name__)

REPORT_TITLE = "Books Bulk Insertion Report"
FAILURES_HEADING = "Failed Items Details"

# US Letter, in points
PAGE_WIDTH, PAGE_HEIGHT = fitz.paper_size("letter")

LEFT_MARGIN = 100
MARKER_X = 85
LINE_HEIGHT = 15
BLOCK_SPACING = 5
FAILURES_TOP = 325
CONTINUATION_TOP = 50
CONTENT_BOTTOM = 735
FOOTER_X, FOOTER_Y = 450, 750

ERROR_WRAP_WIDTH = 70
TITLE_WRAP_WIDTH = 70
MAX_ERROR_LINES = 12

BLACK = (0, 0, 0)
GREEN = (0, 0.5, 0)
RED = (0.8, 0, 0)


def render_status_report(
    status: BatchStatus,
    user_id: str,
    generated_at: datetime | None = None,
    report_id: int | None = None,
) -> bytes:
    """
    Render a status record as a paginated PDF.

    Layout: title, generation time and report id; user details; summary
    counts with success rate; and, only when there are failures, one block
    per failed item in original-index order. Every page gets a
    ``Page X of Y`` footer.

    Args:
        status: Status record to render
        user_id: Owner of the batch
        generated_at: Generation time (defaults to now)
        report_id: Numeric report id (defaults to current epoch millis)

    Returns:
        PDF document bytes

    Raises:
        ReportRenderError: If PyMuPDF fails to build the document
    """
    generated_at = generated_at or datetime.now(timezone.utc)
    report_id = report_id if report_id is not None else epoch_millis()

    try:
        doc = fitz.open()
        try:
            page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)

            _text(page, LEFT_MARGIN, 50, REPORT_TITLE, size=20)
            _text(
                page,
                LEFT_MARGIN,
                80,
                f"Generated on: {generated_at.strftime('%Y-%m-%d %H:%M:%S %Z').strip()}",
            )
            _text(page, LEFT_MARGIN, 95, f"Report ID: {report_id}")

            _text(page, LEFT_MARGIN, 130, "User Details", size=16)
            _text(page, LEFT_MARGIN, 155, f"User ID: {user_id}")
            _text(page, LEFT_MARGIN, 170, f"Process Timestamp: {status.timestamp or 'unknown'}")

            _text(page, LEFT_MARGIN, 200, "Summary", size=16)
            _text(page, LEFT_MARGIN, 225, f"Total Books Processed: {status.total_books}")
            _text(page, LEFT_MARGIN, 240, f"Successful Insertions: {status.success_count}")
            _text(page, LEFT_MARGIN, 255, f"Failed Insertions: {status.failure_count}")
            _text(page, LEFT_MARGIN, 270, f"Success Rate: {status.success_rate}")

            if status.success_count > 0:
                page.draw_circle((MARKER_X, 246), 4, color=GREEN, fill=GREEN)
            if status.has_failures:
                page.draw_circle((MARKER_X, 261), 4, color=RED, fill=RED)

            if status.failures:
                _write_failures(doc, page, status.failures)

            page_count = doc.page_count
            for number, each_page in enumerate(doc, start=1):
                _text(each_page, FOOTER_X, FOOTER_Y, f"Page {number} of {page_count}", size=10)

            pdf = doc.tobytes()
        finally:
            doc.close()
    except (RuntimeError, ValueError) as e:
        raise ReportRenderError(f"Failed to render report for user {user_id}: {e}") from e

    logger.debug("report_rendered", user_id=user_id, report_id=report_id, size_bytes=len(pdf))
    return pdf


def _write_failures(doc: "fitz.Document", page: "fitz.Page", failures: list[FailureDetail]) -> None:
    _text(page, LEFT_MARGIN, 300, FAILURES_HEADING, size=16)
    y = FAILURES_TOP

    ordered = sorted(failures, key=lambda failure: failure.index)
    for number, failure in enumerate(ordered, start=1):
        lines = _failure_lines(number, failure)
        block_height = LINE_HEIGHT * len(lines) + BLOCK_SPACING
        if y + block_height > CONTENT_BOTTOM:
            page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
            y = CONTINUATION_TOP

        for offset, line in enumerate(lines):
            _text(page, LEFT_MARGIN, y + offset * LINE_HEIGHT, line)
        y += block_height


def _failure_lines(number: int, failure: FailureDetail) -> list[str]:
    error_lines = textwrap.wrap(failure.error, width=ERROR_WRAP_WIDTH) or [""]
    if len(error_lines) > MAX_ERROR_LINES:
        error_lines = error_lines[:MAX_ERROR_LINES]
        error_lines[-1] += " ..."

    title_lines = textwrap.wrap(failure.title, width=TITLE_WRAP_WIDTH) or [""]
    lines = [f"{number}. Title: {title_lines[0]}"]
    lines.extend(f"          {line}" for line in title_lines[1:])
    lines += [
        f"   Index: {failure.index}",
        f"   Error: {error_lines[0]}",
    ]
    lines.extend(f"          {line}" for line in error_lines[1:])
    return lines


def _text(
    page: "fitz.Page",
    x: float,
    top: float,
    text: str,
    size: float = 12,
    color: tuple[float, float, float] = BLACK,
) -> None:
    # insert_text positions the baseline; callers pass the top of the line
    page.insert_text((x, top + size), text, fontsize=size, fontname="helv", color=color)
