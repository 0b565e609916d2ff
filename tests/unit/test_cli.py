"""Unit tests for the Typer CLI."""

from unittest.mock import AsyncMock, MagicMock, patch

from typer.testing import CliRunner

from librarian import __version__
from librarian.cli.app import app
from librarian.jobs.ingestion import IngestionRunSummary
from librarian.jobs.report import ReportRunSummary

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_ingest_once_prints_summary():
    resources = MagicMock(close=AsyncMock())
    job = MagicMock(run=AsyncMock(return_value=IngestionRunSummary(keys_found=2, batches_processed=2, books_inserted=5)))

    with (
        patch("librarian.jobs.worker.open_resources", new_callable=AsyncMock, return_value=resources),
        patch("librarian.jobs.worker.build_ingestion_job", return_value=job),
    ):
        result = runner.invoke(app, ["ingest-once"])

    assert result.exit_code == 0
    assert "Bulk Ingestion Run" in result.stdout
    resources.close.assert_awaited_once()


def test_report_once_prints_summary():
    resources = MagicMock(close=AsyncMock())
    job = MagicMock(run=AsyncMock(return_value=ReportRunSummary(keys_found=1, sent=1)))

    with (
        patch("librarian.jobs.worker.open_resources", new_callable=AsyncMock, return_value=resources),
        patch("librarian.jobs.worker.build_report_job", return_value=job),
    ):
        result = runner.invoke(app, ["report-once"])

    assert result.exit_code == 0
    assert "Status Report Run" in result.stdout


def test_worker_startup_failure_exits_1():
    with patch(
        "librarian.jobs.worker.run_worker",
        new_callable=AsyncMock,
        side_effect=ConnectionRefusedError("redis down"),
    ):
        result = runner.invoke(app, ["worker", "--job", "ingestion"])

    assert result.exit_code == 1
    assert "Worker Startup Failed" in result.stdout


def test_worker_runs_selected_job():
    with patch("librarian.jobs.worker.run_worker", new_callable=AsyncMock) as run_worker:
        result = runner.invoke(app, ["worker", "--job", "report"])

    assert result.exit_code == 0
    run_worker.assert_awaited_once_with(("status_report",))
