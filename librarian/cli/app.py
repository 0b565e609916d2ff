"""Librarian CLI application using Typer."""

import asyncio
from enum import Enum
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from librarian import __version__
from librarian.config import settings
from librarian.utils.logging import configure_logging

app = typer.Typer(
    name="librarian",
    help="Librarian - book catalog API and bulk ingestion/report worker",
    add_completion=False,
)
console = Console()

SERVICE_BY_COMMAND = {
    "serve": "api",
    "worker": "worker",
    "ingest-once": "worker",
    "report-once": "worker",
}


class JobChoice(str, Enum):
    """Jobs the worker can schedule."""

    ALL = "all"
    INGESTION = "ingestion"
    REPORT = "report"


def version_callback(value: bool) -> None:
    """Display version and exit."""
    if value:
        console.print(f"[bold cyan]Librarian[/bold cyan] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Librarian - book catalog API and bulk ingestion/report worker."""
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        service=SERVICE_BY_COMMAND.get(ctx.invoked_subcommand or "", "cli"),
    )


def _startup_failed(what: str, error: Exception, hint: str) -> typer.Exit:
    console.print(f"\n[bold red]{what}:[/bold red]")
    console.print(f"  {type(error).__name__}: {error}")
    console.print(f"\n[yellow]Hint:[/yellow] {hint}")
    return typer.Exit(code=1)


@app.command()
def serve(
    host: Annotated[str, typer.Option("--host", help="Interface to bind")] = "0.0.0.0",
    port: Annotated[
        int | None, typer.Option("--port", "-p", help="Port (default: PORT setting)")
    ] = None,
    reload: Annotated[bool, typer.Option("--reload", help="Reload on code changes")] = False,
) -> None:
    """Run the HTTP API server."""
    import uvicorn

    uvicorn.run(
        "librarian.main:app",
        host=host,
        port=port or settings.port,
        reload=reload,
        log_config=None,
    )


@app.command()
def worker(
    job: Annotated[
        JobChoice,
        typer.Option("--job", "-j", help="Run only one job (default: both)"),
    ] = JobChoice.ALL,
) -> None:
    """
    Run the scheduled jobs until interrupted.

    The ingestion job drains pending bulk batches (every 2 minutes by default);
    the report job emails a PDF summary for every finished batch (every 5
    minutes by default). SIGINT/SIGTERM close connections and exit 0.

    Examples:
      librarian worker                 # both jobs
      librarian worker --job report    # report job only
    """
    from librarian.jobs.worker import ALL_JOBS, INGESTION_JOB, REPORT_JOB, run_worker

    job_names = {
        JobChoice.ALL: ALL_JOBS,
        JobChoice.INGESTION: (INGESTION_JOB,),
        JobChoice.REPORT: (REPORT_JOB,),
    }[job]

    console.print(
        Panel.fit(
            f"[bold cyan]Librarian Worker[/bold cyan]\n\n"
            f"Jobs: {', '.join(job_names)}\n"
            f"Ingestion schedule: {settings.bulk_ingestion_cron}\n"
            f"Report schedule: {settings.report_cron}",
            border_style="cyan",
        )
    )

    try:
        asyncio.run(run_worker(job_names))
    except KeyboardInterrupt:
        raise typer.Exit(code=0) from None
    except Exception as e:
        raise _startup_failed(
            "Worker Startup Failed", e, "Verify DATABASE_URL and REDIS_URL are reachable"
        ) from None


@app.command(name="ingest-once")
def ingest_once() -> None:
    """Run a single pass of the bulk ingestion job."""
    from librarian.jobs.worker import build_ingestion_job, open_resources

    async def run_once() -> None:
        resources = await open_resources(settings, with_mailer=False)
        try:
            summary = await build_ingestion_job(resources, settings).run()
        finally:
            await resources.close()

        table = Table(title="Bulk Ingestion Run")
        table.add_column("Metric", style="cyan")
        table.add_column("Count", justify="right")
        table.add_row("Pending batches", str(summary.keys_found))
        table.add_row("Processed", str(summary.batches_processed))
        table.add_row("Discarded", str(summary.batches_discarded))
        table.add_row("Failed", f"[red]{summary.batches_failed}[/red]")
        table.add_row("Books inserted", f"[green]{summary.books_inserted}[/green]")
        table.add_row("Books rejected", f"[red]{summary.books_failed}[/red]")
        console.print("\n", table, "\n")

    try:
        asyncio.run(run_once())
    except Exception as e:
        raise _startup_failed(
            "Ingestion Run Failed", e, "Verify DATABASE_URL and REDIS_URL are reachable"
        ) from None


@app.command(name="report-once")
def report_once() -> None:
    """Run a single pass of the status report job."""
    from librarian.jobs.worker import build_report_job, open_resources

    async def run_once() -> None:
        resources = await open_resources(settings, with_mailer=True)
        try:
            summary = await build_report_job(resources, settings).run()
        finally:
            await resources.close()

        table = Table(title="Status Report Run")
        table.add_column("Metric", style="cyan")
        table.add_column("Count", justify="right")
        table.add_row("Status records", str(summary.keys_found))
        table.add_row("Reports sent", f"[green]{summary.sent}[/green]")
        table.add_row("Failed (kept for retry)", f"[red]{summary.failed}[/red]")
        table.add_row("Discarded", str(summary.discarded))
        console.print("\n", table, "\n")

    try:
        asyncio.run(run_once())
    except Exception as e:
        raise _startup_failed(
            "Report Run Failed", e, "Verify DATABASE_URL and REDIS_URL are reachable"
        ) from None


@app.command(name="init-db")
def init_db_command() -> None:
    """Create database tables (development only; use Alembic in production)."""
    from librarian.db.session import close_db, init_db

    async def run_init() -> None:
        try:
            await init_db()
        finally:
            await close_db()

    try:
        asyncio.run(run_init())
    except Exception as e:
        raise _startup_failed(
            "Database Initialization Failed", e, "Verify DATABASE_URL and that PostgreSQL is running"
        ) from None
    console.print("[bold green]Database tables created[/bold green]")


@app.command(name="verify-email")
def verify_email() -> None:
    """Check that the SMTP server accepts a connection with the configured settings."""
    from librarian.reports.email import ReportMailer

    mailer = ReportMailer(
        hostname=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password.get_secret_value() if settings.smtp_password else None,
        start_tls=settings.smtp_start_tls,
        timeout=settings.smtp_timeout_seconds,
    )

    async def run_verify() -> None:
        try:
            await mailer.verify()
        finally:
            await mailer.close()

    try:
        asyncio.run(run_verify())
    except Exception as e:
        raise _startup_failed(
            "Email Configuration Error", e, "Check SMTP_HOST, SMTP_PORT and credentials"
        ) from None
    console.print(
        f"[bold green]Email configuration verified[/bold green] ({settings.smtp_host}:{settings.smtp_port})"
    )


@app.command(name="add-user")
def add_user(
    user_id: Annotated[str, typer.Argument(help="User ID as issued by the auth service")],
    email: Annotated[str, typer.Argument(help="Address that receives bulk reports")],
    username: Annotated[
        str | None, typer.Option("--username", "-u", help="Display name")
    ] = None,
) -> None:
    """Register a user so bulk reports reach their address."""
    from librarian.db.repositories.user_repository import UserRepository
    from librarian.db.session import AsyncSessionLocal, close_db

    async def run_add() -> None:
        try:
            async with AsyncSessionLocal() as session:
                await UserRepository(session).create_user(user_id, email, username)
                await session.commit()
        finally:
            await close_db()

    try:
        asyncio.run(run_add())
    except Exception as e:
        raise _startup_failed(
            "Add User Failed", e, "The user may already exist, or DATABASE_URL is unreachable"
        ) from None
    console.print(f"[bold green]User {user_id} added[/bold green] <{email}>")


if __name__ == "__main__":
    app()
