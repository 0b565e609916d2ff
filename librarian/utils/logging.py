"""Structured logging configuration with structlog."""

import logging
import os
import sys
from typing import Any

import structlog

# Loggers that report every scheduled run or SMTP exchange at INFO
NOISY_LOGGERS = ("apscheduler.executors", "apscheduler.scheduler", "aiosmtplib")


def configure_logging(
    log_level: str = "INFO",
    environment: str | None = None,
    service: str = "api",
) -> None:
    """
    Configure structured logging for the API server and the job worker.

    Every event carries ``service`` so API and worker output can share a sink.
    Request and job-run ids are merged in from contextvars.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: Environment (development or production). If None, read from ENVIRONMENT.
        service: Process label, ``api`` or ``worker``
    """
    level = getattr(logging, log_level.upper())

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    if environment is None:
        environment = os.getenv("ENVIRONMENT", "development")

    renderer = (
        structlog.processors.JSONRenderer()
        if environment.lower() == "production"
        else structlog.dev.ConsoleRenderer()
    )

    def add_service(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", service)
        return event_dict

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_service,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
