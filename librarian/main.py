"""FastAPI application for the Librarian book catalog API."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from librarian import __version__
from librarian.api.middleware import RequestLoggingMiddleware
from librarian.api.routes import api_v1_router, health
from librarian.config import settings
from librarian.db.session import check_database, close_db
from librarian.store.client import KeyValueStore
from librarian.utils.exceptions import DuplicateIsbnError, StoreUnavailableError
from librarian.utils.logging import configure_logging

# Configure logging based on environment
configure_logging(log_level=settings.log_level, environment=settings.environment)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Open the key-value store for the app's lifetime and close connections on shutdown.

    Startup fails if the database or the store cannot be reached.
    """
    app.state.store = KeyValueStore.from_url(settings.redis_url)
    try:
        await check_database()
        await app.state.store.ping()
    except Exception as e:
        logger.error("application_startup_failed", error=str(e))
        await app.state.store.close()
        await close_db()
        raise
    logger.info("application_startup", version=__version__)
    yield
    logger.info("application_shutdown")
    await app.state.store.close()
    await close_db()


# Initialize FastAPI application
app = FastAPI(
    title="Librarian API",
    description="Multi-tenant book catalog with bulk ingestion and emailed reports",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)  # Health check (no version prefix)
app.include_router(api_v1_router)  # Versioned API endpoints


@app.get("/", include_in_schema=False)
async def root() -> dict[str, str]:
    return {"message": "Books API with Redis & scheduled jobs", "status": "running"}


# Global error handlers
@app.exception_handler(DuplicateIsbnError)
async def duplicate_isbn_handler(request: Request, exc: DuplicateIsbnError) -> JSONResponse:
    """Reject writes that would reuse an ISBN already in the catalog."""
    logger.info("duplicate_isbn_rejected", isbn=exc.isbn)
    return JSONResponse(
        status_code=400, content={"detail": "Book with this ISBN already exists"}
    )


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(
    request: Request, exc: StoreUnavailableError
) -> JSONResponse:
    logger.error("store_unavailable", error=str(exc))
    return JSONResponse(status_code=503, content={"detail": "Cache store unavailable"})


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    """Handle database errors with appropriate logging and response."""
    logger.error("database_error", error=str(exc))
    return JSONResponse(status_code=500, content={"detail": "Database error occurred"})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request validation errors."""
    return JSONResponse(status_code=422, content={"detail": exc.errors()})


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all unhandled exceptions."""
    logger.error("unhandled_exception", error=str(exc), exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
