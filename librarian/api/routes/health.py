"""Health check endpoint for monitoring and deployment verification."""

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from librarian import __version__
from librarian.api.dependencies import get_store
from librarian.db.session import check_database
from librarian.store.client import KeyValueStore

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/health")
async def health_check(store: KeyValueStore = Depends(get_store)) -> JSONResponse:  # noqa: B008
    """
    Report API, database and key-value store connectivity.

    Returns:
        200 with component states when both stores respond, otherwise 503
    """
    components = {"database": "connected", "store": "connected"}

    try:
        await check_database()
    except Exception as e:
        logger.warning("health_database_unavailable", error=str(e))
        components["database"] = "unavailable"

    try:
        await store.ping()
    except Exception as e:
        logger.warning("health_store_unavailable", error=str(e))
        components["store"] = "unavailable"

    healthy = all(state == "connected" for state in components.values())
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            **components,
            "version": __version__,
        },
    )
