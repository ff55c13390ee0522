"""Health probe and public configuration endpoints."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from daily_vibe import __version__
from daily_vibe.config import Settings, get_settings
from daily_vibe.db import Database, get_database
from daily_vibe.errors import AppError
from daily_vibe.models.base import utcnow
from daily_vibe.models.common import ConfigEnvelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["System"])


@router.get("/health")
def health_check(database: Annotated[Database, Depends(get_database)]) -> JSONResponse:
    """Liveness plus a database connectivity probe.

    Answers 200 when the store is reachable, 503 otherwise. The process
    itself is alive either way.
    """
    body: dict[str, Any] = {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "version": __version__,
        "database": {"backend": database.backend, "connected": True},
    }

    try:
        database.initialize()
        connected = database.health_check()
    except AppError as exc:
        logger.warning("Health check failed", extra={"error_kind": exc.kind})
        connected = False

    if not connected:
        body["status"] = "unhealthy"
        body["database"]["connected"] = False
        return JSONResponse(
            status_code=503,
            content={"success": False, "error": "Database unavailable", **body},
        )

    return JSONResponse(content={"success": True, **body})


@router.get("/config", response_model=ConfigEnvelope)
def public_config(settings: Annotated[Settings, Depends(get_settings)]) -> ConfigEnvelope:
    """Non-secret runtime configuration for the browser."""
    return ConfigEnvelope(config=settings.public_config())
