import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.core.migrations import MissingTables
from app.db import GetEngine

router = APIRouter(prefix="/api", tags=["health"])
logger = logging.getLogger("core.health")


def _unavailable(error: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"Success": False, "Status": "error", "Error": error, **extra},
    )


@router.get("/health")
def api_health() -> dict:
    logger.debug("health check ok")
    return {"Success": True, "Status": "ok"}


@router.get("/health/db")
def api_health_db():
    try:
        with GetEngine().connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception:  # noqa: BLE001
        logger.exception("db check failed")
        return _unavailable("Database unavailable")
    logger.debug("db check ok")
    return {"Success": True, "Status": "ok"}


@router.get("/health/ready")
def api_health_ready():
    """Ready once the notes schema exists; requests never create it lazily."""
    try:
        missing = MissingTables(GetEngine())
    except Exception:  # noqa: BLE001
        logger.exception("readiness check failed")
        return _unavailable("Database unavailable")
    if missing:
        logger.warning("not ready, missing tables: %s", ", ".join(missing))
        return _unavailable("Schema not initialized", Missing=missing)
    return {"Success": True, "Status": "ok"}
