"""Health check endpoint."""

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.dependencies import get_db_path
from api.models.responses import HealthResponse
from core.config import API_VERSION
from core.database import connect

router = APIRouter(prefix="/api")


@router.get("/health", response_model=HealthResponse)
def health_check(db_path: Path = Depends(get_db_path)):
    """
    Health check endpoint for monitoring.

    Returns 200 if the cache database answers, 503 otherwise.
    """
    timestamp = datetime.now(timezone.utc).isoformat()

    try:
        with connect(db_path) as conn:
            conn.execute("SELECT 1 FROM projects LIMIT 1")
    except sqlite3.Error as e:
        return JSONResponse(
            status_code=503,
            content=HealthResponse(
                status="unhealthy",
                version=API_VERSION,
                database_available=False,
                timestamp=timestamp,
                error=f"Database unavailable: {e}",
            ).model_dump(),
        )

    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        database_available=True,
        timestamp=timestamp,
    )
