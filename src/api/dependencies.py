"""FastAPI dependencies for shared resources."""

from functools import lru_cache
from pathlib import Path

from fastapi import Depends, Request

from core.config import DB_PATH
from core.gripp_client import GrippClient, get_gripp_client
from services.cache import ProjectCache


def get_db_path() -> Path:
    """Location of the cache database."""
    return DB_PATH


@lru_cache(maxsize=None)
def cache_for(db_path: Path) -> ProjectCache:
    """One cache per database file, so the schema is only created on first use."""
    return ProjectCache(db_path)


def get_cache(db_path: Path = Depends(get_db_path)) -> ProjectCache:
    """Project cache on the configured database."""
    return cache_for(Path(db_path))


def get_client() -> GrippClient:
    """Shared Gripp client, created on first use."""
    return get_gripp_client()


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
