"""
Server-side project sync: Gripp -> normalizer -> SQLite cache.
"""

from dataclasses import dataclass

from core.config import PROJECTS_ENDPOINT
from core.database import connect, record_sync_status
from core.gripp_client import GrippClient
from core.logging_config import get_logger
from services.cache import ProjectCache
from services.gripp import fetch_project, fetch_projects
from services.normalizer import normalize_project

logger = get_logger(__name__)


@dataclass
class SyncResult:
    endpoint: str
    count: int
    last_sync: str


async def sync_projects(client: GrippClient, cache: ProjectCache) -> SyncResult:
    """
    Replace the cached projects with a fresh copy from Gripp.

    The outcome is recorded in sync_status either way; failures are re-raised.
    """
    logger.info("project_sync_started")
    try:
        raw_projects = await fetch_projects(client)
        projects = [normalize_project(raw) for raw in raw_projects]
        cache.save_all(projects)
    except Exception as e:
        with connect(cache.db_path) as conn:
            record_sync_status(conn, PROJECTS_ENDPOINT, "error", str(e))
        logger.error("project_sync_failed", error=str(e))
        raise

    with connect(cache.db_path) as conn:
        last_sync = record_sync_status(conn, PROJECTS_ENDPOINT, "success")
    logger.info("project_sync_completed", count=len(projects))
    return SyncResult(endpoint=PROJECTS_ENDPOINT, count=len(projects), last_sync=last_sync)


async def sync_project(client: GrippClient, cache: ProjectCache, project_id: int) -> dict | None:
    """Refresh a single project in the cache. Returns None if Gripp doesn't know it."""
    raw = await fetch_project(client, project_id)
    if raw is None:
        return None
    project = normalize_project(raw)
    cache.save_one(project)
    return project
