"""Project, sync and cache endpoints."""

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request, status

from api.dependencies import get_cache, get_client, get_client_ip
from api.logging import RequestLog, log_request
from api.models.responses import ApiResponse, ErrorCodes, api_error
from core.config import PROJECTS_ENDPOINT
from core.database import connect, get_sync_status, list_sync_status
from core.gripp_client import GrippApiError, GrippClient
from core.logging_config import get_logger
from services.budget import over_budget_lines, summarize_project
from services.cache import CacheStoreError, ProjectCache
from services.normalizer import normalize_project
from services.project_sync import sync_projects
from services.projects import SORT_ORDERS, filter_options, filter_projects

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")


def with_budget(project: dict) -> dict:
    return {**project, "budget": summarize_project(project).to_dict()}


def write_log(request_log: RequestLog, cache: ProjectCache) -> None:
    try:
        log_request(request_log, cache.db_path)
    except Exception as e:
        # Don't fail the request if logging fails
        logger.warning("request_log_failed", endpoint=request_log.endpoint, error=str(e))


@router.get("/projects", response_model=ApiResponse)
def list_projects(
    refresh: bool = Query(False, description="Cache-busting flag from the dashboard"),
    search: str = "",
    client: str = "all",
    phase: str = "all",
    status_filter: str = Query("all", alias="status"),
    tag: str = "all",
    sort: str = "deadline-asc",
    cache: ProjectCache = Depends(get_cache),
):
    """Cached projects with budget figures, filtered and sorted."""
    if sort not in SORT_ORDERS:
        raise api_error(
            status.HTTP_400_BAD_REQUEST,
            "Invalid sort order",
            ErrorCodes.INVALID_REQUEST,
            [f"Expected one of: {', '.join(sorted(SORT_ORDERS))}"],
        )

    projects = cache.get_all()
    selected = filter_projects(projects, search, client, phase, status_filter, tag, sort)

    with connect(cache.db_path) as conn:
        sync = get_sync_status(conn, PROJECTS_ENDPOINT)

    return ApiResponse(
        data=[with_budget(p) for p in selected],
        meta={
            "count": len(selected),
            "total": len(projects),
            "last_modified": cache.get_last_modified(),
            "last_sync": sync,
            "filters": filter_options(projects),
        },
    )


@router.get("/projects/sync/status", response_model=ApiResponse)
def sync_status(cache: ProjectCache = Depends(get_cache)):
    with connect(cache.db_path) as conn:
        statuses = list_sync_status(conn)
    return ApiResponse(data=statuses, meta={"count": len(statuses)})


@router.get("/projects/{project_id}", response_model=ApiResponse)
def get_project(project_id: int, cache: ProjectCache = Depends(get_cache)):
    project = cache.get(project_id)
    if project is None:
        raise api_error(
            status.HTTP_404_NOT_FOUND,
            f"Project {project_id} not found",
            ErrorCodes.NOT_FOUND,
        )
    data = with_budget(project)
    data["over_budget_lines"] = over_budget_lines(project)
    return ApiResponse(data=data)


@router.post("/projects", response_model=ApiResponse)
def save_project(
    record: dict[str, Any] = Body(...),
    cache: ProjectCache = Depends(get_cache),
):
    """Insert or replace one project in the cache."""
    if record.get("id") is None:
        raise api_error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Project record has no id",
            ErrorCodes.VALIDATION_ERROR,
        )

    project = normalize_project(record)
    try:
        cache.save_one(project)
    except CacheStoreError as e:
        raise api_error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Saving project failed",
            ErrorCodes.STORAGE_ERROR,
            [str(e)],
        )
    return ApiResponse(data=with_budget(project))


@router.post("/projects/sync", response_model=ApiResponse)
async def sync_projects_endpoint(
    request: Request,
    cache: ProjectCache = Depends(get_cache),
    client: GrippClient = Depends(get_client),
):
    """Pull all active projects from Gripp and replace the cache."""
    request_log = RequestLog(
        endpoint="/api/v1/projects/sync",
        method="POST",
        client_ip=get_client_ip(request),
    )

    try:
        result = await sync_projects(client, cache)
        request_log.records_synced = result.count
        request_log.finish(200)
        return ApiResponse(
            data={"endpoint": result.endpoint, "count": result.count},
            meta={"last_sync": result.last_sync},
        )

    except GrippApiError as e:
        request_log.finish(502, ErrorCodes.GRIPP_ERROR, str(e))
        raise api_error(
            status.HTTP_502_BAD_GATEWAY,
            "Gripp API request failed",
            ErrorCodes.GRIPP_ERROR,
            [str(e)],
        )

    except CacheStoreError as e:
        request_log.finish(500, ErrorCodes.STORAGE_ERROR, str(e))
        raise api_error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Saving projects failed",
            ErrorCodes.STORAGE_ERROR,
            [str(e)],
        )

    finally:
        if not request_log.status_code:
            request_log.finish(500, ErrorCodes.INTERNAL_ERROR)
        write_log(request_log, cache)


@router.post("/cache/clear", response_model=ApiResponse)
def clear_cache(request: Request, cache: ProjectCache = Depends(get_cache)):
    """Empty the project collection and the key-value cache."""
    request_log = RequestLog(
        endpoint="/api/v1/cache/clear",
        method="POST",
        client_ip=get_client_ip(request),
    )
    try:
        cache.clear_database()
        request_log.finish(200)
        return ApiResponse(data={"cleared": True})
    finally:
        if not request_log.status_code:
            request_log.finish(500, ErrorCodes.STORAGE_ERROR)
        write_log(request_log, cache)
