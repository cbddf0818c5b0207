"""Dashboard summary endpoint over the cached projects."""

from fastapi import APIRouter, Depends

from api.dependencies import get_cache
from api.models.responses import ApiResponse
from services.budget import dashboard_stats
from services.cache import ProjectCache

router = APIRouter(prefix="/api/v1")


@router.get("/dashboard/stats", response_model=ApiResponse)
def stats(cache: ProjectCache = Depends(get_cache)):
    """Project counts by status and budget totals."""
    return ApiResponse(
        data=dashboard_stats(cache.get_all()),
        meta={"last_modified": cache.get_last_modified()},
    )
