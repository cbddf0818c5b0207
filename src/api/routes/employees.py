"""Employee, absence and hour summary endpoints, fetched on demand from Gripp."""

from datetime import date

from fastapi import APIRouter, Depends, Query, status

from api.dependencies import get_cache, get_client
from api.models.responses import ApiResponse, ErrorCodes, api_error
from core.config import EMPLOYEE_SUMMARY_TTL
from core.gripp_client import GrippApiError, GrippClient
from services.cache import ProjectCache
from services.employees import Period, fetch_employee_summaries, month_period, week_period
from services.gripp import fetch_absence_requests, fetch_employees

router = APIRouter(prefix="/api/v1")


def gripp_failed(e: GrippApiError):
    return api_error(
        status.HTTP_502_BAD_GATEWAY,
        "Gripp API request failed",
        ErrorCodes.GRIPP_ERROR,
        [str(e)],
    )


@router.get("/employees", response_model=ApiResponse)
async def list_employees(
    active_only: bool = True,
    client: GrippClient = Depends(get_client),
):
    try:
        employees = await fetch_employees(client, active_only=active_only)
    except GrippApiError as e:
        raise gripp_failed(e)
    return ApiResponse(data=employees, meta={"count": len(employees)})


@router.get("/employees/absences", response_model=ApiResponse)
async def list_absences(
    start_date: date,
    end_date: date,
    employee_ids: list[int] = Query(...),
    client: GrippClient = Depends(get_client),
):
    """Approved absence requests overlapping the date range."""
    try:
        absences = await fetch_absence_requests(client, employee_ids, start_date, end_date)
    except ValueError as e:
        raise api_error(
            status.HTTP_400_BAD_REQUEST,
            "Invalid date range",
            ErrorCodes.INVALID_REQUEST,
            [str(e)],
        )
    except GrippApiError as e:
        raise gripp_failed(e)

    return ApiResponse(
        data=absences,
        meta={
            "count": len(absences),
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
        },
    )


async def period_response(
    period: Period, refresh: bool, cache: ProjectCache, client: GrippClient
) -> ApiResponse:
    """Employee summaries for the period, served from the key-value cache while fresh."""
    if not refresh and not cache.is_stale(period.cache_key, EMPLOYEE_SUMMARY_TTL):
        summaries = cache.get_item(period.cache_key)
        return ApiResponse(
            data=summaries,
            meta={"count": len(summaries), "period": period.to_dict(), "from_cache": True},
        )

    try:
        summaries = [s.to_dict() for s in await fetch_employee_summaries(client, period)]
    except GrippApiError as e:
        raise gripp_failed(e)

    cache.set_item(period.cache_key, summaries)
    return ApiResponse(
        data=summaries,
        meta={"count": len(summaries), "period": period.to_dict(), "from_cache": False},
    )


@router.get("/employees/week", response_model=ApiResponse)
async def employees_week(
    year: int,
    week: int,
    refresh: bool = False,
    cache: ProjectCache = Depends(get_cache),
    client: GrippClient = Depends(get_client),
):
    """Contract, written and leave hours per employee for an ISO week."""
    try:
        period = week_period(year, week)
    except ValueError as e:
        raise api_error(
            status.HTTP_400_BAD_REQUEST,
            "Invalid week",
            ErrorCodes.INVALID_REQUEST,
            [str(e)],
        )
    return await period_response(period, refresh, cache, client)


@router.get("/employees/month", response_model=ApiResponse)
async def employees_month(
    year: int,
    month: int,
    refresh: bool = False,
    cache: ProjectCache = Depends(get_cache),
    client: GrippClient = Depends(get_client),
):
    """Contract, written and leave hours per employee for a calendar month."""
    try:
        period = month_period(year, month)
    except ValueError as e:
        raise api_error(
            status.HTTP_400_BAD_REQUEST,
            "Invalid month",
            ErrorCodes.INVALID_REQUEST,
            [str(e)],
        )
    return await period_response(period, refresh, cache, client)
