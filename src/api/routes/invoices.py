"""Invoice endpoints, served live from Gripp."""

from datetime import date

from fastapi import APIRouter, Depends, Query, status

from api.dependencies import get_client
from api.models.responses import ApiResponse, ErrorCodes, api_error
from core.config import INVOICES_SINCE
from core.gripp_client import GrippApiError, GrippClient
from services.gripp import fetch_invoices, fetch_overdue_invoices

router = APIRouter(prefix="/api/v1")


@router.get("/invoices", response_model=ApiResponse)
async def list_invoices(
    overdue: bool = Query(False, description="Only unpaid invoices past their expiry date"),
    since: date = Query(date.fromisoformat(INVOICES_SINCE)),
    client: GrippClient = Depends(get_client),
):
    try:
        if overdue:
            invoices = await fetch_overdue_invoices(client, since=since.isoformat())
        else:
            invoices = await fetch_invoices(client, since=since.isoformat())
    except GrippApiError as e:
        raise api_error(
            status.HTTP_502_BAD_GATEWAY,
            "Gripp API request failed",
            ErrorCodes.GRIPP_ERROR,
            [str(e)],
        )

    return ApiResponse(
        data=invoices,
        meta={"count": len(invoices), "overdue": overdue, "since": since.isoformat()},
    )
