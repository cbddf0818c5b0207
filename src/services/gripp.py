"""
Fetching projects, employees, contracts, hours, absences and invoices from Gripp.
"""

from datetime import date, datetime

from core.config import APPROVED_ABSENCE_STATUS, INVOICES_SINCE, PROJECT_FIELDS
from core.gripp_client import GrippClient
from core.logging_config import get_logger
from models.gripp import AbsenceRequest, Contract, Employee, Hour, Invoice
from services.budget import to_number

logger = get_logger(__name__)

# Operators the dashboard uses that Gripp names differently for dates
DATE_OPERATOR_ALIASES = {"after": "greaterequals", "before": "less"}
DATE_FIELDS = {"invoice.date", "invoice.expirydate"}


async def fetch_projects(client: GrippClient) -> list[dict]:
    """All non-archived projects with the dashboard fields, newest first."""
    filters = [{"field": "project.archived", "operator": "equals", "value": False}]
    options = {
        "orderings": [{"field": "project.updatedon", "direction": "desc"}],
        "fields": PROJECT_FIELDS,
    }
    projects = await client.get_all("project.get", filters, options)
    logger.info("gripp_projects_fetched", count=len(projects))
    return projects


async def fetch_project(client: GrippClient, project_id: int) -> dict | None:
    filters = [{"field": "project.id", "operator": "equals", "value": project_id}]
    rows = await client.get("project.get", filters, {"fields": PROJECT_FIELDS})
    return rows[0] if rows else None


async def fetch_employees(client: GrippClient, active_only: bool = True) -> list[Employee]:
    filters = (
        [{"field": "employee.active", "operator": "equals", "value": True}]
        if active_only
        else []
    )
    options = {"orderings": [{"field": "employee.firstname", "direction": "asc"}]}
    return await client.get_all("employee.get", filters, options)


async def fetch_absence_requests(
    client: GrippClient, employee_ids: list[int], start_date: date, end_date: date
) -> list[AbsenceRequest]:
    """Approved absence requests overlapping the date range."""
    if start_date > end_date:
        raise ValueError("start_date must not be after end_date")
    if not employee_ids:
        return []

    filters = [
        {"field": "absencerequest.employee", "operator": "in", "value": employee_ids},
        {
            "field": "absencerequest.startdate",
            "operator": "lessequals",
            "value": end_date.isoformat(),
        },
        {
            "field": "absencerequest.enddate",
            "operator": "greaterequals",
            "value": start_date.isoformat(),
        },
        {
            "field": "absencerequest.status",
            "operator": "equals",
            "value": APPROVED_ABSENCE_STATUS,
        },
    ]
    options = {"orderings": [{"field": "absencerequest.startdate", "direction": "asc"}]}
    return await client.get_all("absencerequest.get", filters, options)


async def fetch_contracts(client: GrippClient, employee_ids: list[int]) -> list[Contract]:
    if not employee_ids:
        return []
    filters = [{"field": "contract.employee", "operator": "in", "value": employee_ids}]
    options = {"orderings": [{"field": "contract.startdate", "direction": "asc"}]}
    return await client.get_all("contract.get", filters, options)


async def fetch_hours(
    client: GrippClient, employee_ids: list[int], start_date: date, end_date: date
) -> list[Hour]:
    """Hours written by the employees between the dates, inclusive."""
    if start_date > end_date:
        raise ValueError("start_date must not be after end_date")
    if not employee_ids:
        return []
    filters = [
        {"field": "hour.employee", "operator": "in", "value": employee_ids},
        {
            "field": "hour.date",
            "operator": "between",
            "value": start_date.isoformat(),
            "value2": end_date.isoformat(),
        },
    ]
    hours = await client.get_all("hour.get", filters)
    logger.info("gripp_hours_fetched", count=len(hours), employees=len(employee_ids))
    return hours


def build_invoice_filters(filters: list[dict] | None = None, since: str = INVOICES_SINCE) -> list[dict]:
    """Add the default date filter and map dashboard operators to Gripp ones."""
    result = [dict(f) for f in filters or []]
    if not any(f.get("field") == "invoice.date" for f in result):
        result.append({"field": "invoice.date", "operator": "greaterequals", "value": since})
    for f in result:
        if f.get("field") in DATE_FIELDS:
            f["operator"] = DATE_OPERATOR_ALIASES.get(f.get("operator"), f.get("operator"))
    return result


async def fetch_invoices(
    client: GrippClient, filters: list[dict] | None = None, since: str = INVOICES_SINCE
) -> list[Invoice]:
    options = {"orderings": [{"field": "invoice.date", "direction": "desc"}]}
    invoices = await client.get_all("invoice.get", build_invoice_filters(filters, since), options)
    logger.info("gripp_invoices_fetched", count=len(invoices))
    return invoices


def parse_gripp_date(value) -> date | None:
    if isinstance(value, dict):
        value = value.get("date")
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value)[:10]).date()
    except ValueError:
        return None


def is_overdue(invoice: Invoice, today: date) -> bool:
    """Unpaid (more than a cent open) and past its expiry date."""
    unpaid = to_number(invoice.get("totalinclvat")) - to_number(invoice.get("totalpayed")) > 0.01
    expiry = parse_gripp_date(invoice.get("expirydate"))
    return unpaid and expiry is not None and expiry < today


async def fetch_overdue_invoices(
    client: GrippClient, today: date | None = None, since: str = INVOICES_SINCE
) -> list[Invoice]:
    today = today or date.today()
    invoices = await fetch_invoices(client, since=since)
    return [invoice for invoice in invoices if is_overdue(invoice, today)]
