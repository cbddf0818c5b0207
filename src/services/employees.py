"""
Per-employee hour summaries for a week or a month.

For every active employee the contract, the written hours and the approved
leave in the period are combined: expected hours come from the contract,
actual hours are written plus leave.
"""

import asyncio
import calendar
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from typing import Any

from core.config import FULLTIME_HOURS
from core.gripp_client import GrippClient
from core.logging_config import get_logger
from models.gripp import AbsenceRequest, Contract, Employee, Hour
from services.budget import to_number
from services.gripp import (
    fetch_absence_requests,
    fetch_contracts,
    fetch_employees,
    fetch_hours,
    parse_gripp_date,
)

logger = get_logger(__name__)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday")


@dataclass(frozen=True)
class Period:
    """Inclusive date range of a week or month."""

    year: int
    start: date
    end: date
    week: int | None = None
    month: int | None = None

    @property
    def cache_key(self) -> str:
        if self.week is not None:
            return f"employees_week_{self.year}_{self.week}"
        return f"employees_month_{self.year}_{self.month}"

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"year": self.year}
        if self.week is not None:
            data["week"] = self.week
        if self.month is not None:
            data["month"] = self.month
        data["start_date"] = self.start.isoformat()
        data["end_date"] = self.end.isoformat()
        return data


@dataclass(frozen=True)
class EmployeeSummary:
    id: int
    name: str
    function: str | None
    contract_hours: float
    contract_period: str
    expected_hours: float
    written_hours: float
    leave_hours: float
    actual_hours: float

    def to_dict(self) -> dict:
        return asdict(self)


def week_period(year: int, week: int) -> Period:
    """ISO week, Monday to Sunday. Raises ValueError for a week the year doesn't have."""
    start = date.fromisocalendar(year, week, 1)
    return Period(year=year, week=week, start=start, end=start + timedelta(days=6))


def month_period(year: int, month: int) -> Period:
    if not 1 <= month <= 12:
        raise ValueError(f"month must be 1..12, got {month}")
    last_day = calendar.monthrange(year, month)[1]
    return Period(year=year, month=month, start=date(year, month, 1), end=date(year, month, last_day))


def working_days(start: date, end: date) -> int:
    """Monday to Friday dates in the inclusive range."""
    days = 0
    day = start
    while day <= end:
        if day.weekday() < 5:
            days += 1
        day += timedelta(days=1)
    return days


def weekly_contract_hours(contract: Contract | None) -> float:
    """Average of the even and odd week schedules."""
    if not contract:
        return 0.0
    even = sum(to_number(contract.get(f"hours_{day}_even")) for day in WEEKDAYS)
    odd = sum(to_number(contract.get(f"hours_{day}_odd")) for day in WEEKDAYS)
    return (even + odd) / 2


def contract_on(contracts: list[Contract], day: date) -> Contract | None:
    """The contract running on the given day, if any."""
    for contract in contracts:
        start = parse_gripp_date(contract.get("startdate"))
        end = parse_gripp_date(contract.get("enddate"))
        if start is None or start > day:
            continue
        if end is None or day <= end:
            return contract
    return None


def period_contract(contracts: list[Contract], period: Period) -> Contract | None:
    """Contract running at the start of the period, else at its end."""
    return contract_on(contracts, period.start) or contract_on(contracts, period.end)


def expected_hours(contract: Contract | None, period: Period) -> float:
    """Contract hours per working day times the working days in the period."""
    per_day = weekly_contract_hours(contract) / 5
    return round(per_day * working_days(period.start, period.end), 1)


def written_hours(hours: list[Hour], period: Period) -> float:
    total = 0.0
    for hour in hours:
        day = parse_gripp_date(hour.get("date"))
        if day is not None and period.start <= day <= period.end:
            total += to_number(hour.get("amount"))
    return total


def leave_hours(absences: list[AbsenceRequest], period: Period) -> float:
    """Hours of the absence lines that fall inside the period."""
    total = 0.0
    for absence in absences:
        for line in absence.get("absencerequestline") or []:
            day = parse_gripp_date(line.get("date"))
            if day is not None and period.start <= day <= period.end:
                total += to_number(line.get("amount"))
    return total


def employee_id(value: Any) -> int | None:
    """Id from a reference object or a bare id."""
    if isinstance(value, dict):
        value = value.get("id")
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def employee_name(employee: Employee) -> str:
    name = f"{employee.get('firstname') or ''} {employee.get('lastname') or ''}".strip()
    return name or employee.get("searchname") or str(employee.get("id"))


def summarize_employee(
    employee: Employee,
    contracts: list[Contract],
    hours: list[Hour],
    absences: list[AbsenceRequest],
    period: Period,
) -> EmployeeSummary:
    contract = period_contract(contracts, period)
    weekly = round(weekly_contract_hours(contract))
    written = written_hours(hours, period)
    leave = leave_hours(absences, period)
    return EmployeeSummary(
        id=employee["id"],
        name=employee_name(employee),
        function=employee.get("function"),
        contract_hours=weekly,
        contract_period="Fulltime" if weekly >= FULLTIME_HOURS else "Parttime",
        expected_hours=expected_hours(contract, period),
        written_hours=written,
        leave_hours=leave,
        actual_hours=written + leave,
    )


def _group_by_employee(rows: list[dict]) -> dict[int, list[dict]]:
    grouped: dict[int, list[dict]] = {}
    for row in rows:
        key = employee_id(row.get("employee"))
        if key is not None:
            grouped.setdefault(key, []).append(row)
    return grouped


def summarize_employees(
    employees: list[Employee],
    contracts: list[Contract],
    hours: list[Hour],
    absences: list[AbsenceRequest],
    period: Period,
) -> list[EmployeeSummary]:
    contracts_by = _group_by_employee(contracts)
    hours_by = _group_by_employee(hours)
    absences_by = _group_by_employee(absences)

    summaries = []
    for employee in employees:
        key = employee_id(employee.get("id"))
        summaries.append(
            summarize_employee(
                employee,
                contracts_by.get(key, []),
                hours_by.get(key, []),
                absences_by.get(key, []),
                period,
            )
        )
    return summaries


async def fetch_employee_summaries(client: GrippClient, period: Period) -> list[EmployeeSummary]:
    """Fetch active employees with their contracts, hours and leave for the period."""
    employees = await fetch_employees(client)
    ids = [e["id"] for e in employees if e.get("id") is not None]

    contracts, hours, absences = await asyncio.gather(
        fetch_contracts(client, ids),
        fetch_hours(client, ids, period.start, period.end),
        fetch_absence_requests(client, ids, period.start, period.end),
    )

    summaries = summarize_employees(employees, contracts, hours, absences, period)
    logger.info(
        "employee_summaries_built",
        employees=len(summaries),
        start_date=period.start.isoformat(),
        end_date=period.end.isoformat(),
    )
    return summaries
