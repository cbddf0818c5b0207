"""
Data models for Gripp records.

Using TypedDict for type hints on record dictionaries. Records arrive from the
Gripp API (or from the local cache) as plain dicts; these types describe the
canonical shape after normalization.
"""

from typing import Any, TypedDict


class GrippDate(TypedDict):
    """Gripp date object, e.g. {"date": "2025-03-01 00:00:00.000000", ...}."""
    date: str
    timezone_type: int
    timezone: str


class NamedRef(TypedDict):
    """Reference to another Gripp entity (phase, company, tag, product)."""
    id: int | None
    searchname: str


class ProjectLine(TypedDict, total=False):
    """Budgeted work item within a project."""
    id: int
    amount: float  # budgeted hours
    amountwritten: str | None  # written hours, string decimal
    sellingprice: str
    description: str
    product: NamedRef | None


class Project(TypedDict, total=False):
    """Normalized Gripp project."""
    id: int
    name: str
    number: int
    color: str | None
    archived: bool
    company: NamedRef | None
    phase: NamedRef | None
    tags: list[NamedRef]
    deadline: GrippDate | None
    startdate: GrippDate | None
    deliverydate: GrippDate | None
    enddate: GrippDate | None
    updatedon: GrippDate | None
    totalexclvat: str
    totalinclvat: str
    employees_starred: list[NamedRef]
    projectlines: list[ProjectLine]


class Employee(TypedDict, total=False):
    id: int
    firstname: str
    lastname: str
    email: str
    active: bool
    function: str


class AbsenceRequest(TypedDict, total=False):
    id: int
    employee: NamedRef
    startdate: GrippDate
    enddate: GrippDate
    type: NamedRef
    hours_per_day: float
    description: str
    status: NamedRef
    absencerequestline: list["AbsenceRequestLine"]


class AbsenceRequestLine(TypedDict, total=False):
    """One day of an absence request."""
    id: int
    date: GrippDate
    amount: float  # hours
    description: str


class Contract(TypedDict, total=False):
    """Employment contract; weekly hours alternate between even and odd weeks."""
    id: int
    employee: NamedRef
    startdate: GrippDate
    enddate: GrippDate | None
    hours_monday_even: float
    hours_tuesday_even: float
    hours_wednesday_even: float
    hours_thursday_even: float
    hours_friday_even: float
    hours_monday_odd: float
    hours_tuesday_odd: float
    hours_wednesday_odd: float
    hours_thursday_odd: float
    hours_friday_odd: float


class Hour(TypedDict, total=False):
    """Written hours for one employee on one day."""
    id: int
    employee: NamedRef
    date: GrippDate
    amount: float
    description: str


class Invoice(TypedDict, total=False):
    id: int
    number: str
    subject: str
    date: GrippDate
    expirydate: GrippDate
    totalinclvat: str
    totalexclvat: str
    totalpayed: str
    company: NamedRef | None


class GrippRequest(TypedDict):
    """Single JSON-RPC style call; the API receives a list of these."""
    method: str
    params: list[Any]  # [filters, options]
    id: int


class GrippResult(TypedDict, total=False):
    rows: list[dict]
    count: int
    start: int
    limit: int
    next_start: int
    more_items_in_collection: bool
