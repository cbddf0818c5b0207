"""
Filtering and sorting of cached projects for the dashboard.
"""

from models.gripp import Project
from services.budget import progress, project_status

ALL = "all"

SORT_ORDERS = {
    "deadline-asc",
    "deadline-desc",
    "name-asc",
    "name-desc",
    "progress-asc",
    "progress-desc",
}


def tag_names(project: Project) -> list[str]:
    return [tag["searchname"] for tag in project.get("tags") or [] if tag.get("searchname")]


def client_name(project: Project) -> str:
    company = project.get("company") or {}
    return company.get("searchname") or ""


def phase_name(project: Project) -> str:
    phase = project.get("phase") or {}
    return phase.get("searchname") or ""


def filter_options(projects: list[Project]) -> dict[str, list[str]]:
    """Distinct clients, phases and tags across the projects, sorted."""
    clients = {client_name(p) for p in projects} - {""}
    phases = {phase_name(p) for p in projects} - {""}
    tags = {name for p in projects for name in tag_names(p)}
    return {
        "clients": sorted(clients),
        "phases": sorted(phases),
        "tags": sorted(tags),
    }


def _deadline(project: Project) -> str | None:
    deadline = project.get("deadline")
    return deadline.get("date") if deadline else None


def sort_projects(projects: list[Project], order: str = "deadline-asc") -> list[Project]:
    if order not in SORT_ORDERS:
        raise ValueError(f"Unknown sort order '{order}'")

    key, direction = order.rsplit("-", 1)
    reverse = direction == "desc"

    if key == "deadline":
        dated = [p for p in projects if _deadline(p)]
        undated = [p for p in projects if not _deadline(p)]
        # Projects without a deadline always go last
        return sorted(dated, key=_deadline, reverse=reverse) + undated
    if key == "name":
        return sorted(projects, key=lambda p: (p.get("name") or "").lower(), reverse=reverse)
    return sorted(
        projects, key=lambda p: progress(p.get("projectlines") or []), reverse=reverse
    )


def filter_projects(
    projects: list[Project],
    search: str = "",
    client: str = ALL,
    phase: str = ALL,
    status: str = ALL,
    tag: str = ALL,
    sort: str = "deadline-asc",
) -> list[Project]:
    """Apply the dashboard filters; "all" (or empty) disables a filter."""
    search = search.strip().lower()
    result = []

    for project in projects:
        if search and search not in (project.get("name") or "").lower():
            continue
        if client not in (ALL, "") and client_name(project) != client:
            continue
        if phase not in (ALL, "") and phase_name(project) != phase:
            continue
        if status not in (ALL, ""):
            if project_status(progress(project.get("projectlines") or [])) != status:
                continue
        if tag not in (ALL, "") and tag not in tag_names(project):
            continue
        result.append(project)

    return sort_projects(result, sort)
