"""
Budget and progress calculations for projects.

Pure functions over normalized projects. Gripp sends hours and amounts as
string decimals ("12.50"), so everything goes through ``to_number`` first.
"""

from dataclasses import asdict, dataclass
from typing import Any, Iterable

from core.config import OVER_BUDGET_PROGRESS, WARNING_PROGRESS
from models.gripp import Project, ProjectLine


@dataclass(frozen=True)
class ProjectBudget:
    """Derived budget figures for one project."""

    project_id: int | None
    total_budget: float
    budgeted_hours: float
    written_hours: float
    progress: float
    start_hourly_rate: float
    realized_hourly_rate: float
    overspend: float
    status: str

    def to_dict(self) -> dict:
        return asdict(self)


def to_number(value: Any) -> float:
    """Parse a number or string decimal; anything unusable counts as 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip().replace(",", "."))
    except ValueError:
        return 0.0


def budgeted_hours(lines: Iterable[ProjectLine]) -> float:
    return sum(to_number(line.get("amount")) for line in lines)


def written_hours(lines: Iterable[ProjectLine]) -> float:
    return sum(to_number(line.get("amountwritten")) for line in lines)


def progress(lines: list[ProjectLine]) -> float:
    """Written hours as a percentage of budgeted hours; 0 without a budget."""
    budgeted = budgeted_hours(lines)
    if budgeted <= 0:
        return 0.0
    return written_hours(lines) / budgeted * 100


def line_progress(line: ProjectLine) -> float:
    return progress([line])


def start_hourly_rate(total_budget: float, budgeted: float) -> float:
    return total_budget / budgeted if budgeted > 0 else 0.0


def realized_hourly_rate(total_budget: float, written: float, start_rate: float) -> float:
    """
    Budget per written hour, capped at the start rate.

    The realized rate never exceeds the rate implied by the original budget.
    """
    if written <= 0:
        # Credit projects have a negative start rate
        return min(0.0, start_rate)
    return min(total_budget / written, start_rate)


def overspend(written: float, budgeted: float, start_rate: float) -> float:
    """Value of the hours written beyond budget, at the start rate."""
    if written <= budgeted:
        return 0.0
    return (written - budgeted) * start_rate


def project_status(progress_pct: float) -> str:
    if progress_pct > OVER_BUDGET_PROGRESS:
        return "over-budget"
    if progress_pct >= WARNING_PROGRESS:
        return "warning"
    return "normal"


def display_progress(progress_pct: float) -> float:
    """Clamp to 0..100 for progress bars. Stored values are never clamped."""
    return max(0.0, min(progress_pct, 100.0))


def summarize_project(project: Project) -> ProjectBudget:
    lines = project.get("projectlines") or []
    total_budget = to_number(project.get("totalexclvat"))
    budgeted = budgeted_hours(lines)
    written = written_hours(lines)
    pct = progress(lines)
    start_rate = start_hourly_rate(total_budget, budgeted)

    return ProjectBudget(
        project_id=project.get("id"),
        total_budget=total_budget,
        budgeted_hours=budgeted,
        written_hours=written,
        progress=pct,
        start_hourly_rate=start_rate,
        realized_hourly_rate=realized_hourly_rate(total_budget, written, start_rate),
        overspend=overspend(written, budgeted, start_rate),
        status=project_status(pct),
    )


def over_budget_lines(project: Project) -> list[ProjectLine]:
    """Lines with more hours written than budgeted."""
    return [
        line
        for line in project.get("projectlines") or []
        if to_number(line.get("amountwritten")) > to_number(line.get("amount"))
    ]


def dashboard_stats(projects: list[Project]) -> dict:
    """Totals across projects for the dashboard header."""
    budgets = [summarize_project(p) for p in projects]
    statuses = [b.status for b in budgets]
    return {
        "projects": {
            "total": len(projects),
            "active": sum(1 for p in projects if not p.get("archived")),
            "normal": statuses.count("normal"),
            "warning": statuses.count("warning"),
            "over_budget": statuses.count("over-budget"),
        },
        "budget": {
            "total_budget": sum(b.total_budget for b in budgets),
            "budgeted_hours": sum(b.budgeted_hours for b in budgets),
            "written_hours": sum(b.written_hours for b in budgets),
            "total_overspend": sum(b.overspend for b in budgets),
            "over_budget_value": sum(b.total_budget for b in budgets if b.status == "over-budget"),
        },
    }
