#!/usr/bin/env python3
"""
Print budget status of the cached projects.

Usage:
    uv run python src/scripts/budget_report.py
    uv run python src/scripts/budget_report.py --status over-budget
"""

import argparse
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import DB_PATH
from services.budget import over_budget_lines, summarize_project
from services.cache import ProjectCache
from services.projects import filter_projects


def format_money(value: float) -> str:
    return f"EUR {value:,.2f}"


def main():
    parser = argparse.ArgumentParser(description="Budget report for cached projects")
    parser.add_argument("--db", type=Path, default=DB_PATH, help="Path to the cache database")
    parser.add_argument(
        "--status",
        choices=["all", "normal", "warning", "over-budget"],
        default="over-budget",
    )
    args = parser.parse_args()

    cache = ProjectCache(args.db)
    projects = filter_projects(cache.get_all(), status=args.status, sort="progress-desc")

    if not projects:
        print("No matching projects in cache.")
        return

    total_overspend = 0.0
    for project in projects:
        budget = summarize_project(project)
        total_overspend += budget.overspend
        print(f"\n{project.get('number')} {project.get('name')}")
        print(f"  - Progress: {budget.progress:.1f}% ({budget.written_hours:.1f}h / {budget.budgeted_hours:.1f}h)")
        print(
            f"  - Rates: start {format_money(budget.start_hourly_rate)}/h, "
            f"realized {format_money(budget.realized_hourly_rate)}/h"
        )
        if budget.overspend:
            print(f"  - Overspend: {format_money(budget.overspend)}")
        for line in over_budget_lines(project):
            print(f"    * {line.get('description') or line.get('id')}: over budget")

    print(f"\n{len(projects)} projects, total overspend {format_money(total_overspend)}")


if __name__ == "__main__":
    main()
