#!/usr/bin/env python3
"""
Sync active projects from Gripp into the local cache.

Fetches every non-archived project, normalizes it and replaces the cached
collection. The result is recorded in the sync_status table.

Usage:
    uv run python src/scripts/sync_projects.py
    uv run python src/scripts/sync_projects.py --db data/db/other.db
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import DB_PATH
from core.gripp_client import GrippClient
from core.logging_config import setup_logging
from services.budget import summarize_project
from services.cache import ProjectCache
from services.project_sync import sync_projects


async def run(db_path: Path) -> int:
    cache = ProjectCache(db_path)
    async with GrippClient() as client:
        result = await sync_projects(client, cache)

    projects = cache.get_all()
    over_budget = sum(1 for p in projects if summarize_project(p).status == "over-budget")
    print(f"\nSynced {result.count} projects at {result.last_sync}")
    print(f"  - {over_budget} over budget")
    return result.count


def main():
    parser = argparse.ArgumentParser(description="Sync active Gripp projects into the cache")
    parser.add_argument(
        "--db",
        type=Path,
        default=DB_PATH,
        help="Path to the cache database",
    )
    args = parser.parse_args()

    setup_logging()
    try:
        asyncio.run(run(args.db))
    except Exception as e:
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
