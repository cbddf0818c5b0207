"""
Pytest configuration and shared fixtures.
"""

import sys
from pathlib import Path

import httpx
import pytest
import pytest_asyncio

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from core.gripp_client import GrippClient, RequestQueue  # noqa: E402
from services.cache import ProjectCache  # noqa: E402

GRIPP_URL = "https://gripp.test/public/api3.php"


def gripp_page(rows, start=0, more=False, limit=250):
    """Gripp API response wrapping one page of rows."""
    return httpx.Response(
        200,
        json=[
            {
                "id": 1,
                "thread": "test",
                "result": {
                    "rows": rows,
                    "count": len(rows),
                    "start": start,
                    "limit": limit,
                    "next_start": start + len(rows),
                    "more_items_in_collection": more,
                },
                "error": None,
            }
        ],
    )


@pytest.fixture
def sample_project():
    """Sample project as returned by the Gripp API."""
    return {
        "id": 101,
        "name": "Website relaunch",
        "number": 2401,
        "color": None,
        "archived": False,
        "totalexclvat": "10000.00",
        "totalinclvat": "12100.00",
        "company": {"id": 7, "searchname": "Acme BV", "discr": "company"},
        "phase": {"id": 2, "searchname": "Uitvoering"},
        "tags": [{"id": 3, "searchname": "Retainer"}],
        "deadline": {
            "date": "2025-06-30 00:00:00.000000",
            "timezone_type": 3,
            "timezone": "Europe/Amsterdam",
        },
        "startdate": None,
        "deliverydate": None,
        "enddate": None,
        "employees_starred": [{"id": "12", "searchname": "Sam"}],
        "projectlines": [
            {
                "id": 1,
                "amount": 60,
                "amountwritten": "90.00",
                "sellingprice": "100.00",
                "description": "Design",
                "product": {"id": 5, "searchname": "Design", "discr": "product"},
            },
            {
                "id": 2,
                "amount": 40,
                "amountwritten": "60.00",
                "sellingprice": "100.00",
                "description": "Development",
                "product": {"id": 6, "searchname": "Development", "discr": "product"},
            },
        ],
    }


@pytest.fixture
def sample_projects(sample_project):
    """Three projects: over budget, on track and without lines."""
    return [
        sample_project,
        {
            **sample_project,
            "id": 102,
            "name": "Brand guide",
            "number": 2402,
            "company": {"id": 8, "searchname": "Beta Corp", "discr": "company"},
            "phase": {"id": 1, "searchname": "Offerte"},
            "tags": [{"id": 4, "searchname": "Fixed price"}],
            "deadline": {
                "date": "2025-03-01 00:00:00.000000",
                "timezone_type": 3,
                "timezone": "Europe/Amsterdam",
            },
            "projectlines": [
                {"id": 3, "amount": 100, "amountwritten": "20.00", "sellingprice": "90.00"}
            ],
        },
        {
            **sample_project,
            "id": 103,
            "name": "Audit",
            "number": 2403,
            "tags": [],
            "deadline": None,
            "projectlines": [],
        },
    ]


@pytest.fixture
def cache(tmp_path):
    return ProjectCache(tmp_path / "dashboard.db")


@pytest.fixture
def fast_queue():
    return RequestQueue(min_interval=0, max_concurrent=2, default_retry_after=0, max_retries=2)


@pytest_asyncio.fixture
async def gripp_client(fast_queue):
    client = GrippClient(api_url=GRIPP_URL, api_key="test-key", queue=fast_queue)
    yield client
    await client.aclose()
