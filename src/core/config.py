"""
Configuration constants and environment setup.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# =============================================================================
# PATHS
# =============================================================================

PROJECT_ROOT = Path(__file__).parent.parent.parent
DB_PATH = Path(
    os.environ.get("DASHBOARD_DB_PATH", PROJECT_ROOT / "data" / "db" / "dashboard.db")
)

# =============================================================================
# GRIPP API
# =============================================================================

GRIPP_API_URL = os.environ.get("GRIPP_API_URL", "https://api.gripp.com/public/api3.php")
GRIPP_API_KEY = os.environ.get("GRIPP_API_KEY", "")

GRIPP_PAGE_SIZE = int(os.environ.get("GRIPP_PAGE_SIZE", "250"))
GRIPP_REQUEST_TIMEOUT = float(os.environ.get("GRIPP_REQUEST_TIMEOUT", "60"))

# Request queue: seconds between request starts, requests in flight
GRIPP_MIN_REQUEST_INTERVAL = float(os.environ.get("GRIPP_MIN_REQUEST_INTERVAL", "0.5"))
GRIPP_MAX_CONCURRENT_REQUESTS = int(os.environ.get("GRIPP_MAX_CONCURRENT_REQUESTS", "2"))

# Used when a 503 response carries no usable Retry-After header
GRIPP_DEFAULT_RETRY_AFTER = float(os.environ.get("GRIPP_DEFAULT_RETRY_AFTER", "1"))
GRIPP_MAX_RETRIES = int(os.environ.get("GRIPP_MAX_RETRIES", "5"))

# Fields requested for the dashboard project list
PROJECT_FIELDS = [
    "project.id",
    "project.name",
    "project.number",
    "project.color",
    "project.archived",
    "project.updatedon",
    "project.totalexclvat",
    "project.totalinclvat",
    "project.deadline",
    "project.startdate",
    "project.deliverydate",
    "project.enddate",
    "project.phase",
    "project.company",
    "project.projectlines.id",
    "project.projectlines.amount",
    "project.projectlines.amountwritten",
    "project.projectlines.description",
    "project.projectlines.sellingprice",
    "project.projectlines.product",
    "project.employees_starred",
    "project.tags",
]

# Invoices older than this are not fetched unless a date filter is given
INVOICES_SINCE = os.environ.get("INVOICES_SINCE", "2024-01-01")

APPROVED_ABSENCE_STATUS = 2

# =============================================================================
# EMPLOYEES
# =============================================================================

# Weekly contract hours from which an employee counts as fulltime
FULLTIME_HOURS = 36

# Seconds a cached week/month employee summary stays fresh
EMPLOYEE_SUMMARY_TTL = int(os.environ.get("EMPLOYEE_SUMMARY_TTL", "300"))

# =============================================================================
# SYNC CONFIGURATION
# =============================================================================

# Seconds to wait for the server to finish processing after a sync trigger
SYNC_SETTLE_DELAY = float(os.environ.get("SYNC_SETTLE_DELAY", "1"))

PROJECTS_ENDPOINT = "projects"
LAST_MODIFIED_KEY = "lastModified"

# Progress thresholds (percent) for project status
WARNING_PROGRESS = 75
OVER_BUDGET_PROGRESS = 100

# =============================================================================
# API CONFIGURATION
# =============================================================================

API_HOST = os.environ.get("API_HOST", "0.0.0.0")
API_PORT = int(os.environ.get("API_PORT", "3002"))
FRONTEND_PORT = int(os.environ.get("FRONTEND_PORT", "3000"))
API_BASE_URL = os.environ.get("API_BASE_URL", f"http://localhost:{API_PORT}/api")
API_DEBUG = os.environ.get("API_DEBUG", "false").lower() == "true"
API_VERSION = "1.0.0"

# =============================================================================
# LOGGING
# =============================================================================

LOG_FORMAT = os.environ.get("LOG_FORMAT", "console")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
