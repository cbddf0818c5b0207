"""API route modules."""

from .dashboard import router as dashboard_router
from .employees import router as employees_router
from .health import router as health_router
from .invoices import router as invoices_router
from .projects import router as projects_router

__all__ = [
    "health_router",
    "projects_router",
    "invoices_router",
    "employees_router",
    "dashboard_router",
]
