"""Pydantic response models for API endpoints."""

from typing import Any

from fastapi import HTTPException
from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Health check response."""

    status: str  # "healthy" or "unhealthy"
    version: str
    database_available: bool
    timestamp: str  # ISO 8601 UTC
    error: str | None = None


class ApiResponse(BaseModel):
    """Standard success envelope."""

    success: bool = True
    data: Any = None
    meta: dict[str, Any] = {}


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    success: bool = False
    error: str
    code: str
    details: list[str] = []


class ErrorCodes:
    """Error code constants."""

    INVALID_REQUEST = "INVALID_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    GRIPP_ERROR = "GRIPP_ERROR"
    STORAGE_ERROR = "STORAGE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


def api_error(
    status_code: int, error: str, code: str, details: list[str] | None = None
) -> HTTPException:
    """HTTPException carrying an ErrorResponse-shaped detail."""
    return HTTPException(
        status_code=status_code,
        detail={"error": error, "code": code, "details": details or []},
    )
