"""API Pydantic models."""

from .responses import ApiResponse, ErrorCodes, ErrorResponse, HealthResponse, api_error

__all__ = ["ApiResponse", "HealthResponse", "ErrorResponse", "ErrorCodes", "api_error"]
