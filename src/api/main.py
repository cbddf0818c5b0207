"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models.responses import ErrorCodes, ErrorResponse
from api.routes import (
    dashboard_router,
    employees_router,
    health_router,
    invoices_router,
    projects_router,
)
from core.config import API_DEBUG, API_VERSION, DB_PATH, FRONTEND_PORT
from core.database import init_database
from core.gripp_client import close_gripp_client
from core.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    setup_logging()
    init_database(DB_PATH)
    logger.info("api_started", version=API_VERSION, db_path=str(DB_PATH))

    yield

    await close_gripp_client()


app = FastAPI(
    title="Gripp Project Dashboard API",
    description="Cached Gripp projects with budget and progress analytics",
    version=API_VERSION,
    debug=API_DEBUG,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if API_DEBUG else [f"http://localhost:{FRONTEND_PORT}"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Flatten HTTPException details into the standard error envelope."""
    if isinstance(exc.detail, dict):
        content = ErrorResponse(
            error=exc.detail.get("error", "Request failed"),
            code=exc.detail.get("code", ErrorCodes.INTERNAL_ERROR),
            details=exc.detail.get("details", []),
        )
    else:
        code = ErrorCodes.NOT_FOUND if exc.status_code == 404 else ErrorCodes.INVALID_REQUEST
        content = ErrorResponse(error=str(exc.detail), code=code)
    return JSONResponse(status_code=exc.status_code, content=content.model_dump())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error="Request validation failed",
            code=ErrorCodes.VALIDATION_ERROR,
            details=details,
        ).model_dump(),
    )


# Global exception handler for unexpected errors
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions with standard error format."""
    logger.exception("unhandled_error", path=request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="Internal server error",
            code=ErrorCodes.INTERNAL_ERROR,
            details=[],
        ).model_dump(),
    )


# Include routers
app.include_router(health_router)
app.include_router(projects_router)
app.include_router(invoices_router)
app.include_router(employees_router)
app.include_router(dashboard_router)


# Entry point for uvicorn
if __name__ == "__main__":
    import uvicorn

    from core.config import API_HOST, API_PORT

    uvicorn.run(
        "api.main:app",
        host=API_HOST,
        port=API_PORT,
        reload=API_DEBUG,
    )
