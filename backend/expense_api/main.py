"""
FastAPI main application module for the Expense Tracker API
"""

from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

from expense_api.core.config import settings, get_config_for_display
from expense_api.core.database import engine
from expense_api.core.database_utils import check_database_connection
from expense_api.core.errors import AppError, ErrorCode, ERROR_STATUS_MAP, error_body
from expense_api.core.migrations import run_migrations
from expense_api.core.utils import now_rfc3339
from expense_api.api.api_v1.api import api_router, updater_router
from expense_api.api.middleware.rate_limit import RateLimiter
from expense_api.api.middleware.request_logging import request_logging_middleware

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="Expense Tracker API",
    description="Expenses, subscriptions and receipts for the Expense Tracker desktop app",
    version=settings.API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware runs outermost-last-added: CORS, request logging, rate limiting
app.middleware("http")(RateLimiter())
app.middleware("http")(request_logging_middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
)

# Include API routes
app.include_router(api_router, prefix="/api/v1")
app.include_router(updater_router, prefix="/api/updater")


def _request_id(request: Request):
    return getattr(request.state, "request_id", None)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.code, exc.message, _request_id(request), exc.details),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    details = {
        "field": field or None,
        "value": first.get("input"),
        "constraint": first.get("msg"),
        "errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors],
    }
    return JSONResponse(
        status_code=400,
        content=error_body(
            ErrorCode.VALIDATION_ERROR,
            first.get("msg", "Invalid request"),
            _request_id(request),
            jsonable_encoder(details, custom_encoder={Exception: str}),
        ),
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        code, message = ErrorCode.NOT_FOUND, f"Route not found: {request.method} {request.url.path}"
    elif exc.status_code == 405:
        code, message = ErrorCode.BAD_REQUEST, f"Method {request.method} not allowed"
    else:
        code = next((c for c, s in ERROR_STATUS_MAP.items() if s == exc.status_code), ErrorCode.INTERNAL_SERVER_ERROR)
        message = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(code, message, _request_id(request)),
        headers=getattr(exc, "headers", None),
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=error_body(
            ErrorCode.INTERNAL_SERVER_ERROR,
            "An unexpected error occurred",
            _request_id(request),
        ),
    )


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring"""
    return {
        "status": "ok",
        "timestamp": now_rfc3339(),
        "version": settings.API_VERSION,
        "environment": settings.ENVIRONMENT,
    }


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "message": "Expense Tracker API",
        "version": settings.API_VERSION,
        "docs": "/docs",
        "health": "/api/v1/health",
    }


def _ensure_directories() -> None:
    if settings.is_sqlite and settings.DATABASE_URL.startswith("sqlite:///"):
        db_path = settings.DATABASE_URL[len("sqlite:///"):]
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    Path(settings.LOCAL_STORAGE_DIR).mkdir(parents=True, exist_ok=True)


# Startup event
@app.on_event("startup")
async def startup_event():
    """Initialize application on startup"""
    logger.info("Starting Expense Tracker API...")
    logger.info(f"Configuration: {get_config_for_display(settings)}")

    _ensure_directories()

    if not check_database_connection():
        logger.error("Failed to connect to database")
        raise RuntimeError("Database connection failed")

    report = run_migrations(engine)
    logger.info(
        f"Migrations: {len(report.applied)} applied, {len(report.skipped)} skipped, "
        f"{len(report.already_applied)} already applied ({report.total_duration_ms}ms)"
    )

    logger.info("Application startup complete")


# Shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on application shutdown"""
    logger.info("Shutting down Expense Tracker API...")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "expense_api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
