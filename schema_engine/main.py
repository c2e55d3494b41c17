import hmac
import logging
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from schema_engine.api.routes.choices import router as choices_router
from schema_engine.api.routes.entity_types import router as entity_types_router
from schema_engine.api.routes.field_definitions import router as field_definitions_router
from schema_engine.api.routes.field_values import router as field_values_router
from schema_engine.api.routes.health import router as health_router
from schema_engine.api.routes.schema_transfer import router as schema_transfer_router
from schema_engine.core.config import AppEnvironment, settings
from schema_engine.core.db import create_schema, get_async_engine, session_scope
from schema_engine.core.errors import SchemaEngineError, get_status_code
from schema_engine.core.observability import (
    ObservabilityMiddleware,
    configure_structured_logging,
    extract_request_context,
    metrics_endpoint,
)
from schema_engine.core.telemetry import init_telemetry, instrument_fastapi, shutdown_telemetry
from schema_engine.repos import entity_type_repo

# Configure structured logging before creating logger
if settings.observability_structured_logs:
    configure_structured_logging(settings.app_log_level)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def _sanitize_error_details(details: dict[str, Any]) -> dict[str, Any]:
    """
    Sanitize error details to prevent information leakage in production.

    Removes file paths, SQL statements and table references.

    Args:
        details: Original error details dictionary

    Returns:
        Sanitized details dictionary
    """
    if settings.app_env != AppEnvironment.PROD:
        return details

    sanitized = {}
    sensitive_patterns = [
        r"[/\\][\w/-]+\.py",  # File paths
        r"SELECT.*FROM",  # SQL queries
        r"INSERT INTO.*VALUES",
        r"UPDATE.*SET",
        r"DELETE FROM",
        r"table\s*[:=]\s*\w+",  # Table references
    ]

    for key, value in details.items():
        if isinstance(value, str):
            for pattern in sensitive_patterns:
                if re.search(pattern, value, re.IGNORECASE):
                    sanitized[key] = "[REDACTED]"
                    break
            else:
                sanitized[key] = value
        elif isinstance(value, dict):
            sanitized[key] = _sanitize_error_details(value)
        elif isinstance(value, list):
            sanitized[key] = [
                _sanitize_error_details(item) if isinstance(item, dict) else item for item in value
            ]
        else:
            sanitized[key] = value

    return sanitized


async def bootstrap_database() -> None:
    """
    Prepare the database for serving requests.

    Creates missing tables when AUTO_CREATE_SCHEMA is on and registers the
    configured default entity types.
    """
    if settings.auto_create_schema:
        await create_schema(get_async_engine())

    async with session_scope() as db:
        await entity_type_repo.ensure_entity_types(db, settings.default_entity_types_list)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialize tracing and the database on startup; flush spans on shutdown."""
    init_telemetry()
    await bootstrap_database()
    logger.info(
        f"{settings.app_name} started",
        extra={"app_env": settings.app_env.value, "sqlite": settings.is_sqlite},
    )
    yield
    shutdown_telemetry()


def create_app(run_lifespan: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Sets up:
    - OpenTelemetry distributed tracing
    - Structured logging with correlation IDs
    - CORS middleware
    - Observability middleware (metrics, request tracking)
    - Exception handlers for domain errors
    - API routers
    - Metrics endpoint for Prometheus scraping

    Args:
        run_lifespan: Run database bootstrap and telemetry on startup. Tests
            that bring their own database pass False.
    """
    app = FastAPI(
        title="Custom Field Schema Engine",
        description="Run-time custom fields for fixed business entities",
        version="0.1.0",
        lifespan=lifespan if run_lifespan else None,
    )

    instrument_fastapi(app)

    # ============================================================================
    # Observability Middleware (must be first for correlation tracking)
    # ============================================================================

    if settings.observability_enabled:
        app.add_middleware(
            ObservabilityMiddleware,
            request_id_header=settings.observability_request_id_header,
        )

    # ============================================================================
    # CORS Configuration
    # ============================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ============================================================================
    # Exception Handlers
    # ============================================================================

    @app.exception_handler(SchemaEngineError)
    async def schema_engine_error_handler(
        request: Request, exc: SchemaEngineError
    ) -> JSONResponse:
        """
        Handle domain-specific errors from the schema engine.

        Maps domain exceptions to appropriate HTTP status codes and
        returns structured error responses.
        """
        status_code = get_status_code(exc)

        context = {
            "details": exc.details,
            "path": request.url.path,
            **extract_request_context(request),
        }

        if status_code >= 500:
            logger.error(f"{exc.__class__.__name__}: {exc.message}", extra=context)
        elif status_code >= 400:
            logger.warning(f"{exc.__class__.__name__}: {exc.message}", extra=context)

        return JSONResponse(
            status_code=status_code,
            content={
                "error": exc.__class__.__name__,
                "message": exc.message,
                "details": _sanitize_error_details(exc.details),
            },
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """Provide a consistent error format for FastAPI HTTP exceptions."""
        if exc.status_code >= 500:
            logger.error(
                f"HTTP {exc.status_code}: {exc.detail}",
                extra={"path": request.url.path, **extract_request_context(request)},
            )

        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": "HTTPException",
                "message": exc.detail,
                "details": {},
            },
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Catch-all handler for unexpected exceptions.

        Logs the full exception and returns a generic 500 error to the client
        without exposing internal implementation details.
        """
        logger.error(
            f"Unhandled exception: {exc}",
            exc_info=True,
            extra={"path": request.url.path, **extract_request_context(request)},
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "InternalServerError",
                "message": "An unexpected error occurred",
                "details": {},
            },
        )

    # ============================================================================
    # Router Registration
    # ============================================================================

    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(entity_types_router, prefix=API_PREFIX)
    app.include_router(field_definitions_router, prefix=API_PREFIX)
    app.include_router(choices_router, prefix=API_PREFIX)
    app.include_router(field_values_router, prefix=API_PREFIX)
    app.include_router(schema_transfer_router, prefix=API_PREFIX)

    # ============================================================================
    # Metrics Endpoint (Prometheus) - Token Protected
    # ============================================================================

    async def protected_metrics(request: Request) -> Response:
        """
        Protected Prometheus metrics endpoint.

        Requires the X-Metrics-Token header to match METRICS_TOKEN.
        """
        expected_token = settings.metrics_token
        if not expected_token:
            logger.error("Metrics endpoint accessed but METRICS_TOKEN not configured")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Metrics token not configured. Set METRICS_TOKEN environment variable.",
            )

        # Constant-time comparison
        metrics_token = request.headers.get("X-Metrics-Token")
        if not hmac.compare_digest(metrics_token or "", expected_token):
            logger.warning(
                "Unauthorized metrics access attempt",
                extra={"client_ip": request.client.host if request.client else "unknown"},
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid metrics token",
            )

        return metrics_endpoint()

    if settings.observability_enabled:
        app.add_route("/metrics", protected_metrics)

    return app


app = create_app()
