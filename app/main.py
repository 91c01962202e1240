# ==== PROCUREMENT HUB MAIN APPLICATION MODULE ==== #

"""
Main FastAPI application for Procurement Hub.

This module provides the FastAPI application with its middleware stack,
observability and error handling for the quote-to-payment procurement
workflow and the HR onboarding forms.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.business.errors import ProcurementError
from app.settings import settings
from app.storage.db import init_database, close_database, get_session
from app.observability.tracing import init_tracing
from app.observability.metrics import http_errors_total, init_metrics, metrics_router
from app.observability.logging import ContextualLogger, init_logging
from app.middleware.correlation import CorrelationMiddleware
from app.middleware.tenancy import TenancyMiddleware
from app.schemas.common import ErrorResponse
from app.routes import (
    admin, auth, dashboard, invoices, messages, onboarding, orders, payments, quotes
)


logger = ContextualLogger(__name__)

APP_VERSION = "0.1.0"

ERROR_TITLES = {
    400: "Bad request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not found",
    405: "Method not allowed",
}


# ==== APPLICATION LIFECYCLE MANAGEMENT ==== #


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager for startup and shutdown operations.

    Handles initialization of logging, tracing and database connections,
    and closes the connection pool on shutdown.

    Args:
        app (FastAPI): FastAPI application instance

    Yields:
        None: Control back to FastAPI during application runtime
    """
    # --► STARTUP SEQUENCE
    init_logging(settings.LOG_LEVEL, settings.LOG_DIR)
    init_tracing(settings.SERVICE_NAME)
    init_database()

    yield

    # --► SHUTDOWN SEQUENCE
    await close_database()


# ==== APPLICATION FACTORY ==== #


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Initializes the application with CORS, correlation and tenancy
    middleware, observability, health check endpoints, the API routers
    and the global exception handlers.

    Returns:
        FastAPI: Fully configured FastAPI application instance
    """
    app = FastAPI(
        title="Procurement Hub",
        description="Quote, order, invoice and payment workflow with HR onboarding",
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.APP_ENV == "dev" else None,
        redoc_url="/redoc" if settings.APP_ENV == "dev" else None
    )

    # --► OBSERVABILITY INITIALIZATION
    init_metrics(app)

    # --► MIDDLEWARE STACK CONFIGURATION
    # ⚠️ CORS middleware must be added FIRST before other middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:8080",
            "*"
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    app.add_middleware(CorrelationMiddleware)
    app.add_middleware(
        TenancyMiddleware,
        require_tenant=settings.REQUIRE_TENANT_HEADER,
        default_tenant=settings.DEFAULT_TENANT_ID
    )

    # --► HEALTH CHECK ENDPOINTS
    _register_health_endpoints(app)

    # --► APPLICATION INFO ENDPOINT
    _register_info_endpoint(app)

    # --► ROUTER REGISTRATION
    _register_routers(app)

    # --► EXCEPTION HANDLERS
    _register_exception_handlers(app)

    # --► OPENTELEMETRY INSTRUMENTATION
    FastAPIInstrumentor.instrument_app(app)

    return app


# ==== ENDPOINT REGISTRATION HELPERS ==== #


def _preflight_response() -> JSONResponse:
    response = JSONResponse(content={})
    response.headers["access-control-allow-origin"] = "*"
    response.headers["access-control-allow-methods"] = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
    response.headers["access-control-allow-headers"] = "*"
    return response


def _register_health_endpoints(app: FastAPI) -> None:
    """
    Register health check endpoints for liveness and readiness probes.

    Args:
        app (FastAPI): FastAPI application instance
    """
    @app.get("/healthz", tags=["health"])
    async def health_check() -> dict:
        """
        Liveness probe endpoint for container orchestration.

        Returns:
            dict: Health status with timestamp and service information
        """
        return {
            "status": "ok",
            "service": settings.SERVICE_NAME,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    @app.options("/healthz", tags=["health"])
    async def health_check_options() -> JSONResponse:
        return _preflight_response()

    @app.get("/readyz", tags=["health"])
    async def readiness_check() -> dict:
        """Readiness probe endpoint with environment information."""
        return {
            "status": "ready",
            "service": settings.SERVICE_NAME,
            "environment": settings.APP_ENV
        }

    @app.options("/readyz", tags=["health"])
    async def readiness_check_options() -> JSONResponse:
        return _preflight_response()


def _register_info_endpoint(app: FastAPI) -> None:
    """
    Register application information endpoint with a database check.

    Args:
        app (FastAPI): FastAPI application instance
    """
    @app.get("/info", tags=["info"])
    async def app_info() -> dict:
        """
        Application metadata and database connectivity.

        Returns:
            dict: Service name, version, environment and database status
        """
        # --► DATABASE STATUS CHECK
        try:
            async with get_session() as db:
                await db.execute(text("SELECT 1"))
            database_status = "connected"
        except Exception as exc:
            logger.warning("Database check failed", error=str(exc))
            database_status = "disconnected"

        return {
            "service": settings.SERVICE_NAME,
            "version": APP_VERSION,
            "environment": settings.APP_ENV,
            "database_status": database_status,
            "tracing": "otlp" if settings.OTEL_EXPORTER_OTLP_ENDPOINT else "local"
        }


def _register_routers(app: FastAPI) -> None:
    """
    Register all application routers with their prefixes and tags.

    Args:
        app (FastAPI): FastAPI application instance
    """
    app.include_router(metrics_router, prefix="", tags=["monitoring"])
    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(quotes.router, prefix="/api/quotes", tags=["quotes"])
    app.include_router(orders.router, prefix="/api/orders", tags=["orders"])
    app.include_router(invoices.router, prefix="/api/invoices", tags=["invoices"])
    app.include_router(payments.router, prefix="/api/payments", tags=["payments"])
    app.include_router(payments.admin_router, prefix="/api/admin", tags=["reconciliation"])
    app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
    app.include_router(messages.router, prefix="/api/messages", tags=["messages"])
    app.include_router(dashboard.router, prefix="/api/dashboard", tags=["dashboard"])
    app.include_router(onboarding.router, prefix="/api/onboarding", tags=["onboarding"])


# ==== EXCEPTION HANDLERS ==== #


def _error_body(request: Request, status_code: int, message: str, code: str) -> dict:
    return ErrorResponse(
        error=ERROR_TITLES.get(status_code, "Error"),
        detail=message,
        message=message,
        code=code,
        correlation_id=getattr(request.state, "correlation_id", None),
    ).model_dump()


def _register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error envelopes.

    Args:
        app (FastAPI): FastAPI application instance
    """
    @app.exception_handler(ProcurementError)
    async def procurement_error_handler(request: Request, exc: ProcurementError) -> JSONResponse:
        """
        Render a domain error with its status code and error code.

        Args:
            request (Request): HTTP request that raised the error
            exc (ProcurementError): Domain error

        Returns:
            JSONResponse: Standardized error response
        """
        http_errors_total.labels(code=exc.code).inc()
        logger.info(
            "Request rejected",
            path=request.url.path,
            status_code=exc.status_code,
            code=exc.code,
            reason=exc.message
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.status_code, exc.message, exc.code)
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = {404: "NOT_FOUND", 405: "METHOD_NOT_ALLOWED"}.get(exc.status_code, "HTTP_ERROR")
        http_errors_total.labels(code=code).inc()
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.status_code, str(exc.detail), code),
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc) -> JSONResponse:
        """Handle unknown routes with the standard 404 envelope."""
        http_errors_total.labels(code="NOT_FOUND").inc()
        return JSONResponse(
            status_code=404,
            content=_error_body(
                request, 404, "The requested resource was not found", "NOT_FOUND"
            )
        )

    @app.exception_handler(405)
    async def method_not_allowed_handler(request: Request, exc) -> JSONResponse:
        """Handle unsupported methods with the standard 405 envelope."""
        http_errors_total.labels(code="METHOD_NOT_ALLOWED").inc()
        return JSONResponse(
            status_code=405,
            content=_error_body(
                request, 405, "The requested method is not allowed for this resource",
                "METHOD_NOT_ALLOWED"
            )
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Args:
            request (Request): HTTP request that caused the exception
            exc (Exception): Exception that occurred

        Returns:
            JSONResponse: Standardized 500 error response
        """
        logger.exception("Unhandled error", path=request.url.path, error=str(exc))
        http_errors_total.labels(code="INTERNAL_ERROR").inc()
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": "An unexpected error occurred",
                "message": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
                "correlation_id": getattr(request.state, "correlation_id", None),
            }
        )


# ==== APPLICATION INSTANCE ==== #


# Create application instance for deployment
app = create_app()
