# ==== PROMETHEUS METRICS ==== #

"""
Prometheus metrics for Procurement Hub.

Request latency, workflow transitions, payment settlement and reconciliation
counters, plus database session gauges, exposed for scraping at ``/metrics``.
"""

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse
from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    REGISTRY
)


# ==== REQUEST METRICS ==== #

http_request_latency_seconds = Histogram(
    "procurement_http_request_latency_seconds",
    "HTTP request latency in seconds",
    ["method", "route", "status"]
)

http_errors_total = Counter(
    "procurement_http_errors_total",
    "Total error responses by error code",
    ["code"]
)


# ==== WORKFLOW METRICS ==== #

workflow_transitions_total = Counter(
    "procurement_workflow_transitions_total",
    "Total status transitions by entity",
    ["entity", "from_status", "to_status"]
)

documents_issued_total = Counter(
    "procurement_documents_issued_total",
    "Total documents numbered and issued",
    ["document_type"]
)

# Payment metrics
payments_settled_total = Counter(
    "procurement_payments_settled_total",
    "Total payments that ran the settlement cascade",
    ["target_type", "match_type"]
)

payments_pending_total = Counter(
    "procurement_payments_pending_total",
    "Total payments registered with an amount difference",
    ["target_type"]
)

auto_match_runs_total = Counter(
    "procurement_auto_match_runs_total",
    "Total bank reconciliation runs"
)

auto_match_matched_total = Counter(
    "procurement_auto_match_matched_total",
    "Total bank transactions matched automatically",
    ["target_type"]
)

bank_transactions_imported_total = Counter(
    "procurement_bank_transactions_imported_total",
    "Total bank transactions imported",
    ["result"]  # result: created, skipped
)

# Onboarding metrics
onboarding_reviews_total = Counter(
    "procurement_onboarding_reviews_total",
    "Total onboarding form reviews",
    ["tenant", "form", "decision"]
)

# Database metrics
db_connections_active = Gauge(
    "procurement_db_connections_active",
    "Number of active database sessions"
)

# System metrics
app_info = Gauge(
    "procurement_app_info",
    "Application information",
    ["version", "environment", "service_name"]
)


def init_metrics(app) -> None:
    """Initialize metrics collection.

    Args:
        app: FastAPI application instance
    """
    from app.settings import settings
    app_info.labels(
        version=app.version,
        environment=settings.APP_ENV,
        service_name=settings.SERVICE_NAME
    ).set(1)


def record_transition(entity: str, from_status: str | None, to_status: str) -> None:
    """Count a status transition for the given entity type."""
    workflow_transitions_total.labels(
        entity=entity,
        from_status=from_status or "none",
        to_status=to_status
    ).inc()


# Metrics router for Prometheus scraping
metrics_router = APIRouter()


@metrics_router.get("/metrics")
def get_metrics() -> PlainTextResponse:
    """Expose Prometheus metrics for scraping.

    Returns:
        Prometheus metrics in text format
    """
    return PlainTextResponse(
        generate_latest(REGISTRY).decode("utf-8"),
        media_type="text/plain"
    )
