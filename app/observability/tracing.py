# ==== OPENTELEMETRY TRACING CONFIGURATION ==== #

"""
OpenTelemetry tracing configuration for Procurement Hub.

Sets up OTLP span export when an endpoint is configured and instruments
SQLAlchemy and outgoing HTTP clients. FastAPI itself is instrumented by the
application factory.
"""

from typing import Dict, Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from app.settings import settings
from app.observability.logging import ContextualLogger


logger = ContextualLogger(__name__)


# ==== TRACING INITIALIZATION ==== #

def init_tracing(service_name: str) -> None:
    """
    Initialize OpenTelemetry tracing.

    Local and test runs leave ``OTEL_EXPORTER_OTLP_ENDPOINT`` unset, in which
    case the global no-op tracer provider stays in place.

    Args:
        service_name (str): Name of the service for tracing identification
    """
    endpoint = settings.OTEL_EXPORTER_OTLP_ENDPOINT

    # ⚠️ Allow local runs without an APM collector
    if not endpoint:
        return

    # --► RESOURCE ATTRIBUTES CONFIGURATION
    resource_attrs = _parse_pairs(settings.OTEL_RESOURCE_ATTRIBUTES)
    resource_attrs["service.name"] = settings.OTEL_SERVICE_NAME or service_name

    # --► TRACER PROVIDER SETUP
    provider = TracerProvider(resource=Resource.create(resource_attrs))

    # --► OTLP EXPORTER CONFIGURATION
    exporter = OTLPSpanExporter(
        endpoint=endpoint,
        headers=_parse_pairs(settings.OTEL_EXPORTER_OTLP_HEADERS)
    )

    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    _setup_auto_instrumentation()


def _parse_pairs(raw: str | None) -> Dict[str, Any]:
    """Parse comma-separated ``key=value`` pairs.

    Args:
        raw: Value of an OTEL_* environment setting

    Returns:
        Dictionary of parsed pairs
    """
    pairs: Dict[str, Any] = {}
    if not raw:
        return pairs

    for part in filter(None, map(str.strip, raw.split(","))):
        if "=" in part:
            key, value = part.split("=", 1)
            pairs[key.strip()] = value.strip()

    return pairs


def _setup_auto_instrumentation() -> None:
    """Setup automatic instrumentation for the database and HTTP clients."""
    from app.storage import db

    try:
        if db.engine is not None:
            SQLAlchemyInstrumentor().instrument(engine=db.engine.sync_engine)
        else:
            SQLAlchemyInstrumentor().instrument()
        HTTPXClientInstrumentor().instrument()
    except Exception as e:
        # Startup continues without auto-instrumentation
        logger.warning("Failed to setup auto-instrumentation", error=str(e))


def get_tracer(name: str) -> trace.Tracer:
    """Get a tracer instance for the given module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Tracer instance
    """
    return trace.get_tracer(name)
