"""
Prometheus metrics + OpenTelemetry tracing (exporter is optional).
Metrics cover both the inbound API and every outbound HubSpot call.
"""

from fastapi import FastAPI
from starlette.responses import Response
from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
)
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace import TracerProvider

from crmsync.config import settings

# Tiny FastAPI app ONLY for /metrics; the main app mounts it at /metrics.
metrics_app = FastAPI()

@metrics_app.get("/")  # must be "/" so mounting at "/metrics" works
def metrics_root():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)

# Inbound
REQUEST_COUNT = Counter(
    "http_requests_total", "Total HTTP requests", labelnames=("endpoint", "method")
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds", "Request latency", labelnames=("endpoint", "method")
)

# Outbound (HubSpot)
REMOTE_REQUEST_COUNT = Counter(
    "crm_remote_requests_total", "HubSpot API calls by outcome", labelnames=("operation", "status")
)
REMOTE_REQUEST_LATENCY = Histogram(
    "crm_remote_request_duration_seconds", "HubSpot API call latency", labelnames=("operation",)
)
CONTACT_RESOLUTIONS = Counter(
    "crm_contact_resolutions_total",
    "How contact ids were resolved (created | id_extracted | searched)",
    labelnames=("path",),
)

tracer = trace.get_tracer("crmsync")


def configure_tracer() -> None:
    """
    Optional: if an OTLP exporter endpoint is set, wire up OpenTelemetry.
    Spans are opened around every HubSpot call either way; without a provider they are no-ops.
    """
    if settings.OTEL_EXPORTER_OTLP_ENDPOINT:
        resource = Resource.create({"service.name": settings.SERVICE_NAME})
        provider = TracerProvider(resource=resource)
        processor = BatchSpanProcessor(
            OTLPSpanExporter(endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT)
        )
        provider.add_span_processor(processor)
        trace.set_tracer_provider(provider)

# Run tracer setup at import time so the main app gets instrumented
configure_tracer()
