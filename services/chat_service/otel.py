import os
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

TRACING_ENABLED = os.getenv("TRACING_ENABLED", "true").lower() == "true"
USE_CLOUD_TRACE = os.getenv("USE_CLOUD_TRACE", "false").lower() == "true"

# Uptime pings would drown out the chat spans
EXCLUDED_URLS = "health"

def _exporter() -> SpanExporter:
    if USE_CLOUD_TRACE:
        # pip install "chat-relay[gcp]"
        from opentelemetry.exporter.cloud_trace import CloudTraceSpanExporter
        return CloudTraceSpanExporter()
    return ConsoleSpanExporter()

def init_tracing(app, service_name: str, service_version: str = "v1"):
    if not TRACING_ENABLED:
        return trace.get_tracer(service_name)

    provider = TracerProvider(resource=Resource.create({
        "service.name": service_name,
        "service.version": service_version,
        "deployment.environment": os.getenv("ENVIRONMENT", "dev"),
    }))
    provider.add_span_processor(BatchSpanProcessor(_exporter()))
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor().instrument_app(app, excluded_urls=EXCLUDED_URLS, exclude_spans=["receive", "send"])

    return trace.get_tracer(service_name)
