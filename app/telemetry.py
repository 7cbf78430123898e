from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.flask import FlaskInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.instrumentation.requests import RequestsInstrumentor
from opentelemetry.propagate import set_global_textmap
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from models import db


def _processor(app):
    exporter_name = (app.config.get("OTEL_TRACES_EXPORTER") or "").lower()
    if app.config.get("TESTING"):
        # Spans stay in memory so tests can assert on checkout state spans
        exporter = InMemorySpanExporter()
        app.extensions["span_exporter"] = exporter
        return SimpleSpanProcessor(exporter)
    if exporter_name == "console":
        return BatchSpanProcessor(ConsoleSpanExporter())
    if exporter_name == "none":
        return None
    endpoint = app.config.get("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4318/v1/traces")
    return BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint))


def init_tracing(app):
    """Initialize OpenTelemetry tracing for the Flask app."""
    service_name = app.config.get("OTEL_SERVICE_NAME", "storefront-checkout")

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    processor = _processor(app)
    if processor is not None:
        provider.add_span_processor(processor)
    trace.set_tracer_provider(provider)

    set_global_textmap(TraceContextTextMapPropagator())

    FlaskInstrumentor().instrument_app(app)
    # Razorpay calls go through requests
    RequestsInstrumentor().instrument()
    with app.app_context():
        SQLAlchemyInstrumentor().instrument(engine=db.engine)


def finished_spans(app):
    exporter = app.extensions.get("span_exporter")
    return list(exporter.get_finished_spans()) if exporter else []
