"""
Tracing - OpenTelemetry spans for HTTP, SQL and generative model calls.

Disabled unless TRACING_ENABLED. While disabled the OpenTelemetry API hands
out non-recording spans, so model_span can be used unconditionally.
"""

from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span, SpanKind
from sqlalchemy.ext.asyncio import AsyncEngine

from app.config import settings
from app.models.domain import ModelResponse

TRACER_NAME = "design_system_forge"

SpanValue = str | int | float | bool


def setup_tracing() -> None:
    """Install the OTLP-exporting tracer provider."""
    if not settings.tracing_enabled:
        return

    resource = Resource.create(
        {
            SERVICE_NAME: settings.service_name,
            SERVICE_VERSION: settings.api_version,
            "forge.ai_model": settings.ai_model,
        }
    )
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(
        BatchSpanProcessor(
            OTLPSpanExporter(endpoint=settings.otlp_endpoint, insecure=settings.otlp_insecure)
        )
    )
    trace.set_tracer_provider(provider)


def instrument_fastapi(app: FastAPI) -> None:
    """Trace every request except health checks and scrapes."""
    if not settings.tracing_enabled:
        return

    FastAPIInstrumentor.instrument_app(app, excluded_urls="health,metrics")


def instrument_sqlalchemy(engine: AsyncEngine) -> None:
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


@contextmanager
def model_span(operation: str, model: str, **attributes: SpanValue) -> Iterator[Span]:
    """
    Client span around one generative model call.

    Standard attributes use the OpenTelemetry ``gen_ai.*`` names; extra
    keyword attributes are recorded under ``forge.*``. Exceptions leaving
    the block are recorded and mark the span as failed.

    Usage:
        with model_span("generate_design_system", settings.ai_model, tier="basic") as span:
            response = await model.invoke(request)
            record_usage(span, response)
    """
    tracer = trace.get_tracer(TRACER_NAME)
    with tracer.start_as_current_span(
        f"{operation} {model}",
        kind=SpanKind.CLIENT,
        record_exception=True,
        set_status_on_exception=True,
    ) as span:
        span.set_attribute("gen_ai.operation.name", operation)
        span.set_attribute("gen_ai.request.model", model)
        for key, value in attributes.items():
            span.set_attribute(f"forge.{key}", value)
        yield span


def record_usage(span: Span, response: ModelResponse) -> None:
    """Token usage and reply size of a finished model call."""
    span.set_attribute("gen_ai.system", response.provider)
    span.set_attribute("gen_ai.response.model", response.model)
    span.set_attribute("gen_ai.usage.input_tokens", response.input_tokens)
    span.set_attribute("gen_ai.usage.output_tokens", response.output_tokens)
    span.set_attribute("forge.response_chars", len(response.text))
