"""OpenTelemetry initialization and instrumentation

Everything here is a no-op unless OTEL_EXPORTER_OTLP_ENDPOINT is configured.
"""
import logging

from opentelemetry import metrics, trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from mailroom.core.config import settings

logger = logging.getLogger(__name__)


def otel_enabled() -> bool:
    return bool(settings.OTEL_EXPORTER_OTLP_ENDPOINT)


def _resource(component: str) -> Resource:
    return Resource.create({
        "service.name": settings.OTEL_SERVICE_NAME,
        "service.component": component,
        "deployment.environment": settings.OTEL_ENVIRONMENT
    })


def initialize_otel(component: str = "api") -> bool:
    """Install trace, metric and log providers exporting over OTLP/gRPC

    Args:
        component: 'api' or 'worker', recorded on every exported resource

    Returns:
        True if providers were installed
    """
    if not otel_enabled():
        return False

    endpoint = settings.OTEL_EXPORTER_OTLP_ENDPOINT
    resource = _resource(component)
    try:
        trace_provider = TracerProvider(resource=resource)
        trace_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True))
        )
        trace.set_tracer_provider(trace_provider)

        metric_reader = PeriodicExportingMetricReader(
            OTLPMetricExporter(endpoint=endpoint, insecure=True),
            export_interval_millis=5000,
            export_timeout_millis=30000
        )
        metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[metric_reader]))

        logger_provider = LoggerProvider(resource=resource)
        logger_provider.add_log_record_processor(
            BatchLogRecordProcessor(OTLPLogExporter(endpoint=endpoint, insecure=True))
        )
        set_logger_provider(logger_provider)
        logging.getLogger().addHandler(LoggingHandler(level=logging.NOTSET, logger_provider=logger_provider))
    except Exception as e:
        logger.warning(f"Failed to initialize OpenTelemetry: {e}")
        return False

    logger.info(f"OpenTelemetry initialized for {component}, exporting to {endpoint}")
    return True


def instrument_fastapi(app):
    """Instrument FastAPI application with OpenTelemetry"""
    FastAPIInstrumentor.instrument_app(app)


def instrument_clients(engine):
    """Instrument outbound HTTP (email provider) and SQLAlchemy"""
    HTTPXClientInstrumentor().instrument()
    try:
        SQLAlchemyInstrumentor().instrument(engine=engine)
    except Exception as e:
        logger.warning(f"Failed to instrument SQLAlchemy: {e}")
