"""Observability setup for OpenTelemetry, metrics, and structured logging."""

import logging

import structlog
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

from .config import settings

SERVICE_NAME = "elite-tours-api"

# Prometheus metrics
REGISTRY = CollectorRegistry()

# Request metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code'],
    registry=REGISTRY
)

REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=REGISTRY
)

# Business metrics
BOOKINGS_CREATED = Counter(
    'bookings_created_total',
    'Total bookings persisted',
    ['channel', 'payment_status'],
    registry=REGISTRY
)

BOOKINGS_CANCELLED = Counter(
    'bookings_cancelled_total',
    'Total bookings cancelled by an admin',
    registry=REGISTRY
)

CAPACITY_REJECTIONS = Counter(
    'booking_capacity_rejections_total',
    'Booking attempts rejected for group or daily capacity',
    ['scope'],
    registry=REGISTRY
)

PAYMENT_ATTEMPTS = Counter(
    'payment_attempts_total',
    'Payment provider charge attempts by outcome',
    ['outcome'],
    registry=REGISTRY
)

PAYMENT_DURATION = Histogram(
    'payment_provider_duration_seconds',
    'Payment provider round-trip time in seconds',
    ['operation'],
    registry=REGISTRY
)

REFUNDS = Counter(
    'payment_refunds_total',
    'Refunds issued through the payment provider',
    registry=REGISTRY
)

WEBHOOK_EVENTS = Counter(
    'payment_webhook_events_total',
    'Verified payment provider webhook events',
    ['event_type', 'matched'],
    registry=REGISTRY
)

SETTINGS_UPDATES = Counter(
    'business_settings_updates_total',
    'Business settings saves',
    registry=REGISTRY
)


def setup_structured_logging():
    """
    Configure structlog and route stdlib ``logging`` through it.

    Modules log with ``logging.getLogger(__name__)`` and ``extra={...}``;
    the extras become structured fields in the rendered event.
    """

    def add_trace_context(logger, method_name, event_dict):
        """Add trace context to log events."""
        span = trace.get_current_span()
        if span and span.is_recording():
            ctx = span.get_span_context()
            event_dict['trace_id'] = format(ctx.trace_id, '032x')
            event_dict['span_id'] = format(ctx.span_id, '016x')
        return event_dict

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        add_trace_context,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
    ]
    renderer = structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            *shared_processors,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.ExtraAdder(),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(settings.log_level)


def _resource() -> Resource:
    return Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": "1.0.0",
        "environment": settings.environment,
    })


def setup_tracing():
    """Setup OpenTelemetry tracing."""
    provider = TracerProvider(resource=_resource())

    # Export only when a collector is configured
    if settings.otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint)))

    trace.set_tracer_provider(provider)
    return trace.get_tracer(__name__)


def setup_metrics():
    """Setup OpenTelemetry metrics."""
    if settings.otlp_endpoint:
        otlp_exporter = OTLPMetricExporter(endpoint=settings.otlp_endpoint)
        reader = PeriodicExportingMetricReader(exporter=otlp_exporter, export_interval_millis=60000)
        metrics.set_meter_provider(MeterProvider(resource=_resource(), metric_readers=[reader]))

    return metrics.get_meter(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine):
    """Instrument SQLAlchemy with OpenTelemetry."""
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


class MetricsCollector:
    """Collector for business metrics."""

    @staticmethod
    def record_request(method: str, endpoint: str, status_code: int, duration: float):
        REQUEST_COUNT.labels(method=method, endpoint=endpoint, status_code=str(status_code)).inc()
        REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(duration)

    @staticmethod
    def record_booking_created(channel: str, payment_status: str):
        """Record a persisted booking."""
        BOOKINGS_CREATED.labels(channel=channel, payment_status=payment_status).inc()

    @staticmethod
    def record_booking_cancelled():
        BOOKINGS_CANCELLED.inc()

    @staticmethod
    def record_capacity_rejection(scope: str):
        CAPACITY_REJECTIONS.labels(scope=scope).inc()

    @staticmethod
    def record_payment_attempt(outcome: str, duration: float):
        """Record a charge attempt: succeeded, declined, error or timeout."""
        PAYMENT_ATTEMPTS.labels(outcome=outcome).inc()
        PAYMENT_DURATION.labels(operation="charge").observe(duration)

    @staticmethod
    def record_refund():
        REFUNDS.inc()

    @staticmethod
    def record_webhook_event(event_type: str, matched: bool):
        WEBHOOK_EVENTS.labels(event_type=event_type, matched=str(matched).lower()).inc()

    @staticmethod
    def record_settings_update():
        SETTINGS_UPDATES.inc()


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()
