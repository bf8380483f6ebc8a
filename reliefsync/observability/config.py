# SPDX-License-Identifier: Apache-2.0

"""
OpenTelemetry Configuration

Sets up distributed tracing and logging for the ReliefSync engine.
"""

import logging
from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

from ..config import EngineConfig

SERVICE_NAME = 'reliefsync'

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s [trace_id=%(trace_id)s] %(message)s'


class TraceContextFilter(logging.Filter):
    """Attach the active trace id to every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        span_context = trace.get_current_span().get_span_context()
        record.trace_id = format(span_context.trace_id, '032x') if span_context.is_valid else '-'
        return True


def setup_observability(config: Optional[EngineConfig] = None,
                        otlp_endpoint: Optional[str] = None) -> Optional[TracerProvider]:
    """Initialize OpenTelemetry tracing and logging from engine configuration."""
    config = config or EngineConfig.from_env()
    environment = config.environment

    setup_logging(environment)

    if not config.otel_enabled:
        # Without a provider the API falls back to no-op tracers
        return None

    # Environment-specific sampling
    if environment == 'production':
        sampler = TraceIdRatioBased(0.1)  # 10% sampling in production
    elif environment == 'staging':
        sampler = TraceIdRatioBased(0.5)  # 50% sampling in staging
    else:
        sampler = TraceIdRatioBased(1.0)  # 100% sampling in development

    resource = Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": config.service_version,
        "deployment.environment": environment
    })

    tracer_provider = TracerProvider(sampler=sampler, resource=resource)

    if environment in ('production', 'staging'):
        # Without an explicit endpoint the exporter reads OTEL_EXPORTER_OTLP_ENDPOINT
        otlp_exporter = OTLPSpanExporter(endpoint=otlp_endpoint) if otlp_endpoint else OTLPSpanExporter()
        tracer_provider.add_span_processor(
            BatchSpanProcessor(otlp_exporter, max_export_batch_size=512)
        )
    else:
        # Development: console output
        tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(tracer_provider)
    return tracer_provider


def setup_logging(environment: str) -> None:
    """Configure log levels and trace-correlated formatting per environment."""
    log_level = {
        'production': logging.WARNING,
        'staging': logging.INFO,
        'development': logging.DEBUG,
        'test': logging.WARNING
    }.get(environment, logging.INFO)

    handler = logging.StreamHandler()
    handler.addFilter(TraceContextFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers = [handler]

    if environment == 'production':
        # Production: reduce noise, focus on errors and business events
        logging.getLogger('httpx').setLevel(logging.WARNING)
        logging.getLogger('pymongo').setLevel(logging.WARNING)
    elif environment == 'development':
        logging.getLogger('pymongo').setLevel(logging.INFO)
        logging.getLogger('httpcore').setLevel(logging.INFO)
