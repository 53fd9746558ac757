import logging
import os

from opentelemetry import trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import start_http_server

from src.config import ExamConfig

logger = logging.getLogger(__name__)

_configured = False


def configure_observability(start_metrics_server: bool = True) -> bool:
    """
    Sends traces and logs to an OTLP collector and exposes Prometheus metrics.

    Returns True when exporters were installed. Without the OTEL environment
    variables this is a logged no-op, so local runs and tests stay offline.
    """
    global _configured
    if _configured:
        return True

    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    headers = os.getenv("OTEL_EXPORTER_OTLP_HEADERS")

    if not endpoint or not headers:
        logger.warning("OTEL env vars not set. Telemetry stays local.")
        return False

    resource = Resource.create({"service.name": ExamConfig.SERVICE_NAME})

    # --- A. Tracing ---
    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, headers=headers))
    )
    trace.set_tracer_provider(trace_provider)

    # --- B. Logging ---
    logger_provider = LoggerProvider(resource=resource)
    logger_provider.add_log_record_processor(
        BatchLogRecordProcessor(OTLPLogExporter(endpoint=endpoint, headers=headers))
    )
    set_logger_provider(logger_provider)
    logging.getLogger().addHandler(
        LoggingHandler(level=logging.INFO, logger_provider=logger_provider)
    )

    # --- C. Metrics ---
    if start_metrics_server:
        try:
            start_http_server(ExamConfig.METRICS_PORT)
            logger.info(f"Prometheus metrics on port {ExamConfig.METRICS_PORT}")
        except OSError:
            logger.warning(f"Port {ExamConfig.METRICS_PORT} already in use. Skipping.")

    _configured = True
    return True
