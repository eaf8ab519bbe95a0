"""Logging and tracing setup for the helpdesk lifecycle API."""

from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanExporter

from apps.helpdesk.core.config import Settings

# Loggers whose verbosity follows the application level rather than the root.
LIFECYCLE_LOGGERS = ("apps.helpdesk.lifecycle", "apps.helpdesk.repositories")

_tracer_provider: TracerProvider | None = None


def parse_headers(header_string: str | None) -> dict[str, str]:
    """Parse ``key=value,key2=value2`` OTLP header strings."""

    headers: dict[str, str] = {}
    for item in (header_string or "").split(","):
        key, sep, value = item.partition("=")
        if sep and key.strip():
            headers[key.strip()] = value.strip()
    return headers


def build_logging_config(settings: Settings) -> dict[str, Any]:
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    loggers: dict[str, Any] = {name: {"level": level} for name in LIFECYCLE_LOGGERS}
    loggers["sqlalchemy.engine"] = {"level": logging.INFO if settings.database_echo else logging.WARNING}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": settings.log_format}},
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "level": level,
            }
        },
        "root": {"handlers": ["default"], "level": level},
        "loggers": loggers,
    }


def configure_logging(settings: Settings) -> logging.Logger:
    """Apply the logging configuration and return the application logger."""

    config = build_logging_config(settings)
    dictConfig(config)
    logger = logging.getLogger(settings.app_name)
    logger.setLevel(config["root"]["level"])
    logger.info("Logging configured for %s (%s)", settings.app_name, settings.environment)
    return logger


def _span_exporter(settings: Settings) -> SpanExporter:
    if settings.otel_exporter_otlp_endpoint is None and settings.environment == "development":
        return ConsoleSpanExporter()
    kwargs: dict[str, Any] = {"headers": parse_headers(settings.otel_exporter_otlp_headers) or None}
    if settings.otel_exporter_otlp_endpoint:
        kwargs["endpoint"] = settings.otel_exporter_otlp_endpoint
    return OTLPSpanExporter(**kwargs)


def init_tracer(settings: Settings) -> TracerProvider | None:
    """Install a tracer provider for the lifecycle spans when tracing is enabled."""

    global _tracer_provider

    if _tracer_provider is not None or not settings.otel_enabled:
        return None

    provider = TracerProvider(
        resource=Resource(
            attributes={
                "service.name": settings.otel_service_name,
                "deployment.environment": settings.environment,
            }
        )
    )
    provider.add_span_processor(BatchSpanProcessor(_span_exporter(settings)))
    trace.set_tracer_provider(provider)
    _tracer_provider = provider
    return provider


def shutdown_tracer(provider: TracerProvider | None) -> None:
    global _tracer_provider

    if provider is None:
        return
    provider.shutdown()
    if provider is _tracer_provider:
        _tracer_provider = None
