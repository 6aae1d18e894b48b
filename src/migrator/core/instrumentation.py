"""OpenTelemetry instrumentation for migration runs.

This module provides optional, configuration-driven tracing for the
bootstrap of the version tracking table and for every applied migration.
Spans are exported over OTLP/HTTP to any compatible collector.

Usage:
    # Enable tracing in config:
    config.tracing.enabled = True
    config.tracing.endpoint = "http://localhost:4318/v1/traces"

    # Initialize tracer early in application startup:
    tracer = configure_tracing(config.tracing)

    # Wrap work that should show up as a span:
    with traced_migration("billing", version) as meta:
        ...
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generator

from loguru import logger

if TYPE_CHECKING:
    from opentelemetry.trace import Tracer

    from .types import Version


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class TracingConfig:
    """OpenTelemetry tracing configuration.

    Attributes:
        enabled: Whether tracing is enabled (default: False).
        endpoint: OTLP/HTTP traces endpoint.
        service_name: Service name for traces (default: migrator).
        service_version: Service version for traces.
        sample_rate: Sampling rate 0.0-1.0 (default: 1.0 = all traces).
        batch_export: Use BatchSpanProcessor vs SimpleSpanProcessor.
    """

    enabled: bool = False
    endpoint: str = "http://localhost:4318/v1/traces"
    service_name: str = "migrator"
    service_version: str = "0.1.0"
    sample_rate: float = 1.0
    batch_export: bool = True


# =============================================================================
# Global State
# =============================================================================

_tracer: "Tracer | None" = None
_warning_logged: bool = False


def get_tracer() -> "Tracer | None":
    """Get the configured tracer, or None if tracing is disabled."""
    return _tracer


# =============================================================================
# Tracer Configuration
# =============================================================================


def configure_tracing(config: TracingConfig) -> "Tracer | None":
    """Configure OpenTelemetry tracing.

    Sets up the TracerProvider with an OTLP HTTP exporter. If tracing is
    disabled or setup fails, returns None and spans become no-ops.

    Args:
        config: TracingConfig with endpoint and settings.

    Returns:
        Configured Tracer instance, or None if disabled/failed.
    """
    global _tracer, _warning_logged

    if not config.enabled:
        logger.debug("Tracing is disabled")
        _tracer = None
        return None

    try:
        from opentelemetry import trace
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
            OTLPSpanExporter,
        )
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import (
            BatchSpanProcessor,
            SimpleSpanProcessor,
        )
        from opentelemetry.sdk.trace.sampling import ALWAYS_ON, TraceIdRatioBased

        resource = Resource.create(
            {
                "service.name": config.service_name,
                "service.version": config.service_version,
            }
        )

        if config.sample_rate >= 1.0:
            sampler = ALWAYS_ON
        else:
            sampler = TraceIdRatioBased(config.sample_rate)

        provider = TracerProvider(resource=resource, sampler=sampler)
        exporter = OTLPSpanExporter(endpoint=config.endpoint)

        # Short-lived migration jobs should use the simple processor so
        # nothing is lost when the process exits right after the run.
        if config.batch_export:
            processor = BatchSpanProcessor(exporter)
        else:
            processor = SimpleSpanProcessor(exporter)

        provider.add_span_processor(processor)
        trace.set_tracer_provider(provider)

        _tracer = trace.get_tracer(config.service_name, config.service_version)

        logger.info(
            f"Tracing enabled: endpoint={config.endpoint}, "
            f"sample_rate={config.sample_rate}"
        )
        _warning_logged = False
        return _tracer

    except ImportError as e:
        if not _warning_logged:
            logger.warning(
                f"OpenTelemetry packages not installed, tracing disabled: {e}. "
                "Install with: pip install 'migrator[tracing]'"
            )
            _warning_logged = True
        _tracer = None
        return None

    except Exception as e:
        if not _warning_logged:
            logger.warning(f"Failed to configure tracing: {e}")
            _warning_logged = True
        _tracer = None
        return None


def shutdown_tracing() -> None:
    """Shutdown tracing and flush any pending spans."""
    global _tracer

    if _tracer is None:
        return

    try:
        from opentelemetry import trace

        provider = trace.get_tracer_provider()
        if hasattr(provider, "shutdown"):
            provider.shutdown()
        logger.debug("Tracing shutdown complete")
    except Exception as e:
        logger.warning(f"Error shutting down tracing: {e}")

    _tracer = None


# =============================================================================
# Span helpers
# =============================================================================


@contextmanager
def _traced(
    span_name: str,
    attributes: dict[str, Any],
    tracer: "Tracer | None",
) -> Generator[dict[str, Any], None, None]:
    active_tracer = tracer or _tracer
    result_meta: dict[str, Any] = {}

    if active_tracer is None:
        yield result_meta
        return

    from opentelemetry.trace import Status, StatusCode

    start_time = time.perf_counter()

    with active_tracer.start_as_current_span(span_name) as span:
        for key, value in attributes.items():
            span.set_attribute(key, value)

        try:
            yield result_meta

            span.set_attribute(
                "migrator.latency_ms", (time.perf_counter() - start_time) * 1000
            )
            for key, value in result_meta.items():
                span.set_attribute(f"migrator.{key}", value)
            span.set_status(Status(StatusCode.OK))

        except BaseException as e:
            span.set_attribute(
                "migrator.latency_ms", (time.perf_counter() - start_time) * 1000
            )
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise


@contextmanager
def traced_migration(
    module: str,
    version: "Version",
    *,
    tracer: "Tracer | None" = None,
) -> Generator[dict[str, Any], None, None]:
    """Context manager tracing a single migration's transaction.

    Args:
        module: Module whose schema is being migrated.
        version: Target version of the migration.
        tracer: Optional tracer (uses global if not provided).

    Yields:
        Dict for extra result attributes; each key is recorded on the span
        with a ``migrator.`` prefix when the block succeeds.

    Example:
        with traced_migration("billing", migration.version) as meta:
            migration.apply(connection)
            meta["kind"] = type(migration).__name__
    """
    attributes = {
        "migrator.module": module,
        "migrator.version": str(version),
    }
    with _traced("migrator.apply", attributes, tracer) as meta:
        yield meta


@contextmanager
def traced_bootstrap(
    schema: str,
    *,
    tracer: "Tracer | None" = None,
) -> Generator[dict[str, Any], None, None]:
    """Context manager tracing bootstrap of the version tracking table."""
    with _traced("migrator.bootstrap", {"migrator.schema": schema}, tracer) as meta:
        yield meta
