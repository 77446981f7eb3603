"""OpenTelemetry setup for the Jarvis voice engine.

Provides a configurable TracerProvider:
  - **dev** (default): ConsoleSpanExporter — spans print to stdout.
  - **prod**: OTLPSpanExporter — ships spans to an OTLP-compatible collector.

Usage:
    from jarvis.telemetry import init_telemetry, get_tracer, stage_span

    init_telemetry()          # call once at startup (lifespan)
    with stage_span("stt", session_id="…", seq=3, **{"audio.bytes": 1024}):
        ...
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Any, Iterator

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)

logger = logging.getLogger(__name__)

_SERVICE_NAME = "jarvis-voice-engine"
_TRACER_NAME = "jarvis"
_initialized = False


def init_telemetry(exporter: str | None = None) -> None:
    """Initialise the global TracerProvider.

    *exporter* defaults to ``OTEL_EXPORTER`` from the environment:
      - ``"otlp"`` → OTLPSpanExporter (requires ``OTEL_EXPORTER_OTLP_ENDPOINT``)
      - ``"none"`` → provider without exporters (tests, benchmarks)
      - anything else → ConsoleSpanExporter (default for local dev)
    """
    global _initialized
    if _initialized:
        return

    resource = Resource.create({"service.name": _SERVICE_NAME})
    provider = TracerProvider(resource=resource)

    exporter_type = (exporter or os.environ.get("OTEL_EXPORTER", "console")).lower()
    if exporter_type == "otlp":
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                OTLPSpanExporter,
            )

            endpoint = os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
            provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
            logger.info("[Telemetry] OTLP exporter → %s", endpoint)
        except ImportError:
            logger.warning("[Telemetry] OTLP exporter not installed — falling back to console.")
            provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    elif exporter_type == "none":
        logger.info("[Telemetry] Tracing enabled without an exporter.")
    else:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
        logger.info("[Telemetry] Console exporter active (dev mode).")

    trace.set_tracer_provider(provider)
    _initialized = True


def get_tracer() -> trace.Tracer:
    """Return the Jarvis tracer (safe to call before ``init_telemetry``)."""
    return trace.get_tracer(_TRACER_NAME)


@contextmanager
def stage_span(
    stage: str, *, session_id: str = "", seq: int | None = None, **attributes: Any
) -> Iterator[trace.Span]:
    """Open a ``jarvis.<stage>`` span tagged with the utterance it belongs to."""
    attrs: dict[str, Any] = {"session.id": session_id}
    if seq is not None:
        attrs["utterance.seq"] = seq
    attrs.update(attributes)
    with get_tracer().start_as_current_span(f"jarvis.{stage}", attributes=attrs) as span:
        yield span
