import logging
import re
from typing import Optional

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.sdk.trace import ReadableSpan, SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

logger = logging.getLogger(__name__)


class RedactingSpanProcessor(SpanProcessor):
    """
    SpanProcessor that redacts sensitive attributes before the wrapped
    processor (and its exporter) sees the span.
    """
    def __init__(self, processor: SpanProcessor):
        self._processor = processor
        self._sensitive_keys = {
            "authorization", "cookie", "set-cookie",
            "x-csrf-token", "x-user-id",
            "iv", "tag", "ciphertext",
        }
        self._sensitive_patterns = [
            re.compile(r"http\.request\.header\..*", re.IGNORECASE),
            re.compile(r"http\.response\.header\..*", re.IGNORECASE),
            re.compile(r".*(token|secret|nonce|api_key|password|session).*", re.IGNORECASE),
        ]
        self._url_token = re.compile(r"(token=)[^&\s]+")

    def on_start(self, span, parent_context=None) -> None:
        self._processor.on_start(span, parent_context)

    def on_end(self, span: ReadableSpan) -> None:
        if not span.attributes:
            self._processor.on_end(span)
            return

        new_attributes = {}
        for key, value in span.attributes.items():
            if self._should_redact(key):
                new_attributes[key] = "[REDACTED]"
            elif isinstance(value, str) and "token=" in value:
                # Checkout redirect URLs carry the auth token in the query
                new_attributes[key] = self._url_token.sub(r"\1[REDACTED]", value)
            else:
                new_attributes[key] = value

        # ReadableSpan has no public setter once ended
        if hasattr(span, "_attributes"):
            span._attributes = new_attributes

        self._processor.on_end(span)

    def shutdown(self) -> None:
        self._processor.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self._processor.force_flush(timeout_millis)

    def _should_redact(self, key: str) -> bool:
        key_lower = key.lower()
        if key_lower in self._sensitive_keys:
            return True
        for pattern in self._sensitive_patterns:
            if pattern.match(key_lower):
                return True
        return False


def setup_tracing(app: FastAPI, otlp_endpoint: Optional[str] = None, dev_mode: bool = False) -> TracerProvider:
    provider = TracerProvider()

    processor: Optional[SpanProcessor] = None
    if otlp_endpoint:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        processor = BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
    elif dev_mode:
        processor = BatchSpanProcessor(ConsoleSpanExporter())

    if processor:
        provider.add_span_processor(RedactingSpanProcessor(processor))

    trace.set_tracer_provider(provider)

    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
    from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

    # Health probes excluded to reduce noise
    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider, excluded_urls="health/*")
    # Statement capture stays disabled; statements can carry payload JSON
    SQLAlchemyInstrumentor().instrument(tracer_provider=provider, enable_commenter=True, db_statement_enabled=False)

    logger.info(f"Tracing enabled (otlp={'yes' if otlp_endpoint else 'no'})")
    return provider
